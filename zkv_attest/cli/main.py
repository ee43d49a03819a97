"""
zkv_attest.cli.main
===================

`zkv-attest`: submit a RISC Zero proof to zkVerify and keep the attestation.

Examples
--------
    $ export SEED_PHRASE="..."
    $ zkv-attest submit --proof health_factor/proof.json
    $ zkv-attest show
    $ zkv-attest journal --proof health_factor/proof.json
    $ zkv-attest --network local env

Configuration
-------------
- Network   : `--network` or env `ZKV_NETWORK` (default: testnet)
- Endpoint  : `--ws-url` or env `ZKV_WS_URL` (overrides the network preset)
- Log level : `--log-level` or env `ZKV_LOG_LEVEL` (default: INFO)
- Seed      : env `SEED_PHRASE` (variable name configurable via `ZKV_SEED_ENV`)

Every failure prints `error: <message>` on stderr and exits with the
error's code (see `zkv_attest.errors`).
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import typer

from ..bundle import load_proof_bundle
from ..config import AttestConfig
from ..credentials import fingerprint, read_seed_phrase
from ..errors import ZkvError
from ..finalizer import load_attestation
from ..journal import journal_from_bundle
from ..pipeline import run_attestation_sync
from ..version import __version__

app = typer.Typer(
    name="zkv-attest",
    help="Submit a proof to zkVerify, follow it to a published attestation, and save the result.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main"]


@dataclass
class Ctx:
    network: Optional[str]
    ws_url: Optional[str]


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False))


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _fail(err: Exception) -> typer.Exit:
    typer.echo(f"error: {err}", err=True)
    return typer.Exit(code=getattr(err, "exit_code", 1))


def _config(ctx: typer.Context, **overrides: Any) -> AttestConfig:
    c: Ctx = ctx.obj
    try:
        return AttestConfig.with_overrides(
            AttestConfig.from_env(), network=c.network, ws_url=c.ws_url, **overrides
        )
    except ValueError as e:
        raise _fail(e) from e


@app.callback()
def _root(
    ctx: typer.Context,
    network: Optional[str] = typer.Option(
        None, "--network", help="Network preset (testnet, local, custom).", envvar="ZKV_NETWORK"
    ),
    ws_url: Optional[str] = typer.Option(
        None, "--ws-url", help="WebSocket endpoint; overrides the preset.", envvar="ZKV_WS_URL"
    ),
    log_level: str = typer.Option(
        "INFO", "--log-level", help="Logging level.", envvar="ZKV_LOG_LEVEL"
    ),
) -> None:
    """
    Set effective network settings for this process.
    """
    _configure_logging(log_level)
    ctx.obj = Ctx(network=network, ws_url=ws_url)


@app.command("version")
def version() -> None:
    """Print the CLI version."""
    typer.echo(f"zkv-attest {__version__}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration. The seed is never printed."""
    cfg = _config(ctx)
    try:
        out = cfg.to_dict()
    except ValueError as e:
        raise _fail(e) from e
    try:
        seed = read_seed_phrase(cfg.seed_env)
        out["credential"] = {"present": True, "fingerprint": fingerprint(seed)}
    except ZkvError as e:
        out["credential"] = {"present": False, "problem": str(e)}
    out["version"] = __version__
    _print_json(out)


@app.command("submit")
def submit(
    ctx: typer.Context,
    proof: Optional[Path] = typer.Option(None, "--proof", "-p", help="Proof JSON (proof, image_id, pub_inputs)."),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Where to write the attestation JSON."),
    proof_version: Optional[str] = typer.Option(None, "--proof-version", help="RISC Zero version tag (e.g. V1_2)."),
    submit_timeout: Optional[float] = typer.Option(None, "--submit-timeout", help="Seconds to wait for the attestation."),
    lookup_timeout: Optional[float] = typer.Option(None, "--lookup-timeout", help="Seconds to wait for the lookup."),
) -> None:
    """
    Submit the proof, wait for its attestation to be confirmed, and write it.
    """
    cfg = _config(
        ctx,
        proof_path=proof,
        output_path=out,
        proof_version=proof_version,
        submit_timeout=submit_timeout,
        lookup_timeout=lookup_timeout,
    )
    try:
        record = run_attestation_sync(cfg)
    except (ZkvError, ValueError) as e:
        raise _fail(e) from e
    typer.echo(f"Attestation {record.attestation_id} written to {cfg.output_path}")


@app.command("journal")
def journal(
    proof: Path = typer.Option(Path("proof.json"), "--proof", "-p", help="Proof JSON whose journal to decode."),
) -> None:
    """Decode the health factor journal carried by a proof file."""
    try:
        decoded = journal_from_bundle(load_proof_bundle(proof))
    except ZkvError as e:
        raise _fail(e) from e
    _print_json(decoded.to_dict())


@app.command("show")
def show(
    file: Path = typer.Option(Path("attestation.json"), "--file", "-f", help="Attestation JSON to print."),
) -> None:
    """Print a persisted attestation."""
    try:
        record = load_attestation(file)
    except ZkvError as e:
        raise _fail(e) from e
    _print_json(record.to_dict())


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        rv = app(prog_name="zkv-attest", standalone_mode=False, args=argv)
    except typer.Exit as e:
        return int(e.exit_code)
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        return int(getattr(e, "exit_code", 1))
    return int(rv) if isinstance(rv, int) else 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
