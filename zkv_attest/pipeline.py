"""
zkv_attest.pipeline
===================

One proof, one run:

  1. read the account seed (fails before any network traffic),
  2. load the proof bundle,
  3. open a session,
  4. submit the proof and follow its lifecycle events,
  5. persist the attestation once it is confirmed and the verification
     transaction has succeeded.

The tracker and the submission's transaction future are awaited together;
whichever fails first aborts the run and the other is cancelled. The whole
wait is bounded by `config.submit_timeout`, except for a write that has
already started. A failed run leaves no new artifact behind.

Usage:
  from zkv_attest.config import AttestConfig
  from zkv_attest.pipeline import run_attestation_sync
  record = run_attestation_sync(AttestConfig.from_env())
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .bundle import ProofBundle, load_proof_bundle
from .config import AttestConfig
from .credentials import read_seed_phrase
from .errors import AttestationTimeoutError, SubmissionError
from .finalizer import AttestationFinalizer
from .journal import journal_from_bundle
from .session import Submission, ZkVerifySession, start_session
from .tracker import EventTracker
from .types import AttestationRecord

logger = logging.getLogger(__name__)

SessionFactory = Callable[..., Awaitable[ZkVerifySession]]


async def _await_outcome(
    tracker: EventTracker,
    submission: Submission,
    finalizer: AttestationFinalizer,
    *,
    timeout: float,
) -> AttestationRecord:
    track_task = asyncio.create_task(tracker.run(submission.events), name="zkv.tracker")
    tx_task = asyncio.ensure_future(submission.tx_result)
    tasks = {track_task, tx_task}
    try:
        done, pending = await asyncio.wait(tasks, timeout=timeout, return_when=asyncio.FIRST_EXCEPTION)
        # Surface the transaction failure first: it explains a truncated stream.
        for task in (tx_task, track_task):
            if task in done and not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]
        if pending == {track_task} and finalizer.committing:
            # The network side is settled; only the local write is left.
            await track_task
        elif pending:
            raise AttestationTimeoutError(
                f"no published attestation within {timeout:.0f}s", timeout=timeout
            )
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    tx = tx_task.result()
    logger.info("Verification transaction settled: %s", tx.get("txHash") or tx)
    return track_task.result()


def _log_journal(bundle: ProofBundle) -> None:
    try:
        journal = journal_from_bundle(bundle)
    except SubmissionError as e:
        logger.debug("journal not in health factor layout: %s", e)
        return
    if journal.no_debt:
        logger.info("Journal: no debt, collateral %s", journal.collateral_value_in_usd)
    else:
        logger.info(
            "Journal: health factor %s (collateral %s, minted %s)",
            journal.ratio,
            journal.collateral_value_in_usd,
            journal.total_dsc_minted,
        )


async def run_attestation(
    config: AttestConfig,
    *,
    environ: Optional[Mapping[str, str]] = None,
    session_factory: SessionFactory = start_session,
    session_kwargs: Optional[Dict[str, Any]] = None,
) -> AttestationRecord:
    """
    Run the full submit → track → persist flow for `config`.

    Raises a ZkvError subclass on any failure; nothing is retried.
    """
    seed = read_seed_phrase(config.seed_env, environ)
    bundle = load_proof_bundle(config.proof_path, version=config.proof_version)
    _log_journal(bundle)

    logger.info("Starting zkVerify session on %s...", config.network)
    session = await session_factory(config, seed, **(session_kwargs or {}))
    try:
        logger.info("Submitting proof for verification (%s, %s)...", config.proof_path, bundle.version.value)
        submission = await session.verify(bundle, wait_for_published_attestation=True)
        finalizer = AttestationFinalizer(
            session,
            config.output_path,
            lookup_timeout=config.lookup_timeout,
            gate=submission.tx_result,
        )
        tracker = EventTracker(finalizer)
        record = await _await_outcome(tracker, submission, finalizer, timeout=config.submit_timeout)
    finally:
        await session.close()
    logger.info("Attestation %s persisted to %s", record.attestation_id, config.output_path)
    return record


def run_attestation_sync(config: AttestConfig, **kwargs: Any) -> AttestationRecord:
    """Blocking wrapper around `run_attestation` for scripts and the CLI."""
    return asyncio.run(run_attestation(config, **kwargs))


__all__ = ["run_attestation", "run_attestation_sync"]
