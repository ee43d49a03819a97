#!/usr/bin/env python3
"""
verify_proof.py: submit a RISC Zero proof to zkVerify with zkv_attest (Python)

What this script does:
1) Reads the account seed from SEED_PHRASE.
2) Loads the proof written by the host program (proof, image_id, pub_inputs).
3) Opens a session, submits the proof and waits for the published attestation.
4) Looks up the proof of existence and writes attestation.json.

Steps 3 and 4 are driven by hand here (session + tracker + finalizer) to show
the moving parts; `zkv-attest submit` does the same in one call.

Requirements
------------
- The package installed (editable is OK): `python -m pip install -e .`
- A funded testnet account: `export SEED_PHRASE="word1 word2 ..."`

Defaults can be overridden via flags or environment:

  ZKV_NETWORK        (default: testnet)
  ZKV_WS_URL         (overrides the network preset)
  ZKV_PROOF_PATH     (default: proof.json)
  ZKV_OUTPUT_PATH    (default: attestation.json)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from zkv_attest.bundle import load_proof_bundle
from zkv_attest.config import AttestConfig
from zkv_attest.credentials import read_seed_phrase
from zkv_attest.errors import ZkvError
from zkv_attest.finalizer import AttestationFinalizer
from zkv_attest.session import start_session
from zkv_attest.tracker import EventTracker


async def verify_proof(cfg: AttestConfig) -> dict:
    seed = read_seed_phrase(cfg.seed_env)
    bundle = load_proof_bundle(cfg.proof_path, version=cfg.proof_version)

    print(f"Starting zkVerify session on {cfg.network}...")
    async with await start_session(cfg, seed) as session:
        print("Submitting proof for verification...")
        submission = await session.verify(bundle)

        finalizer = AttestationFinalizer(session, cfg.output_path, gate=submission.tx_result)
        tracker = EventTracker(finalizer)
        record = await asyncio.wait_for(tracker.run(submission.events), timeout=cfg.submit_timeout)
        await submission.tx_result
    return record.to_dict()


def main() -> int:
    ap = argparse.ArgumentParser(description="Submit proof.json to zkVerify and save attestation.json")
    ap.add_argument("--proof", help="Path to proof.json")
    ap.add_argument("--out", help="Where to write the attestation")
    ap.add_argument("--network", help="testnet | local")
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        cfg = AttestConfig.with_overrides(
            AttestConfig.from_env(), proof_path=args.proof, output_path=args.out, network=args.network
        )
        details = asyncio.run(verify_proof(cfg))
    except (ZkvError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return getattr(e, "exit_code", 1)
    except asyncio.TimeoutError:
        print("error: no published attestation before the timeout", file=sys.stderr)
        return 9

    print("proofDetails", json.dumps(details, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
