"""
End-to-end runs of the submit → track → persist flow with the real session,
tracker and finalizer on top of the in-memory FakeTransport.
"""
import json
import time

import pytest
from conftest import (POE_RESULT, FakeTransport, confirmed, finalized,
                      included, tx_ok)

import zkv_attest.finalizer as finalizer_mod
from zkv_attest.config import AttestConfig
from zkv_attest.errors import (AttestationLookupError, AttestationTimeoutError,
                               AuthenticationError, OutOfOrderEventError,
                               PersistenceError, SubmissionError)
from zkv_attest.pipeline import run_attestation, run_attestation_sync


async def _run(config, transport, environ):
    return await run_attestation(config, environ=environ, session_kwargs={"transport": transport})


def _artifact(config):
    return json.loads(config.output_path.read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_published_attestation_is_persisted(config, seed_env):
    t = FakeTransport(notifications=[included(), finalized(), confirmed("C1"), tx_ok()])

    record = await _run(config, t, seed_env)

    assert record.attestation_id == "C1"
    assert _artifact(config) == {**POE_RESULT, "attestationId": "C1"}
    assert ("poe_proofPath", ["0xA1", "0xD1"]) in t.calls
    assert t.methods()[-2:] == ["session_end", "close"]


@pytest.mark.asyncio
async def test_confirmation_before_finalization_still_persists(config, seed_env):
    t = FakeTransport(notifications=[included(), confirmed("C1"), finalized(), tx_ok()])
    record = await _run(config, t, seed_env)
    assert record.attestation_id == "C1"
    assert config.output_path.exists()


@pytest.mark.asyncio
async def test_confirmation_without_inclusion_fails(config, seed_env):
    t = FakeTransport(notifications=[confirmed("C1")])

    with pytest.raises(OutOfOrderEventError):
        await _run(config, t, seed_env)
    assert not config.output_path.exists()
    assert "poe_proofPath" not in t.methods()
    assert t.closed


@pytest.mark.asyncio
async def test_missing_seed_fails_before_any_network_traffic(config):
    t = FakeTransport(notifications=[included(), confirmed(), tx_ok()])

    with pytest.raises(AuthenticationError):
        await _run(config, t, {})
    assert t.calls == []


@pytest.mark.asyncio
async def test_malformed_seed_fails_before_any_network_traffic(config):
    t = FakeTransport()
    with pytest.raises(AuthenticationError):
        await _run(config, t, {"SEED_PHRASE": "hunter2"})
    assert t.calls == []


@pytest.mark.asyncio
async def test_missing_proof_file(config, seed_env, tmp_path):
    cfg = AttestConfig.with_overrides(config, proof_path=tmp_path / "missing.json")
    t = FakeTransport()
    with pytest.raises(SubmissionError, match="not found"):
        await _run(cfg, t, seed_env)
    assert t.calls == []


@pytest.mark.asyncio
async def test_duplicate_confirmation_keeps_first(config, seed_env):
    t = FakeTransport(notifications=[included(), confirmed("C1"), confirmed("C2"), tx_ok()])
    await _run(config, t, seed_env)

    assert _artifact(config)["attestationId"] == "C1"
    assert t.methods().count("poe_proofPath") == 1


@pytest.mark.asyncio
async def test_rejected_transaction(config, seed_env):
    t = FakeTransport(notifications=[
        included(),
        {"event": "transactionResult", "status": "failed", "error": "InvalidProof", "txHash": "0xT1"},
    ])
    with pytest.raises(SubmissionError, match="InvalidProof"):
        await _run(config, t, seed_env)
    assert not config.output_path.exists()
    assert t.closed


@pytest.mark.asyncio
async def test_stream_ends_without_confirmation(config, seed_env):
    t = FakeTransport(notifications=[included(), finalized(), tx_ok()])
    with pytest.raises(SubmissionError, match="before the attestation was confirmed"):
        await _run(config, t, seed_env)


@pytest.mark.asyncio
async def test_no_attestation_within_timeout(config, seed_env):
    cfg = AttestConfig.with_overrides(config, submit_timeout=0.1)
    t = FakeTransport(notifications=[included(), finalized()])

    with pytest.raises(AttestationTimeoutError):
        await _run(cfg, t, seed_env)
    assert not cfg.output_path.exists()
    assert t.closed


@pytest.mark.asyncio
async def test_lookup_failure_writes_nothing(config, seed_env):
    t = FakeTransport(notifications=[included(), confirmed("C1"), tx_ok()], poe_result=None)
    with pytest.raises(AttestationLookupError):
        await _run(config, t, seed_env)
    assert not config.output_path.exists()


@pytest.mark.asyncio
async def test_unwritable_output(config, seed_env):
    config.output_path.mkdir()
    t = FakeTransport(notifications=[included(), confirmed("C1"), tx_ok()])
    with pytest.raises(PersistenceError):
        await _run(config, t, seed_env)


def test_sync_wrapper(config, seed_env):
    t = FakeTransport(notifications=[included(), finalized(), confirmed(9), tx_ok()])
    record = run_attestation_sync(config, environ=seed_env, session_kwargs={"transport": t})
    assert record.attestation_id == 9
    assert _artifact(config)["attestationId"] == 9


@pytest.mark.asyncio
async def test_confirmation_without_id_writes_nothing(config, seed_env):
    t = FakeTransport(notifications=[included(), confirmed(None), tx_ok()])
    with pytest.raises(SubmissionError, match="no attestation id"):
        await _run(config, t, seed_env)
    assert not config.output_path.exists()
    assert "poe_proofPath" not in t.methods()


@pytest.mark.asyncio
async def test_confirmed_but_transaction_unsettled_writes_nothing(config, seed_env):
    cfg = AttestConfig.with_overrides(config, submit_timeout=0.2)
    t = FakeTransport(notifications=[included(), confirmed("C1")])

    with pytest.raises(AttestationTimeoutError):
        await _run(cfg, t, seed_env)
    assert not cfg.output_path.exists()
    assert t.closed


@pytest.mark.asyncio
async def test_confirmed_then_transaction_failed_writes_nothing(config, seed_env):
    t = FakeTransport(notifications=[
        included(),
        confirmed("C1"),
        {"event": "transactionResult", "status": "failed", "error": "InvalidProof"},
    ])
    with pytest.raises(SubmissionError, match="InvalidProof"):
        await _run(config, t, seed_env)
    assert not config.output_path.exists()


@pytest.mark.asyncio
async def test_write_in_progress_outlives_timeout(config, seed_env, monkeypatch):
    real_write = finalizer_mod.write_json_atomic

    def slow_write(path, data):
        time.sleep(0.3)
        return real_write(path, data)

    monkeypatch.setattr(finalizer_mod, "write_json_atomic", slow_write)
    cfg = AttestConfig.with_overrides(config, submit_timeout=0.1)
    t = FakeTransport(notifications=[included(), confirmed("C1"), tx_ok()])

    record = await _run(cfg, t, seed_env)
    assert record.attestation_id == "C1"
    assert _artifact(cfg) == {**POE_RESULT, "attestationId": "C1"}
