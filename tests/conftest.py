"""
Shared pytest fixtures:
- A valid BIP-39 seed and an environment carrying it
- A proof.json written the way the RISC Zero host program writes it
- FakeTransport: in-memory stand-in for the WebSocket JSON-RPC client that
  answers session/poe requests and replays scripted verify notifications
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

from zkv_attest.config import AttestConfig
from zkv_attest.errors import JsonRpcCode, RpcError

# BIP-39 test vector (all-zero entropy), checksum-valid
TEST_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)

POE_RESULT = {
    "root": "0x7ad1c8d6aa1f05ea1fa9ab1d0c3a4b0d8b0e4f2a7c5e0a3f9b8d1c2e3f4a5b6c",
    "proof": ["0x01", "0x02"],
    "numberOfLeaves": 4,
    "leafIndex": 2,
    "leaf": "0xD1",
}


def included(attestation_id: Any = "0xA1", leaf_digest: Optional[str] = "0xD1", **extra: Any) -> Dict[str, Any]:
    return {
        "event": "includedInBlock",
        "attestationId": attestation_id,
        "leafDigest": leaf_digest,
        "blockHash": "0xB1",
        "txHash": "0xT1",
        **extra,
    }


def finalized(**extra: Any) -> Dict[str, Any]:
    return {"event": "finalized", "blockHash": "0xB1", **extra}


def confirmed(confirmation_id: Any = "C1") -> Dict[str, Any]:
    return {"event": "attestationConfirmed", "id": confirmation_id}


def tx_ok(**extra: Any) -> Dict[str, Any]:
    return {"event": "transactionResult", "status": "succeeded", "txHash": "0xT1", **extra}


class FakeTransport:
    """
    Minimal in-memory transport implementing only what the session uses.

    `notifications` are delivered to the verify subscription on the next loop
    iteration after `subscribe()` returns, in order.
    """

    def __init__(
        self,
        *,
        notifications: Optional[List[Any]] = None,
        session_result: Any = None,
        poe_result: Any = POE_RESULT,
        errors: Optional[Dict[str, Exception]] = None,
        connect_error: Optional[Exception] = None,
    ) -> None:
        self.notifications = list(notifications or [])
        self.session_result = session_result if session_result is not None else {
            "sessionId": "sess-1",
            "address": "5FakeAddress",
        }
        self.poe_result = poe_result
        self.errors = dict(errors or {})
        self.connect_error = connect_error
        self.calls: List[tuple] = []
        self.connected = False
        self.closed = False
        self._listeners: List[Callable[[Exception], None]] = []
        self.on_event: Optional[Callable[[Any], None]] = None
        self.on_error: Optional[Callable[[Exception], None]] = None

    async def connect(self) -> None:
        self.calls.append(("connect", None))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def close(self) -> None:
        self.calls.append(("close", None))
        self.closed = True
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(RpcError(code=JsonRpcCode.TRANSPORT_ERROR, message="WS closed"))

    def add_close_listener(self, listener: Callable[[Exception], None]) -> None:
        self._listeners.append(listener)

    async def request(self, method: str, params: Any = None) -> Any:
        self.calls.append((method, params))
        if method in self.errors:
            raise self.errors[method]
        if method == "session_start":
            return self.session_result
        if method == "poe_proofPath":
            return None if self.poe_result is None else dict(self.poe_result)
        if method == "session_end":
            return True
        raise AssertionError(f"unexpected method {method}")

    async def subscribe(
        self,
        method: str,
        params: Any = None,
        *,
        on_event: Callable[[Any], None],
        on_error: Callable[[Exception], None],
    ) -> str:
        self.calls.append((method, params))
        if method in self.errors:
            raise self.errors[method]
        self.on_event = on_event
        self.on_error = on_error
        asyncio.get_running_loop().call_soon(self._deliver)
        return "sub-1"

    def _deliver(self) -> None:
        assert self.on_event is not None and self.on_error is not None
        for payload in self.notifications:
            try:
                self.on_event(payload)
            except Exception as e:
                self.on_error(e)
                return

    def methods(self) -> List[str]:
        return [m for (m, _p) in self.calls]


@pytest.fixture
def seed_env() -> Dict[str, str]:
    return {"SEED_PHRASE": TEST_MNEMONIC}


@pytest.fixture
def proof_doc() -> Dict[str, Any]:
    return {
        "proof": "0x" + "ab" * 64,
        "image_id": "0x" + "0F" * 32,
        "pub_inputs": "0x" + "01" * 16,
    }


@pytest.fixture
def proof_file(tmp_path: Path, proof_doc: Dict[str, Any]) -> Path:
    path = tmp_path / "proof.json"
    path.write_text(json.dumps(proof_doc), encoding="utf-8")
    return path


@pytest.fixture
def config(tmp_path: Path, proof_file: Path) -> AttestConfig:
    return AttestConfig(
        network="local",
        proof_path=proof_file,
        output_path=tmp_path / "attestation.json",
        submit_timeout=5.0,
        lookup_timeout=5.0,
    )
