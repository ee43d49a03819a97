"""
zkv_attest.session
==================

Authenticated session against the attestation network, the proof submitter,
and the proof-of-existence lookup.

Primary entry points
--------------------
- start_session(config, seed) -> ZkVerifySession
    Opens the WebSocket transport and authenticates the account. One attempt.

- ZkVerifySession.verify(bundle, ...) -> Submission
    Submits a proof and returns an `EventStream` of lifecycle events plus a
    future for the transaction outcome. The future must be awaited; a
    rejected transaction only surfaces there.

- ZkVerifySession.poe(attestation_id, leaf_digest) -> dict
    Confirmation lookup ("proof of existence") for a published attestation.

JSON-RPC methods used
---------------------
    session_start   {network, account}                      -> {sessionId, address}
    verify_submit   {sessionId, proofType, waitFor, proofData} -> subscription id
    verify_event    notification {subscription, result: {event, ...}}
    poe_proofPath   [attestationId, leafDigest]             -> proof path object
    session_end     [sessionId]                             -> bool
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Union

from .bundle import ProofBundle
from .config import AttestConfig
from .credentials import fingerprint, validate_seed
from .errors import (AttestationLookupError, AuthenticationError, JsonRpcCode,
                     NetworkConnectionError, RpcError, SubmissionError, ZkvError)
from .events import EventStream, parse_event
from .rpc.ws import JSON, OnClose, OnError, OnEvent, Params, WsClient
from .types import ProofSystem

SESSION_START = "session_start"
SESSION_END = "session_end"
VERIFY_SUBMIT = "verify_submit"
POE_PROOF_PATH = "poe_proofPath"

WAIT_PUBLISHED_ATTESTATION = "publishedAttestation"
WAIT_INCLUDED = "includedInBlock"

_TX_RESULT = "transactionResult"
_TX_ERROR = "error"
_TX_FAILED_STATES = ("failed", "invalid", "dropped", "retracted")

_AUTH_CODES = (JsonRpcCode.UNAUTHORIZED, JsonRpcCode.INVALID_PARAMS)


class Transport(Protocol):
    """Minimal interface expected from `zkv_attest.rpc.ws.WsClient`."""

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def request(self, method: str, params: Params = None) -> JSON: ...

    async def subscribe(
        self, method: str, params: Params = None, *, on_event: OnEvent, on_error: OnError
    ) -> str: ...

    def add_close_listener(self, listener: OnClose) -> None: ...


@dataclass
class Submission:
    """Handles returned by `ZkVerifySession.verify`."""

    subscription_id: str
    events: EventStream
    tx_result: "asyncio.Future[Dict[str, Any]]"
    _log: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__), repr=False)

    def _on_notification(self, payload: JSON) -> None:
        if not isinstance(payload, dict):
            self._log.debug("ignoring malformed verify notification: %r", payload)
            return
        kind = payload.get("event")
        if kind == _TX_RESULT:
            self._settle_transaction(payload)
        elif kind == _TX_ERROR:
            message = payload.get("message") or payload.get("error") or "verification transaction failed"
            self.fail(SubmissionError(str(message)))
        else:
            event = parse_event(payload)
            if event is None:
                self._log.debug("skipping unknown verify event kind %r", kind)
                return
            self.events.push(event)

    def _settle_transaction(self, payload: Dict[str, Any]) -> None:
        status = str(payload.get("status", "")).lower()
        if payload.get("error") or status in _TX_FAILED_STATES:
            reason = payload.get("error") or status
            tx = payload.get("txHash")
            suffix = f" (tx {tx})" if tx else ""
            self.fail(SubmissionError(f"verification transaction {reason}{suffix}"))
            return
        if not self.tx_result.done():
            self.tx_result.set_result({k: v for k, v in payload.items() if k != "event"})
        self.events.close()

    def _on_handler_error(self, exc: Exception) -> None:
        # The transport has dropped the subscription; nothing else will arrive.
        err = SubmissionError(f"verify notification could not be handled: {exc}")
        err.__cause__ = exc
        self.fail(err)

    def fail(self, exc: ZkvError) -> None:
        if not self.tx_result.done():
            self.tx_result.set_exception(exc)
        self.events.close(exc)


def _map_submit_error(e: RpcError) -> ZkvError:
    code = e.code_enum
    if code is JsonRpcCode.UNAUTHORIZED:
        return AuthenticationError(f"network rejected the account: {e.message}")
    if code is JsonRpcCode.TX_REJECTED:
        return SubmissionError(f"verification transaction rejected: {e.message}")
    if e.is_transport:
        return NetworkConnectionError(f"connection failed during submission: {e.message}")
    return SubmissionError(f"proof submission failed: {e.message} (code {e.code})")


class ZkVerifySession:
    """An open, authenticated connection. Release with `close()` or `async with`."""

    def __init__(
        self,
        transport: Transport,
        *,
        network: str,
        session_id: str,
        address: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self.network = network
        self.session_id = session_id
        self.address = address
        self._log = logger or logging.getLogger("zkv_attest.session")
        self._closed = False
        self._submissions: List[Submission] = []
        transport.add_close_listener(self._on_transport_closed)

    async def __aenter__(self) -> "ZkVerifySession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    async def verify(
        self,
        bundle: ProofBundle,
        *,
        proof_system: Union[str, ProofSystem] = ProofSystem.RISC0,
        wait_for_published_attestation: bool = True,
    ) -> Submission:
        """
        Submit `bundle` for verification and subscribe to its lifecycle.

        With `wait_for_published_attestation` the network keeps the
        subscription open until the attestation containing the proof is
        published, and only then reports the transaction result.
        """
        if self._closed:
            raise SubmissionError("session is closed")
        if not isinstance(bundle, ProofBundle):
            raise SubmissionError(f"expected a ProofBundle, got {type(bundle).__name__}")
        try:
            system = ProofSystem(proof_system)
        except ValueError:
            raise SubmissionError(f"unsupported proof system {proof_system!r}") from None

        params = {
            "sessionId": self.session_id,
            "proofType": system.value,
            "waitFor": WAIT_PUBLISHED_ATTESTATION if wait_for_published_attestation else WAIT_INCLUDED,
            "proofData": bundle.to_proof_data(),
        }
        loop = asyncio.get_running_loop()
        submission = Submission(
            subscription_id="",
            events=EventStream(),
            tx_result=loop.create_future(),
            _log=self._log,
        )
        try:
            sub_id = await self._transport.subscribe(
                VERIFY_SUBMIT,
                params,
                on_event=submission._on_notification,
                on_error=submission._on_handler_error,
            )
        except RpcError as e:
            raise _map_submit_error(e) from e
        submission.subscription_id = sub_id
        self._submissions.append(submission)
        self._log.debug("proof submitted, subscription %s", sub_id)
        return submission

    async def poe(self, attestation_id: Any, leaf_digest: str) -> Dict[str, Any]:
        """Look up the proof of existence of `leaf_digest` in attestation `attestation_id`."""
        if self._closed:
            raise AttestationLookupError("session is closed")
        try:
            res = await self._transport.request(POE_PROOF_PATH, [attestation_id, leaf_digest])
        except RpcError as e:
            raise AttestationLookupError(
                f"lookup for attestation {attestation_id} failed: {e.message}"
            ) from e
        except NetworkConnectionError as e:
            raise AttestationLookupError(f"lookup for attestation {attestation_id} failed: {e}") from e
        if not isinstance(res, dict) or not res:
            raise AttestationLookupError(
                f"network has no record of leaf {leaf_digest} in attestation {attestation_id}"
            )
        return res

    async def close(self) -> None:
        """End the session and close the transport. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._transport.request(SESSION_END, [self.session_id])
        except (RpcError, NetworkConnectionError) as e:
            self._log.debug("session_end failed: %s", e)
        await self._transport.close()
        self._log.info("Session closed")

    def _on_transport_closed(self, exc: Exception) -> None:
        if isinstance(exc, NetworkConnectionError):
            err = exc
        else:
            err = NetworkConnectionError(f"session transport closed: {exc}")
        for submission in self._submissions:
            if not submission.events.closed or not submission.tx_result.done():
                submission.fail(err)


async def start_session(
    config: AttestConfig,
    seed: str,
    *,
    transport: Optional[Transport] = None,
    logger: Optional[logging.Logger] = None,
) -> ZkVerifySession:
    """
    Open an authenticated session on `config.network`.

    Raises AuthenticationError if the seed is malformed or refused, and
    NetworkConnectionError if the endpoint cannot be reached.
    """
    log = logger or logging.getLogger("zkv_attest.session")
    account = validate_seed(seed)
    if transport is None:
        transport = WsClient(
            config.endpoint,
            connect_timeout=config.connect_timeout,
            request_timeout=config.request_timeout,
        )
    await transport.connect()
    try:
        res = await transport.request(SESSION_START, {"network": config.network, "account": account})
    except RpcError as e:
        await transport.close()
        if e.code_enum in _AUTH_CODES:
            raise AuthenticationError(f"network refused the account: {e.message}") from e
        raise NetworkConnectionError(f"session_start failed: {e.message}") from e
    except NetworkConnectionError:
        await transport.close()
        raise
    if not isinstance(res, dict) or not res.get("sessionId"):
        await transport.close()
        raise NetworkConnectionError(f"unexpected session_start response: {res!r}")

    session = ZkVerifySession(
        transport,
        network=config.network,
        session_id=str(res["sessionId"]),
        address=res.get("address"),
        logger=log,
    )
    log.info(
        "Session started on %s as %s (seed %s)",
        config.network,
        session.address or "<unknown address>",
        fingerprint(account),
    )
    return session


__all__ = [
    "ZkVerifySession",
    "Submission",
    "Transport",
    "start_session",
    "SESSION_START",
    "SESSION_END",
    "VERIFY_SUBMIT",
    "POE_PROOF_PATH",
]
