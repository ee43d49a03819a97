"""
Typed error classes for zkv-attest.

Every failure the attestation flow can hit is raised as a subclass of
`ZkvError`, so the CLI can map it to a diagnostic and a distinct exit code
while library callers can still catch one base class.

Transport-level JSON-RPC failures surface as `RpcError`; the session layer
translates them into the domain errors below.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "ZkvError",
    "AuthenticationError",
    "NetworkConnectionError",
    "SubmissionError",
    "OutOfOrderEventError",
    "AttestationLookupError",
    "PersistenceError",
    "AttestationTimeoutError",
    "RpcError",
    "JsonRpcCode",
    "from_jsonrpc_error",
]


class ZkvError(Exception):
    """Base class for all zkv-attest errors."""

    exit_code: int = 1


class AuthenticationError(ZkvError):
    """Credential missing, malformed, or refused by the network."""

    exit_code = 3


class NetworkConnectionError(ZkvError, ConnectionError):
    """Endpoint unreachable, handshake failed, or the connection dropped."""

    exit_code = 4


class SubmissionError(ZkvError):
    """Proof payload malformed or the verification transaction was rejected."""

    exit_code = 5


class OutOfOrderEventError(ZkvError):
    """A lifecycle event arrived before the event it depends on."""

    exit_code = 6

    def __init__(self, message: str, *, event: Optional[str] = None, phase: Optional[str] = None) -> None:
        super().__init__(message)
        self.event = event
        self.phase = phase


class AttestationLookupError(ZkvError, LookupError):
    """Confirmation lookup failed (session closed or ids unknown to the network)."""

    exit_code = 7


class PersistenceError(ZkvError):
    """The attestation artifact could not be written."""

    exit_code = 8

    def __init__(self, message: str, *, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class AttestationTimeoutError(ZkvError, TimeoutError):
    """A bounded wait expired before the network answered."""

    exit_code = 9

    def __init__(self, message: str, *, timeout: Optional[float] = None) -> None:
        super().__init__(message)
        self.timeout = timeout


class JsonRpcCode(IntEnum):
    # Reserved by JSON-RPC 2.0
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    SERVER_ERROR = -32000

    # Attestation gateway
    UNAUTHORIZED = -32002
    NOT_FOUND = -32004
    TX_REJECTED = -32011

    # Raised locally when the socket is gone or never opened
    TRANSPORT_ERROR = -32098


@dataclass(slots=True, eq=False)
class RpcError(ZkvError):
    """A JSON-RPC error object, or a transport failure dressed as one."""

    code: int
    message: str
    data: Optional[Any] = None
    method: Optional[str] = None
    request_id: Optional[Any] = None

    def __str__(self) -> str:
        where = self.method or "?"
        text = f"{where}: {self.message} (code {self.code})"
        if self.data is not None:
            text += f" [{self.data!r}]"
        return text

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def is_transport(self) -> bool:
        return self.code == JsonRpcCode.TRANSPORT_ERROR


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    request_id: Optional[Any] = None,
) -> RpcError:
    """Build an RpcError from a response's `error` member."""
    return RpcError(
        code=int(err_obj.get("code", JsonRpcCode.SERVER_ERROR)),
        message=str(err_obj.get("message") or "JSON-RPC error without message"),
        data=err_obj.get("data"),
        method=method,
        request_id=request_id,
    )
