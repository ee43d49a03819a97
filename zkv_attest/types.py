"""
Core value types shared by the session, tracker and finalizer.

Lifecycle events are modelled as a small tagged union: three frozen
dataclasses with a common `kind` tag. The tracker dispatches on the concrete
type, never on the raw wire payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union


class ProofSystem(str, Enum):
    """Proof families the network verifies (only RISC Zero is submitted here)."""

    RISC0 = "risc0"


class ProtocolVersion(str, Enum):
    """RISC Zero receipt versions accepted by the verifier pallet."""

    V1_0 = "V1_0"
    V1_1 = "V1_1"
    V1_2 = "V1_2"

    @classmethod
    def parse(cls, value: Union[str, "ProtocolVersion"]) -> "ProtocolVersion":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            known = ", ".join(v.value for v in cls)
            raise ValueError(f"unknown protocol version {value!r} (expected one of: {known})") from None


class EventKind(str, Enum):
    INCLUDED_IN_BLOCK = "includedInBlock"
    FINALIZED = "finalized"
    ATTESTATION_CONFIRMED = "attestationConfirmed"


@dataclass(frozen=True)
class IncludedInBlock:
    attestation_id: Optional[Any]
    leaf_digest: Optional[str]
    block_hash: Optional[str] = None
    tx_hash: Optional[str] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    kind = EventKind.INCLUDED_IN_BLOCK


@dataclass(frozen=True)
class Finalized:
    block_info: Mapping[str, Any] = field(default_factory=dict)

    kind = EventKind.FINALIZED


@dataclass(frozen=True)
class AttestationConfirmed:
    confirmation_id: Any
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    kind = EventKind.ATTESTATION_CONFIRMED


LifecycleEvent = Union[IncludedInBlock, Finalized, AttestationConfirmed]


@dataclass(frozen=True)
class AttestationRecord:
    """
    Result of the confirmation lookup plus the id carried by the
    `AttestationConfirmed` event. Serialises to the lookup fields with an
    extra `attestationId` key (which wins over any lookup field of that name).
    """

    details: Mapping[str, Any]
    attestation_id: Any

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.details)
        out["attestationId"] = self.attestation_id
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AttestationRecord":
        if data.get("attestationId") is None:
            raise ValueError("attestation record is missing 'attestationId'")
        details = {k: v for k, v in data.items() if k != "attestationId"}
        return cls(details=details, attestation_id=data["attestationId"])


__all__ = [
    "ProofSystem",
    "ProtocolVersion",
    "EventKind",
    "IncludedInBlock",
    "Finalized",
    "AttestationConfirmed",
    "LifecycleEvent",
    "AttestationRecord",
]
