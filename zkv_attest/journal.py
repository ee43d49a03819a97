"""
Decoder for the journal committed by the health_factor guest program.

The guest commits three u128 values in order:

    health_factor            (scaled by PRECISION, u128::MAX when there is no debt)
    collateral_value_in_usd  (scaled by PRECISION)
    total_dsc_minted         (scaled by PRECISION)

RISC Zero's serde writes each u128 as four little-endian u32 words, which is
the same as 16 little-endian bytes, so the journal is exactly 48 bytes.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from .bundle import ProofBundle
from .errors import SubmissionError
from .utils.bytes import BytesLike, from_hex

PRECISION = 10**18
U128_MAX = 2**128 - 1

_WORD = 16
_FIELDS = ("health_factor", "collateral_value_in_usd", "total_dsc_minted")
JOURNAL_SIZE = _WORD * len(_FIELDS)


@dataclass(frozen=True)
class HealthFactorJournal:
    health_factor: int
    collateral_value_in_usd: int
    total_dsc_minted: int

    @property
    def no_debt(self) -> bool:
        return self.health_factor == U128_MAX

    @property
    def ratio(self) -> Optional[Decimal]:
        """Health factor as a plain number (1 is the liquidation line); None without debt."""
        if self.no_debt:
            return None
        return Decimal(self.health_factor) / Decimal(PRECISION)

    @property
    def liquidatable(self) -> bool:
        return not self.no_debt and self.health_factor < PRECISION

    def to_dict(self) -> Dict[str, Any]:
        ratio = self.ratio
        return {
            "healthFactor": str(self.health_factor),
            "collateralValueInUsd": str(self.collateral_value_in_usd),
            "totalDscMinted": str(self.total_dsc_minted),
            "ratio": None if ratio is None else str(ratio),
            "noDebt": self.no_debt,
            "liquidatable": self.liquidatable,
        }


def _read_u128le(data: bytes, off: int) -> Tuple[int, int]:
    return int.from_bytes(data[off : off + _WORD], "little"), off + _WORD


def decode_health_factor_journal(data: Union[str, BytesLike]) -> HealthFactorJournal:
    """
    Decode journal bytes (or their hex form) into a HealthFactorJournal.

    Raises ValueError when the input is not exactly three u128 words.
    """
    raw = from_hex(data) if isinstance(data, str) else bytes(data)
    if len(raw) != JOURNAL_SIZE:
        raise ValueError(f"health factor journal must be {JOURNAL_SIZE} bytes, got {len(raw)}")
    values = []
    off = 0
    for _ in _FIELDS:
        value, off = _read_u128le(raw, off)
        values.append(value)
    return HealthFactorJournal(*values)


def journal_from_bundle(bundle: ProofBundle) -> HealthFactorJournal:
    """Decode the bundle's single hex public input as a health factor journal."""
    if len(bundle.public_inputs) != 1 or not isinstance(bundle.public_inputs[0], str):
        raise SubmissionError("proof does not carry a single hex journal")
    try:
        return decode_health_factor_journal(bundle.public_inputs[0])
    except ValueError as e:
        raise SubmissionError(f"cannot decode journal: {e}") from e


__all__ = [
    "HealthFactorJournal",
    "decode_health_factor_journal",
    "journal_from_bundle",
    "JOURNAL_SIZE",
    "PRECISION",
    "U128_MAX",
]
