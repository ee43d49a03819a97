"""
Hex helpers for proof fields. Proof files carry receipts, image ids and
journals as 0x-prefixed hex; the verifier expects lowercase 0x-prefixed hex.
"""
from __future__ import annotations

from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]

_PREFIXES = ("0x", "0X")


def to_hex(b: BytesLike, prefix: bool = True) -> str:
    """Lowercase hex for `b`, '0x'-prefixed unless `prefix` is False."""
    digits = bytes(b).hex()
    return "0x" + digits if prefix else digits


def from_hex(s: str) -> bytes:
    """
    Decode a hex string with or without the '0x' prefix.

    Raises ValueError for odd-length input or non-hex digits and TypeError
    when `s` is not a string.
    """
    if not isinstance(s, str):
        raise TypeError(f"expected a hex string, got {type(s).__name__}")
    digits = s[2:] if s.startswith(_PREFIXES) else s
    if len(digits) % 2:
        raise ValueError(f"odd number of hex digits ({len(digits)})")
    try:
        return bytes.fromhex(digits)
    except ValueError as e:
        raise ValueError(f"not a hex string: {e}") from e


def normalize_hex(s: str) -> str:
    return to_hex(from_hex(s))


def is_hex(value: object) -> bool:
    try:
        from_hex(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return False
    return True


__all__ = ["BytesLike", "to_hex", "from_hex", "normalize_hex", "is_hex"]
