"""
Account credential helpers.

The network session is opened with a secret account seed read from the
process environment. Three shapes are accepted, mirroring what Substrate
keyrings take:

- a BIP-39 English mnemonic (checksum verified with the `mnemonic` package),
- a development URI such as ``//Alice``,
- a raw 32-byte seed as 0x-prefixed hex.

The secret is never logged; use `fingerprint()` when a run needs to say
which account it used.
"""

from __future__ import annotations

import hashlib
import os
import re
import unicodedata
from typing import Mapping, Optional

from mnemonic import Mnemonic

from .errors import AuthenticationError

_DEV_URI_RE = re.compile(r"^//[A-Za-z0-9_./-]+$")
_HEX_SEED_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")
_MNEMONIC_WORD_COUNTS = (12, 15, 18, 21, 24)

_wordlist = Mnemonic("english")


def _normalize(phrase: str) -> str:
    return " ".join(unicodedata.normalize("NFKD", phrase).split())


def validate_seed(seed: str) -> str:
    """
    Return the normalised seed or raise `AuthenticationError` if it is not a
    usable account credential.
    """
    s = _normalize(seed)
    if not s:
        raise AuthenticationError("account seed is empty")
    if _DEV_URI_RE.match(s) or _HEX_SEED_RE.match(s):
        return s
    words = s.split(" ")
    if len(words) not in _MNEMONIC_WORD_COUNTS:
        raise AuthenticationError(
            f"account seed must be a BIP-39 mnemonic of 12-24 words, got {len(words)} word(s)"
        )
    if not _wordlist.check(s.lower()):
        raise AuthenticationError("account seed is not a valid BIP-39 mnemonic (checksum mismatch)")
    return s.lower()


def read_seed_phrase(
    env_var: str = "SEED_PHRASE",
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Read and validate the account seed from `env_var`.

    Raises AuthenticationError when the variable is absent, blank, or holds
    something that is not a seed.
    """
    env = os.environ if environ is None else environ
    value = env.get(env_var)
    if value is None or not value.strip():
        raise AuthenticationError(f"environment variable {env_var} is not set")
    return validate_seed(value)


def fingerprint(seed: str) -> str:
    """Short stable identifier for a seed (first 8 hex chars of SHA-256)."""
    return hashlib.sha256(_normalize(seed).encode("utf-8")).hexdigest()[:8]


__all__ = ["read_seed_phrase", "validate_seed", "fingerprint"]
