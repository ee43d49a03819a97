"""
Attestation finalizer: confirmation lookup + persistence of the record.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Dict, Optional, Protocol, Union

from .errors import AttestationTimeoutError, PersistenceError
from .types import AttestationRecord
from .utils.files import read_json, write_json_atomic


class PoeSource(Protocol):
    """Anything that can answer a proof-of-existence lookup (a session)."""

    async def poe(self, attestation_id: Any, leaf_digest: str) -> Dict[str, Any]: ...


class AttestationFinalizer:
    """
    Looks up the proof of existence for a confirmed attestation and writes it
    to `output_path` as pretty JSON, replacing any previous file.

    With a `gate` (the submission's transaction future) the write waits until
    the verification transaction has succeeded; a failed gate raises its
    error and nothing is written.

    Write-once: a second `finalize()` on the same instance raises
    PersistenceError instead of touching the artifact again.
    """

    def __init__(
        self,
        session: PoeSource,
        output_path: Union[str, Path],
        *,
        lookup_timeout: Optional[float] = 60.0,
        gate: Optional[Awaitable[Any]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session
        self.output_path = Path(output_path)
        self.lookup_timeout = lookup_timeout
        self._gate = gate
        self._log = logger or logging.getLogger("zkv_attest.finalizer")
        self._committing = False
        self._written = False

    @property
    def committing(self) -> bool:
        """True once the write has started (the gate, if any, has passed)."""
        return self._committing

    @property
    def written(self) -> bool:
        return self._written

    async def finalize(self, attestation_id: Any, leaf_digest: str, confirmation_id: Any) -> AttestationRecord:
        if self._committing:
            raise PersistenceError(
                f"attestation for this run already finalized to {self.output_path}", path=str(self.output_path)
            )

        self._log.info("Fetching proof of existence for attestation %s", attestation_id)
        try:
            details = await asyncio.wait_for(
                self._session.poe(attestation_id, leaf_digest), timeout=self.lookup_timeout
            )
        except asyncio.TimeoutError as e:
            raise AttestationTimeoutError(
                f"proof-of-existence lookup for attestation {attestation_id} "
                f"timed out after {self.lookup_timeout}s",
                timeout=self.lookup_timeout,
            ) from e

        record = AttestationRecord(details=details, attestation_id=confirmation_id)
        if self._gate is not None:
            self._log.info("Waiting for the verification transaction before writing")
            await self._gate

        self._committing = True
        try:
            path = await asyncio.to_thread(write_json_atomic, self.output_path, record.to_dict())
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"cannot write attestation to {self.output_path}: {e}", path=str(self.output_path)
            ) from e
        self._written = True
        self._log.info("Attestation written to %s", path)
        return record


def load_attestation(path: Union[str, Path]) -> AttestationRecord:
    """Read a persisted attestation artifact back into an AttestationRecord."""
    try:
        data = read_json(path)
    except (OSError, ValueError) as e:
        raise PersistenceError(f"cannot read attestation {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise PersistenceError(f"attestation {path} is not a JSON object", path=str(path))
    try:
        return AttestationRecord.from_dict(data)
    except ValueError as e:
        raise PersistenceError(f"attestation {path}: {e}", path=str(path)) from e


__all__ = ["AttestationFinalizer", "PoeSource", "load_attestation"]
