"""
Event tracker: the state machine between submission and finalization.

    IDLE --IncludedInBlock--> SEEN_INCLUDED --Finalized--> SEEN_FINALIZED
      |                            |                            |
      |                            +----AttestationConfirmed----+--> DONE
      +--AttestationConfirmed--> OutOfOrderEventError

`IncludedInBlock` is the only hard precondition for `AttestationConfirmed`;
`Finalized` is observational and may arrive before or after confirmation.
The terminal transition runs the finalizer exactly once. Later confirmations
are logged and ignored, so the persisted artifact is write-once per run.

All handlers run on the event loop that owns the stream; there is one proof
in flight, so `TrackerState` needs no lock.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, Optional, Protocol

from .errors import OutOfOrderEventError, SubmissionError
from .types import (AttestationConfirmed, AttestationRecord, Finalized,
                    IncludedInBlock, LifecycleEvent)


class TrackerPhase(str, Enum):
    IDLE = "idle"
    SEEN_INCLUDED = "seen_included"
    SEEN_FINALIZED = "seen_finalized"
    DONE = "done"


@dataclass
class TrackerState:
    attestation_id: Optional[Any] = None
    leaf_digest: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.attestation_id is not None and bool(self.leaf_digest)


class Finalizer(Protocol):
    async def finalize(
        self, attestation_id: Any, leaf_digest: str, confirmation_id: Any
    ) -> AttestationRecord: ...


class EventTracker:
    def __init__(self, finalizer: Finalizer, *, logger: Optional[logging.Logger] = None) -> None:
        self._finalizer = finalizer
        self._log = logger or logging.getLogger("zkv_attest.tracker")
        self.state = TrackerState()
        self.phase = TrackerPhase.IDLE
        self.record: Optional[AttestationRecord] = None
        self._completion: Optional[asyncio.Future] = None

    @property
    def done(self) -> bool:
        return self.phase is TrackerPhase.DONE

    def _completion_future(self) -> asyncio.Future:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    async def handle(self, event: LifecycleEvent) -> None:
        """Apply one lifecycle event."""
        if isinstance(event, IncludedInBlock):
            self._on_included(event)
        elif isinstance(event, Finalized):
            self._on_finalized(event)
        elif isinstance(event, AttestationConfirmed):
            await self._on_confirmed(event)
        else:
            raise TypeError(f"not a lifecycle event: {event!r}")

    def _on_included(self, event: IncludedInBlock) -> None:
        if self.done:
            self._log.warning("IncludedInBlock after attestation was persisted; ignored")
            return
        if self.state.attestation_id is not None or self.state.leaf_digest is not None:
            self._log.warning(
                "IncludedInBlock received again; replacing attestation %s / leaf %s",
                self.state.attestation_id,
                self.state.leaf_digest,
            )
        self.state.attestation_id = event.attestation_id
        self.state.leaf_digest = event.leaf_digest
        if self.phase is TrackerPhase.IDLE:
            self.phase = TrackerPhase.SEEN_INCLUDED
        self._log.info(
            "Proof included in block %s: attestation %s, leaf %s",
            event.block_hash or "<unknown>",
            event.attestation_id,
            event.leaf_digest,
        )

    def _on_finalized(self, event: Finalized) -> None:
        self._log.info("Proof finalized: %s", dict(event.block_info))
        if self.phase is TrackerPhase.SEEN_INCLUDED:
            self.phase = TrackerPhase.SEEN_FINALIZED

    async def _on_confirmed(self, event: AttestationConfirmed) -> None:
        if self.done:
            self._log.warning(
                "Duplicate AttestationConfirmed %s ignored; artifact already written",
                event.confirmation_id,
            )
            return
        self._log.info("Attestation confirmed: %s", event.confirmation_id)
        completion = self._completion_future()
        if self.phase is TrackerPhase.IDLE or not self.state.ready:
            err = OutOfOrderEventError(
                "AttestationConfirmed arrived before IncludedInBlock provided "
                "an attestation id and leaf digest",
                event="AttestationConfirmed",
                phase=self.phase.value,
            )
            self._fail(completion, err)
            raise err
        if event.confirmation_id is None:
            err = SubmissionError("AttestationConfirmed carries no attestation id")
            self._fail(completion, err)
            raise err
        try:
            record = await self._finalizer.finalize(
                self.state.attestation_id, self.state.leaf_digest, event.confirmation_id
            )
        except asyncio.CancelledError:
            completion.cancel()
            raise
        except Exception as e:
            self._fail(completion, e)
            raise
        self.record = record
        self.phase = TrackerPhase.DONE
        if not completion.done():
            completion.set_result(record)

    @staticmethod
    def _fail(completion: asyncio.Future, exc: Exception) -> None:
        if not completion.done():
            completion.set_exception(exc)
            # Mark retrieved: the caller re-raises it.
            completion.exception()

    async def wait(self) -> AttestationRecord:
        """Wait until the terminal transition has persisted the record."""
        return await self._completion_future()

    async def run(self, events: AsyncIterable[LifecycleEvent]) -> AttestationRecord:
        """
        Consume `events` until the attestation is persisted.

        Raises whatever the stream or a transition raises, or SubmissionError
        if the stream ends first.
        """
        async for event in events:
            await self.handle(event)
            if self.done:
                break
        if not self.done:
            raise SubmissionError(
                f"event stream ended in phase {self.phase.value} before the attestation was confirmed"
            )
        return await self.wait()


__all__ = ["EventTracker", "TrackerPhase", "TrackerState", "Finalizer"]
