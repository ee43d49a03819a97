"""
zkv_attest.events
=================

Single-consumer channel carrying `LifecycleEvent`s from the transport's
reader task to the tracker, plus the wire → event parser.

Wire shape of a lifecycle notification (`result` of a `verify_event`):

    {"event": "includedInBlock", "attestationId": 42, "leafDigest": "0x..", "blockHash": "0x..", "txHash": "0x.."}
    {"event": "finalized", "blockHash": "0x..", ...}
    {"event": "attestationConfirmed", "id": 42, ...}

`transactionResult` and `error` kinds are not lifecycle events; the session
routes them to the submission's transaction future instead.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from .types import (AttestationConfirmed, EventKind, Finalized, IncludedInBlock,
                    LifecycleEvent)

logger = logging.getLogger(__name__)

_END = object()


def parse_event(payload: Mapping[str, Any]) -> Optional[LifecycleEvent]:
    """
    Convert a notification payload into a LifecycleEvent.

    Returns None for kinds that are not lifecycle events.
    """
    kind = payload.get("event")
    data = {k: v for k, v in payload.items() if k != "event"}
    if kind == EventKind.INCLUDED_IN_BLOCK.value:
        return IncludedInBlock(
            attestation_id=data.get("attestationId"),
            leaf_digest=data.get("leafDigest"),
            block_hash=data.get("blockHash"),
            tx_hash=data.get("txHash"),
            raw=data,
        )
    if kind == EventKind.FINALIZED.value:
        return Finalized(block_info=data)
    if kind == EventKind.ATTESTATION_CONFIRMED.value:
        return AttestationConfirmed(confirmation_id=data.get("id"), raw=data)
    return None


class EventStream:
    """
    Async iterator over lifecycle events for one submission.

    Producers call `push()` and finally `close()`; a close with an exception
    makes the consumer's iteration raise it after the queued events drain.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: LifecycleEvent) -> None:
        if self._closed:
            logger.debug("dropping %s received after stream close", type(event).__name__)
            return
        self._queue.put_nowait(event)

    def close(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        self._error = error
        self._queue.put_nowait(_END)

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> LifecycleEvent:
        item = await self._queue.get()
        if item is _END:
            # Leave the marker for any later __anext__ call
            self._queue.put_nowait(_END)
            if self._error is not None:
                raise self._error
            raise StopAsyncIteration
        return item


__all__ = ["EventStream", "parse_event"]
