import asyncio

import pytest
from conftest import confirmed, finalized, included

from zkv_attest.errors import NetworkConnectionError
from zkv_attest.events import EventStream, parse_event
from zkv_attest.types import (AttestationConfirmed, EventKind, Finalized,
                              IncludedInBlock)


def test_parse_lifecycle_events():
    ev = parse_event(included())
    assert isinstance(ev, IncludedInBlock)
    assert ev.kind is EventKind.INCLUDED_IN_BLOCK
    assert (ev.attestation_id, ev.leaf_digest, ev.block_hash, ev.tx_hash) == ("0xA1", "0xD1", "0xB1", "0xT1")
    assert "event" not in ev.raw

    fin = parse_event(finalized(blockNumber=7))
    assert isinstance(fin, Finalized)
    assert fin.block_info == {"blockHash": "0xB1", "blockNumber": 7}

    conf = parse_event(confirmed(42))
    assert isinstance(conf, AttestationConfirmed)
    assert conf.confirmation_id == 42


def test_unknown_kinds_are_not_lifecycle_events():
    assert parse_event({"event": "broadcast"}) is None
    assert parse_event({"event": "transactionResult", "status": "succeeded"}) is None
    assert parse_event({}) is None


@pytest.mark.asyncio
async def test_stream_preserves_order_and_ends():
    stream = EventStream()
    events = [parse_event(included()), parse_event(finalized()), parse_event(confirmed())]
    for ev in events:
        stream.push(ev)
    stream.close()
    # pushes after close are dropped
    stream.push(parse_event(confirmed("late")))

    seen = [ev async for ev in stream]
    assert seen == events
    assert stream.closed
    # iterating again ends immediately
    assert [ev async for ev in stream] == []


@pytest.mark.asyncio
async def test_stream_close_with_error_raises_after_drain():
    stream = EventStream()
    stream.push(parse_event(included()))
    stream.close(NetworkConnectionError("lost"))

    seen = []
    with pytest.raises(NetworkConnectionError):
        async for ev in stream:
            seen.append(ev)
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_consumer_waits_for_producer():
    stream = EventStream()

    async def produce():
        await asyncio.sleep(0.01)
        stream.push(parse_event(finalized()))
        stream.close()

    task = asyncio.create_task(produce())
    seen = [ev async for ev in stream]
    await task
    assert [type(e) for e in seen] == [Finalized]
