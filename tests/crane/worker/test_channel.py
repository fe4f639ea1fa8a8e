# tests/crane/worker/test_channel.py
import asyncio

import pytest

from crane.worker.channel import ChannelClosed, channel


@pytest.mark.asyncio
async def test_channel_deliversInOrderThenEnds():
    tx, rx = channel(4)
    for item in (1, 2, 3):
        await tx.send(item)
    await tx.close()

    assert [item async for item in rx] == [1, 2, 3]
    assert await rx.recv() is None


@pytest.mark.asyncio
async def test_channel_sendAfterCloseRaises():
    tx, _rx = channel()
    await tx.close()
    assert tx.isClosed
    with pytest.raises(ChannelClosed):
        await tx.send("late")
    with pytest.raises(ChannelClosed):
        tx.trySend("late")


@pytest.mark.asyncio
async def test_channel_closeIsIdempotent():
    tx, rx = channel()
    await tx.close()
    await tx.close()
    assert await rx.recv() is None
    assert await rx.recv() is None


@pytest.mark.asyncio
async def test_channel_boundedSendSuspendsUntilDrained():
    tx, rx = channel(1)
    await tx.send("first")
    assert tx.trySend("second") is False

    pending = asyncio.ensure_future(tx.send("second"))
    await asyncio.sleep(0)
    assert not pending.done()

    assert await rx.recv() == "first"
    await asyncio.wait_for(pending, 1)
    assert await rx.recv() == "second"


@pytest.mark.asyncio
async def test_channel_clonesShareOneStream():
    tx, rx = channel()
    other = tx.clone()

    await tx.send("a")
    await other.send("b")
    await other.close()

    assert tx.isClosed
    assert [item async for item in rx] == ["a", "b"]


@pytest.mark.asyncio
async def test_channel_recvTimeout():
    _tx, rx = channel()
    with pytest.raises(asyncio.TimeoutError):
        await rx.recv(timeout=0.01)
