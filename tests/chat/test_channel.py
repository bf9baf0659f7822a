import asyncio

import pytest

from domain.chat.entity import Message
from infrastructure.realtime.channel import ChannelClosed, DeliveryChannel


def _msgs(n):
    return [Message.chat("s", f"m{i}") for i in range(n)]


def test_drop_new_skips_when_full():
    ch = DeliveryChannel(maxsize=2, overflow_policy="drop_new")
    a, b, c = _msgs(3)
    assert ch.offer(a) and ch.offer(b)
    assert ch.offer(c) is False
    assert ch.dropped == 1
    assert ch.qsize() == 2


@pytest.mark.asyncio
async def test_drop_oldest_keeps_newest_in_order():
    ch = DeliveryChannel(maxsize=2, overflow_policy="drop_oldest")
    a, b, c = _msgs(3)
    for m in (a, b, c):
        ch.offer(m)
    assert await ch.receive() is b
    assert await ch.receive() is c
    assert ch.dropped == 1


@pytest.mark.asyncio
async def test_disconnect_policy_closes_channel():
    ch = DeliveryChannel(maxsize=1, overflow_policy="disconnect")
    a, b = _msgs(2)
    ch.offer(a)
    assert ch.offer(b) is False
    assert ch.closed
    with pytest.raises(ChannelClosed):
        await ch.receive()


def test_unknown_policy_falls_back_to_drop_new():
    ch = DeliveryChannel(maxsize=1, overflow_policy="bogus")
    assert ch.policy == "drop_new"


@pytest.mark.asyncio
async def test_close_wakes_pending_receive():
    ch = DeliveryChannel(maxsize=1)
    waiter = asyncio.create_task(ch.receive())
    await asyncio.sleep(0)
    ch.close()
    with pytest.raises(ChannelClosed):
        await asyncio.wait_for(waiter, timeout=1.0)
    assert ch.offer(Message.chat("s", "late")) is False


def test_tokens_are_unique():
    assert DeliveryChannel().token != DeliveryChannel().token


@pytest.mark.asyncio
async def test_receive_timeout_keeps_channel_usable():
    ch = DeliveryChannel(maxsize=2)
    with pytest.raises(asyncio.TimeoutError):
        await ch.receive(timeout=0.01)
    assert not ch.closed
    msg = Message.chat("s", "after")
    assert ch.offer(msg)
    assert await ch.receive(timeout=1.0) is msg
