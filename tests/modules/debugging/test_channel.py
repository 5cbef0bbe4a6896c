import asyncio

import pytest

from autoclicker.modules.debugging import BroadcastChannel


def test_every_subscriber_receives_published_items():
    channel = BroadcastChannel(buffer_size=4)
    first = channel.subscribe()
    second = channel.subscribe()

    channel.publish("a")
    channel.publish("b")

    assert [first.get_nowait(), first.get_nowait()] == ["a", "b"]
    assert [second.get_nowait(), second.get_nowait()] == ["a", "b"]
    assert first.get_nowait() is None


def test_full_subscriber_drops_oldest():
    channel = BroadcastChannel(buffer_size=2)
    sub = channel.subscribe()

    for item in (1, 2, 3, 4):
        channel.publish(item)

    assert sub.dropped == 2
    assert [sub.get_nowait(), sub.get_nowait()] == [3, 4]


def test_publish_without_subscribers_is_noop():
    channel = BroadcastChannel()

    channel.publish("lost")

    assert channel.subscriber_count == 0


def test_closed_subscription_stops_receiving():
    channel = BroadcastChannel()
    with channel.subscribe() as sub:
        assert channel.subscriber_count == 1

    channel.publish("late")

    assert channel.subscriber_count == 0
    assert sub.get_nowait() is None


def test_invalid_buffer_size():
    with pytest.raises(ValueError):
        BroadcastChannel(buffer_size=0)


@pytest.mark.asyncio
async def test_async_get_waits_for_publish():
    channel = BroadcastChannel()
    sub = channel.subscribe()

    async def later():
        await asyncio.sleep(0.01)
        channel.publish("live")

    task = asyncio.create_task(later())
    item = await asyncio.wait_for(sub.get(), timeout=1)
    await task

    assert item == "live"
