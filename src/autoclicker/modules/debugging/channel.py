"""
Multi-subscriber broadcast channel for live debug records.

publish() never blocks: every subscriber owns a bounded asyncio.Queue and,
when it is full, the oldest pending item is dropped to make room.
"""
from __future__ import annotations

import asyncio
from typing import Generic, List, Optional, TypeVar

from ...core.logger import logger

T = TypeVar("T")


class Subscription(Generic[T]):
    """Async iterator over the items published after subscribing."""

    def __init__(self, channel: "BroadcastChannel[T]", maxsize: int) -> None:
        self._channel = channel
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def _offer(self, item: T) -> None:
        try:
            self.queue.put_nowait(item)
        except asyncio.QueueFull:
            # 队列已满：丢弃最旧的一条再放入
            try:
                self.queue.get_nowait()
                self.dropped += 1
                self.queue.put_nowait(item)
            except (asyncio.QueueEmpty, asyncio.QueueFull):
                pass

    async def get(self) -> T:
        return await self.queue.get()

    def get_nowait(self) -> Optional[T]:
        try:
            return self.queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def close(self) -> None:
        self._channel.unsubscribe(self)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        return await self.queue.get()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class BroadcastChannel(Generic[T]):
    def __init__(self, buffer_size: int = 32) -> None:
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive: {buffer_size}")
        self.buffer_size = buffer_size
        self._subscribers: List[Subscription[T]] = []
        self._log = logger.bind(module="BroadcastChannel")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, buffer_size: Optional[int] = None) -> Subscription[T]:
        sub: Subscription[T] = Subscription(self, buffer_size or self.buffer_size)
        self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)
            if sub.dropped:
                self._log.debug("subscriber closed, {} items dropped", sub.dropped)

    def publish(self, item: T) -> None:
        for sub in list(self._subscribers):
            sub._offer(item)


__all__ = ["BroadcastChannel", "Subscription"]
