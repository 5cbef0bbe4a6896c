"""
Frame source contract and an in-memory implementation.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from ...core.exceptions import SourceExhausted
from ..vision.utils import ImageLike


class FrameSource(Protocol):
    async def next_frame(self) -> Optional[ImageLike]:
        """Return the next screen capture, or None when none is available yet.

        A finite source raises SourceExhausted once it has nothing left.
        """
        ...


class StaticFrameSource:
    """Replays a fixed list of frames.

    With ``repeat_last`` the last frame is returned forever, otherwise the
    source is exhausted after the list. ``None`` entries simulate transient
    capture misses.
    """

    def __init__(self, frames: Iterable[Optional[ImageLike]], *, repeat_last: bool = True) -> None:
        self._frames: List[Optional[ImageLike]] = list(frames)
        if not self._frames:
            raise ValueError("StaticFrameSource needs at least one frame")
        self.repeat_last = repeat_last
        self._index = 0
        self.requests = 0

    async def next_frame(self) -> Optional[ImageLike]:
        self.requests += 1
        if self._index >= len(self._frames) and not self.repeat_last:
            raise SourceExhausted(f"all {len(self._frames)} frames replayed")
        frame = self._frames[min(self._index, len(self._frames) - 1)]
        self._index += 1
        return frame


__all__ = ["FrameSource", "StaticFrameSource"]
