"""
Timing and outcome accumulator for one measured scope.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from ...core.exceptions import StateError


@dataclass(frozen=True)
class ProcessingDebugInfo:
    """Immutable summary of a recorder, durations in milliseconds."""

    processing_count: int = 0
    success_count: int = 0
    total_processing_time_ms: float = 0.0
    min_processing_time_ms: float = 0.0
    max_processing_time_ms: float = 0.0
    avg_processing_time_ms: float = 0.0


class ProcessingRecorder:
    """Records start/end pairs of one scope (session, image, event or condition).

    ``on_start`` and ``on_end`` must alternate; anything else is a pipeline bug
    and raises StateError.
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter) -> None:
        self._clock = clock
        self._start_ts: Optional[float] = None
        self.count = 0
        self.success_count = 0
        self.total_ms = 0.0
        self.min_ms = float("inf")
        self.max_ms = 0.0

    @property
    def in_progress(self) -> bool:
        return self._start_ts is not None

    def on_start(self) -> None:
        if self._start_ts is not None:
            raise StateError("on_start called twice, call on_end first")
        self._start_ts = self._clock()

    def on_end(self, success: bool = True) -> None:
        if self._start_ts is None:
            raise StateError("on_end called before on_start")

        duration_ms = (self._clock() - self._start_ts) * 1000.0
        self._start_ts = None
        self.count += 1
        if success:
            self.success_count += 1
        self.total_ms += duration_ms
        self.min_ms = min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)

    def to_summary(self) -> ProcessingDebugInfo:
        if self.count == 0:
            return ProcessingDebugInfo()
        return ProcessingDebugInfo(
            processing_count=self.count,
            success_count=self.success_count,
            total_processing_time_ms=self.total_ms,
            min_processing_time_ms=self.min_ms,
            max_processing_time_ms=self.max_ms,
            avg_processing_time_ms=self.total_ms / self.count,
        )


__all__ = ["ProcessingDebugInfo", "ProcessingRecorder"]
