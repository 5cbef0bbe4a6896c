"""
Debug engine: observes a scenario processing session.

The processor reports the lifecycle of every scope (session, image, event,
condition). Each scope is measured by a ProcessingRecorder; event and
condition recorders live in arenas keyed by id, created on first use and kept
for the whole session. When the session ends a DebugReport is assembled for
every configured event and condition, including those never evaluated.

The engine is a pure observer and never changes processing outcomes.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ...core.exceptions import StateError
from ...core.logger import logger
from ..engine.types import Condition, Event, ProcessorResult, Scenario
from ..vision.types import DetectionResult, Rect
from .channel import BroadcastChannel
from .recorder import ProcessingDebugInfo, ProcessingRecorder


@dataclass(frozen=True)
class DebugInfo:
    """Live record of one event evaluation, used to highlight the match."""

    event: Event
    condition: Condition
    detection_result: DetectionResult
    condition_area: Rect


@dataclass(frozen=True)
class DebugReport:
    scenario: Scenario
    session_info: ProcessingDebugInfo
    image_info: ProcessingDebugInfo
    events_info: List[Tuple[Event, ProcessingDebugInfo]]
    conditions_info: List[Tuple[Condition, ProcessingDebugInfo]]


class DebugEngine:
    def __init__(
        self,
        scenario: Scenario,
        *,
        buffer_size: int = 32,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.scenario = scenario
        self._clock = clock
        self._session_recorder = ProcessingRecorder(clock)
        self._image_recorder = ProcessingRecorder(clock)
        self._event_recorders: Dict[str, ProcessingRecorder] = {}
        self._condition_recorders: Dict[str, ProcessingRecorder] = {}

        self._current_event_id: Optional[str] = None
        self._current_condition_id: Optional[str] = None

        self.channel: BroadcastChannel[DebugInfo] = BroadcastChannel(buffer_size)
        self.last_result: Optional[DebugInfo] = None
        self.last_positive_info: Optional[DebugInfo] = None
        self.report: Optional[DebugReport] = None
        self._log = logger.bind(module="DebugEngine", scenario_id=scenario.id)

    # ── 会话 ──

    def on_session_start(self) -> None:
        if self._session_recorder.in_progress:
            raise StateError("session start called without a session end")
        # 每个会话从零开始统计
        self.report = None
        self._session_recorder = ProcessingRecorder(self._clock)
        self._image_recorder = ProcessingRecorder(self._clock)
        self._event_recorders.clear()
        self._condition_recorders.clear()
        self._current_event_id = None
        self._current_condition_id = None
        self._session_recorder.on_start()

    def on_session_end(self, success: bool = True) -> DebugReport:
        if not self._session_recorder.in_progress:
            raise StateError("session end called before session start")
        self._session_recorder.on_end(success)

        events_info: List[Tuple[Event, ProcessingDebugInfo]] = []
        conditions_info: List[Tuple[Condition, ProcessingDebugInfo]] = []
        for event in self.scenario.events:
            events_info.append((event, self._summary(self._event_recorders, event.id)))
            for condition in event.conditions:
                conditions_info.append(
                    (condition, self._summary(self._condition_recorders, self._condition_key(event.id, condition.id)))
                )

        self.report = DebugReport(
            scenario=self.scenario,
            session_info=self._session_recorder.to_summary(),
            image_info=self._image_recorder.to_summary(),
            events_info=events_info,
            conditions_info=conditions_info,
        )
        self._log.debug("debug report ready: images={}", self.report.image_info.processing_count)
        return self.report

    # ── 图像 ──

    def on_image_start(self) -> None:
        if self._image_recorder.in_progress:
            raise StateError("image start called without an image end")
        self._image_recorder.on_start()

    def on_image_end(self, success: bool = False) -> None:
        if not self._image_recorder.in_progress:
            raise StateError("image end called before image start")
        self._image_recorder.on_end(success)

    # ── 事件 ──

    def on_event_start(self, event: Event) -> None:
        if self._current_event_id is not None:
            raise StateError("event start called without an event end")
        self._current_event_id = event.id
        self._event_recorders.setdefault(event.id, ProcessingRecorder(self._clock)).on_start()

    def on_event_end(self, result: ProcessorResult) -> None:
        if self._current_event_id is None:
            raise StateError("event end called before event start")
        recorder = self._event_recorders[self._current_event_id]
        recorder.on_end(result.event_matched and result.event is not None)
        self._current_event_id = None

        if result.event is not None and result.condition is not None and result.detection_result is not None:
            self._publish(DebugInfo(
                event=result.event,
                condition=result.condition,
                detection_result=result.detection_result,
                condition_area=self._condition_area(result.condition, result.detection_result),
            ))

    # ── 条件 ──

    def on_condition_start(self, condition: Condition) -> None:
        if self._current_condition_id is not None:
            raise StateError("condition start called without a condition end")
        if self._current_event_id is None:
            raise StateError("condition start called outside of an event")
        key = self._condition_key(self._current_event_id, condition.id)
        self._current_condition_id = key
        self._condition_recorders.setdefault(key, ProcessingRecorder(self._clock)).on_start()

    def on_condition_end(self, matched: bool) -> None:
        if self._current_condition_id is None:
            raise StateError("condition end called before condition start")
        self._condition_recorders[self._current_condition_id].on_end(matched)
        self._current_condition_id = None

    # ── 实时流 ──

    def _publish(self, info: DebugInfo) -> None:
        self.last_result = info
        if info.detection_result.matched:
            self.last_positive_info = info
        self.channel.publish(info)

    def clear(self) -> None:
        """Drop cached live values; the report is kept."""
        self.last_result = None
        self.last_positive_info = None

    @staticmethod
    def _condition_area(condition: Condition, detection: DetectionResult) -> Rect:
        if not detection.matched:
            return Rect.empty()
        width, height = condition.image_size()
        if (width, height) == (0, 0) and condition.area is not None:
            width, height = condition.area.width, condition.area.height
        return Rect.centered_on(detection.center, width, height)

    @staticmethod
    def _condition_key(event_id: str, condition_id: str) -> str:
        # condition ids are only unique inside their event
        return f"{event_id}/{condition_id}"

    @staticmethod
    def _summary(recorders: Dict[str, ProcessingRecorder], key: str) -> ProcessingDebugInfo:
        recorder = recorders.get(key)
        return recorder.to_summary() if recorder is not None else ProcessingDebugInfo()


__all__ = ["DebugInfo", "DebugReport", "DebugEngine"]
