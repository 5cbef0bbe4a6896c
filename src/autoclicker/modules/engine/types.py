"""
Scenario domain types.

A Scenario is loaded once per run and is never mutated by the engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from ...core.constants import (
    DEFAULT_DETECTION_QUALITY,
    ConditionOperator,
    DetectionType,
    ProcessorState,
    StopReason,
)
from ..vision.types import DetectionResult, Point, Rect
from ..vision.utils import ImageLike


@dataclass
class Condition:
    """One matchable visual pattern.

    Attributes:
        id: unique within the owning event
        image: reference image (path / bytes / ndarray); None when unavailable
        area: search area in frame coordinates; None searches the whole frame
        threshold: minimum similarity score, 0..100
        detection_type: EXACT restricts the search to ``area``
    """
    id: str
    name: str = ""
    image: Optional[ImageLike] = None
    area: Optional[Rect] = None
    threshold: float = 90.0
    detection_type: DetectionType = DetectionType.EXACT

    @property
    def search_area(self) -> Optional[Rect]:
        if self.detection_type is DetectionType.EXACT:
            return self.area
        return None

    def image_size(self) -> tuple[int, int]:
        """(w, h) of the reference image, (0, 0) if it is not an ndarray."""
        shape = getattr(self.image, "shape", None)
        if not shape:
            return (0, 0)
        return (int(shape[1]), int(shape[0]))


@dataclass
class Click:
    id: str
    name: str = ""
    position: Optional[Point] = None
    on_condition: bool = False  # 点击决定性条件的匹配中心
    press_duration_ms: int = 1
    random_offset: int = 0  # 随机抖动半径（像素）


@dataclass
class Swipe:
    id: str
    start: Point
    end: Point
    name: str = ""
    duration_ms: int = 300


@dataclass
class Pause:
    id: str
    duration_ms: int
    name: str = ""


Action = Union[Click, Swipe, Pause]


@dataclass
class Event:
    id: str
    name: str = ""
    conditions: List[Condition] = field(default_factory=list)
    condition_operator: ConditionOperator = ConditionOperator.AND
    actions: List[Action] = field(default_factory=list)
    enabled: bool = True


@dataclass
class EndCondition:
    event_id: str
    executions: int = 1


@dataclass
class Scenario:
    id: str
    name: str = ""
    events: List[Event] = field(default_factory=list)
    detection_quality: int = DEFAULT_DETECTION_QUALITY
    end_condition_operator: ConditionOperator = ConditionOperator.OR
    end_conditions: List[EndCondition] = field(default_factory=list)


@dataclass
class ProcessorResult:
    """Summary of one tick."""

    event: Optional[Event] = None
    condition: Optional[Condition] = None
    detection_result: Optional[DetectionResult] = None
    event_matched: bool = False


@dataclass
class SessionOutcome:
    state: ProcessorState
    reason: Optional[StopReason] = None
    ticks: int = 0
    executions: Dict[str, int] = field(default_factory=dict)
    failed_action: Optional[Action] = None
    error: Optional[str] = None
    report: Optional[object] = None  # DebugReport when debugging is enabled

    @property
    def failed(self) -> bool:
        return self.reason is StopReason.ACTION_FAILED


__all__ = [
    "Condition",
    "Click",
    "Swipe",
    "Pause",
    "Action",
    "Event",
    "EndCondition",
    "Scenario",
    "ProcessorResult",
    "SessionOutcome",
]
