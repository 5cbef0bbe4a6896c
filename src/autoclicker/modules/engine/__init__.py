from .actions import ActionDispatcher, ActionExecutor
from .loader import load_scenario, parse_scenario, validate_scenario
from .processor import ScenarioProcessor
from .sources import FrameSource, StaticFrameSource
from .types import (
    Action,
    Click,
    Condition,
    EndCondition,
    Event,
    Pause,
    ProcessorResult,
    Scenario,
    SessionOutcome,
    Swipe,
)

__all__ = [
    "ActionDispatcher",
    "ActionExecutor",
    "load_scenario",
    "parse_scenario",
    "validate_scenario",
    "ScenarioProcessor",
    "FrameSource",
    "StaticFrameSource",
    "Action",
    "Click",
    "Condition",
    "EndCondition",
    "Event",
    "Pause",
    "ProcessorResult",
    "Scenario",
    "SessionOutcome",
    "Swipe",
]
