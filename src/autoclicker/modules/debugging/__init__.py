from .channel import BroadcastChannel, Subscription
from .engine import DebugEngine, DebugInfo, DebugReport
from .recorder import ProcessingDebugInfo, ProcessingRecorder
from .report import format_report

__all__ = [
    "BroadcastChannel",
    "Subscription",
    "DebugEngine",
    "DebugInfo",
    "DebugReport",
    "ProcessingDebugInfo",
    "ProcessingRecorder",
    "format_report",
]
