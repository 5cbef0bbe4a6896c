"""
Plain-text rendering of a DebugReport for logs and the command line.
"""
from __future__ import annotations

from typing import List

from .engine import DebugReport
from .recorder import ProcessingDebugInfo


def _fmt(info: ProcessingDebugInfo) -> str:
    return (
        f"count={info.processing_count} success={info.success_count} "
        f"total={info.total_processing_time_ms:.1f}ms "
        f"min={info.min_processing_time_ms:.1f}ms "
        f"max={info.max_processing_time_ms:.1f}ms "
        f"avg={info.avg_processing_time_ms:.1f}ms"
    )


def format_report(report: DebugReport) -> List[str]:
    """Render the report, one line per scope."""
    name = report.scenario.name or report.scenario.id
    lines = [
        f"scenario {name}",
        f"  session: {_fmt(report.session_info)}",
        f"  images:  {_fmt(report.image_info)}",
    ]
    for event, info in report.events_info:
        lines.append(f"  event {event.name or event.id}: {_fmt(info)}")
    for condition, info in report.conditions_info:
        lines.append(f"  condition {condition.name or condition.id}: {_fmt(info)}")
    return lines


__all__ = ["format_report"]
