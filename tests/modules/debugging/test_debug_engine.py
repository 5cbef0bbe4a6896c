import numpy as np
import pytest

from autoclicker.core.exceptions import StateError
from autoclicker.modules.debugging import DebugEngine, ProcessingDebugInfo, format_report
from autoclicker.modules.engine import Condition, Event, ProcessorResult, Scenario
from autoclicker.modules.vision import DetectionResult, Point, Rect


@pytest.fixture()
def scenario():
    button = Condition(id="c1", image=np.zeros((40, 60, 3), dtype=np.uint8))
    area_only = Condition(id="c2", area=Rect.from_xywh(0, 0, 30, 20))
    return Scenario(
        id="s1",
        name="demo",
        events=[
            Event(id="e1", name="press", conditions=[button, area_only]),
            Event(id="e2", conditions=[Condition(id="c1")]),
        ],
    )


@pytest.fixture()
def debug(scenario, clock):
    return DebugEngine(scenario, buffer_size=4, clock=clock)


def _run_event(debug, event, condition, detection, matched, clock):
    debug.on_event_start(event)
    debug.on_condition_start(condition)
    clock.advance(5)
    debug.on_condition_end(detection.matched)
    debug.on_event_end(ProcessorResult(event=event, condition=condition, detection_result=detection, event_matched=matched))


def test_report_covers_every_configured_scope(debug, scenario, clock):
    e1 = scenario.events[0]
    debug.on_session_start()
    debug.on_image_start()
    _run_event(debug, e1, e1.conditions[0], DetectionResult(True, Point(50, 50), 99.0), True, clock)
    debug.on_image_end(True)
    clock.advance(10)
    report = debug.on_session_end()

    assert debug.report is report
    assert report.session_info.processing_count == 1
    assert report.session_info.total_processing_time_ms == pytest.approx(15)
    assert report.image_info.success_count == 1

    events = {event.id: info for event, info in report.events_info}
    assert events["e1"].processing_count == 1
    assert events["e1"].success_count == 1
    assert events["e2"] == ProcessingDebugInfo()

    conditions = [(c.id, info.processing_count) for c, info in report.conditions_info]
    assert conditions == [("c1", 1), ("c2", 0), ("c1", 0)]


def test_condition_ids_are_scoped_by_event(debug, scenario, clock):
    e1, e2 = scenario.events
    debug.on_session_start()
    _run_event(debug, e2, e2.conditions[0], DetectionResult.not_found(), False, clock)
    report = debug.on_session_end()

    counts = [(c is e2.conditions[0], info.processing_count) for c, info in report.conditions_info]
    assert counts == [(False, 0), (False, 0), (True, 1)]


def test_debug_info_area_is_centered_on_match(debug, scenario, clock):
    e1 = scenario.events[0]
    sub = debug.channel.subscribe()
    debug.on_session_start()

    _run_event(debug, e1, e1.conditions[0], DetectionResult(True, Point(100, 80), 97.5), True, clock)

    info = sub.get_nowait()
    assert info is debug.last_result
    assert info is debug.last_positive_info
    assert info.condition_area == Rect(70, 60, 130, 100)


def test_area_size_used_when_image_unknown(debug, scenario, clock):
    e1 = scenario.events[0]
    debug.on_session_start()

    _run_event(debug, e1, e1.conditions[1], DetectionResult(True, Point(15, 10), 95.0), True, clock)

    assert debug.last_result.condition_area == Rect(0, 0, 30, 20)


def test_negative_result_keeps_last_positive(debug, scenario, clock):
    e1 = scenario.events[0]
    debug.on_session_start()
    _run_event(debug, e1, e1.conditions[0], DetectionResult(True, Point(100, 80), 97.5), True, clock)
    positive = debug.last_positive_info

    _run_event(debug, e1, e1.conditions[0], DetectionResult.not_found(12.0), False, clock)

    assert debug.last_result.detection_result.matched is False
    assert debug.last_result.condition_area == Rect.empty()
    assert debug.last_positive_info is positive


def test_event_without_condition_is_not_published(debug, scenario):
    sub = debug.channel.subscribe()
    debug.on_session_start()
    debug.on_event_start(scenario.events[0])
    debug.on_event_end(ProcessorResult(event=scenario.events[0], event_matched=False))

    assert sub.get_nowait() is None
    assert debug.last_result is None


def test_clear_keeps_report(debug, scenario, clock):
    e1 = scenario.events[0]
    debug.on_session_start()
    _run_event(debug, e1, e1.conditions[0], DetectionResult(True, Point(1, 1), 99.0), True, clock)
    report = debug.on_session_end()

    debug.clear()

    assert debug.last_result is None
    assert debug.last_positive_info is None
    assert debug.report is report


def test_pairing_violations_raise(debug, scenario):
    event = scenario.events[0]
    condition = event.conditions[0]

    with pytest.raises(StateError):
        debug.on_session_end()
    with pytest.raises(StateError):
        debug.on_image_end()
    with pytest.raises(StateError):
        debug.on_event_end(ProcessorResult())
    with pytest.raises(StateError):
        debug.on_condition_end(False)
    with pytest.raises(StateError):
        debug.on_condition_start(condition)  # outside of an event

    debug.on_session_start()
    with pytest.raises(StateError):
        debug.on_session_start()

    debug.on_image_start()
    with pytest.raises(StateError):
        debug.on_image_start()

    debug.on_event_start(event)
    with pytest.raises(StateError):
        debug.on_event_start(event)

    debug.on_condition_start(condition)
    with pytest.raises(StateError):
        debug.on_condition_start(condition)


def test_format_report_lines(debug, scenario):
    debug.on_session_start()
    report = debug.on_session_end()

    lines = format_report(report)

    assert lines[0] == "scenario demo"
    assert any(line.startswith("  event press:") for line in lines)
    assert sum(line.startswith("  condition c1:") for line in lines) == 2
