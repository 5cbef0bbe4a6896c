import textwrap

import cv2
import pytest

from autoclicker.core.constants import ConditionOperator, DetectionType
from autoclicker.core.exceptions import ConfigError
from autoclicker.modules.engine import (
    Click,
    Condition,
    EndCondition,
    Event,
    Pause,
    Scenario,
    Swipe,
    load_scenario,
    parse_scenario,
    validate_scenario,
)
from autoclicker.modules.vision import Point, Rect

SCENARIO_YAML = """
id: daily
name: Daily loop
detection_quality: 800
end_condition_operator: and
end_conditions:
  - event_id: press
    executions: 3
events:
  - id: press
    name: Press button
    operator: or
    conditions:
      - id: btn
        image: images/button.png
        area: [80, 80, 120, 120]
        threshold: 85
      - id: ghost
        image: images/missing.png
        detection_type: whole_screen
    actions:
      - type: click
        on_condition: true
        press_duration_ms: 20
      - type: pause
        duration_ms: 500
      - type: swipe
        id: scroll
        start: [10, 200]
        end: [10, 50]
        duration_ms: 250
  - id: idle
    enabled: false
    actions:
      - type: click
        position: [5, 6]
        random_offset: 3
"""


@pytest.fixture()
def scenario_file(tmp_path, button):
    (tmp_path / "images").mkdir()
    cv2.imwrite(str(tmp_path / "images" / "button.png"), button)
    path = tmp_path / "daily.yaml"
    path.write_text(SCENARIO_YAML, encoding="utf-8")
    return path


def test_load_scenario_from_yaml(scenario_file, button):
    scenario = load_scenario(scenario_file)

    assert scenario.id == "daily"
    assert scenario.detection_quality == 800
    assert scenario.end_condition_operator is ConditionOperator.AND
    assert scenario.end_conditions == [EndCondition(event_id="press", executions=3)]

    press, idle = scenario.events
    assert press.condition_operator is ConditionOperator.OR
    btn, ghost = press.conditions
    assert btn.area == Rect(80, 80, 200, 200)
    assert btn.threshold == 85
    assert btn.image.shape == button.shape
    assert ghost.image is None
    assert ghost.detection_type is DetectionType.WHOLE_SCREEN
    assert ghost.search_area is None

    click, pause, swipe = press.actions
    assert click == Click(id="press-action-1", on_condition=True, press_duration_ms=20)
    assert pause == Pause(id="press-action-2", duration_ms=500)
    assert swipe == Swipe(id="scroll", start=Point(10, 200), end=Point(10, 50), duration_ms=250)

    assert idle.enabled is False
    assert idle.conditions == []
    assert idle.actions[0].position == Point(5, 6)
    assert idle.actions[0].random_offset == 3


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_scenario(tmp_path / "nope.yaml")


def test_yaml_syntax_error(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("id: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_scenario(path)


@pytest.mark.parametrize(
    "config",
    [
        {"name": "no id"},
        {"id": "s", "events": [{"id": "e", "actions": [{"type": "teleport"}]}]},
        {"id": "s", "events": [{"id": "e", "operator": "xor"}]},
        {"id": "s", "events": [{"id": "e", "conditions": [{"id": "c", "area": [1, 2]}]}]},
        {"id": "s", "events": [{"id": "e", "actions": [{"type": "swipe", "start": [0, 0]}]}]},
        {"id": "s", "detection_quality": "high"},
    ],
)
def test_malformed_config_raises(config):
    with pytest.raises(ConfigError):
        parse_scenario(config)


def test_validation_collects_every_problem():
    scenario = Scenario(
        id="s",
        detection_quality=100,
        events=[
            Event(id="e1", conditions=[Condition(id="c", threshold=120), Condition(id="c")]),
            Event(
                id="e1",
                actions=[
                    Click(id="a1"),
                    Swipe(id="a2", start=Point(0, 0), end=Point(1, 1), duration_ms=0),
                    Pause(id="a3", duration_ms=-1),
                ],
            ),
        ],
        end_conditions=[EndCondition("ghost"), EndCondition("e1", executions=0)],
    )

    with pytest.raises(ConfigError) as exc:
        validate_scenario(scenario)

    message = str(exc.value)
    for fragment in (
        "detection_quality",
        "duplicate event id: e1",
        "duplicate condition id c",
        "threshold 120",
        "needs a position",
        "duration must be positive",
        "negative duration",
        "unknown event ghost",
        "executions must be >= 1",
    ):
        assert fragment in message


def test_valid_scenario_passes():
    scenario = Scenario(
        id="s",
        events=[Event(id="e", conditions=[Condition(id="c")], actions=[Click(id="a", position=Point(1, 1))])],
        end_conditions=[EndCondition("e")],
    )

    validate_scenario(scenario)


def test_absolute_image_path(tmp_path, button):
    image_path = tmp_path / "abs.png"
    cv2.imwrite(str(image_path), button)
    config = textwrap.dedent(
        f"""
        id: s
        events:
          - id: e
            conditions:
              - id: c
                image: {image_path.as_posix()}
        """
    )
    path = tmp_path / "nested" / "s.yaml"
    path.parent.mkdir()
    path.write_text(config, encoding="utf-8")

    scenario = load_scenario(path)

    assert scenario.events[0].conditions[0].image is not None
