"""
YAML 场景配置加载器

加载、解析并校验场景定义，生成只读的 Scenario 对象。
条件图片路径相对 YAML 文件所在目录解析；图片无法读取时保留为空，
运行时按未匹配处理。
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from ...core.config import settings
from ...core.constants import (
    DETECTION_QUALITY_MIN,
    ConditionOperator,
    DetectionType,
)
from ...core.exceptions import ConfigError
from ...core.logger import logger
from ..vision.types import Point, optional_rect
from ..vision.utils import clear_image_cache, load_image
from .types import Action, Click, Condition, EndCondition, Event, Pause, Scenario, Swipe

_log = logger.bind(module="ScenarioLoader")


def validate_scenario(scenario: Scenario) -> None:
    """Check a scenario before a session starts.

    Raises:
        ConfigError: with every problem found, one per line
    """
    errors: List[str] = []

    if scenario.detection_quality < DETECTION_QUALITY_MIN:
        errors.append(f"detection_quality {scenario.detection_quality} < {DETECTION_QUALITY_MIN}")

    event_ids = set()
    for event in scenario.events:
        if event.id in event_ids:
            errors.append(f"duplicate event id: {event.id}")
        event_ids.add(event.id)

        if not isinstance(event.condition_operator, ConditionOperator):
            errors.append(f"event {event.id}: invalid condition operator {event.condition_operator!r}")

        if not event.conditions:
            _log.warning("事件 {} 没有条件，永远不会触发", event.id)

        condition_ids = set()
        for condition in event.conditions:
            if condition.id in condition_ids:
                errors.append(f"event {event.id}: duplicate condition id {condition.id}")
            condition_ids.add(condition.id)
            if not 0 <= condition.threshold <= 100:
                errors.append(f"condition {event.id}/{condition.id}: threshold {condition.threshold} not in [0, 100]")

        for action in event.actions:
            if isinstance(action, Click):
                if action.position is None and not action.on_condition:
                    errors.append(f"click {event.id}/{action.id}: needs a position or on_condition")
                if action.press_duration_ms < 0 or action.random_offset < 0:
                    errors.append(f"click {event.id}/{action.id}: negative duration or offset")
            elif isinstance(action, Swipe):
                if action.duration_ms <= 0:
                    errors.append(f"swipe {event.id}/{action.id}: duration must be positive")
            elif isinstance(action, Pause):
                if action.duration_ms < 0:
                    errors.append(f"pause {event.id}/{action.id}: negative duration")
            else:
                errors.append(f"event {event.id}: unsupported action {action!r}")

    if not isinstance(scenario.end_condition_operator, ConditionOperator):
        errors.append(f"invalid end condition operator {scenario.end_condition_operator!r}")

    for end in scenario.end_conditions:
        if end.event_id not in event_ids:
            errors.append(f"end condition references unknown event {end.event_id}")
        if end.executions < 1:
            errors.append(f"end condition {end.event_id}: executions must be >= 1")

    if errors:
        raise ConfigError("\n".join(errors))


def _point(value: Any, what: str) -> Point:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigError(f"{what}: expected [x, y], got {value!r}")
    return Point(int(value[0]), int(value[1]))


def _operator(value: Any, what: str) -> ConditionOperator:
    try:
        return ConditionOperator(str(value).lower())
    except ValueError as e:
        raise ConfigError(f"{what}: unknown operator {value!r}") from e


def _load_condition_image(raw: Any, base_dir: Path) -> Optional[np.ndarray]:
    if not raw:
        return None
    path = Path(str(raw))
    if not path.is_absolute():
        path = base_dir / path
    try:
        return load_image(str(path))
    except (FileNotFoundError, ValueError) as e:
        _log.warning("条件图片读取失败，将按未匹配处理: {}", e)
        return None


def _parse_condition(raw: Dict[str, Any], base_dir: Path, event_id: str) -> Condition:
    if "id" not in raw:
        raise ConfigError(f"event {event_id}: condition without id")
    try:
        detection_type = DetectionType(str(raw.get("detection_type", DetectionType.EXACT.value)).lower())
    except ValueError as e:
        raise ConfigError(f"condition {raw['id']}: unknown detection_type") from e
    area = raw.get("area")
    if area is not None and (not isinstance(area, (list, tuple)) or len(area) != 4):
        raise ConfigError(f"condition {raw['id']}: area must be [x, y, w, h]")
    return Condition(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        image=_load_condition_image(raw.get("image"), base_dir),
        area=optional_rect(area),
        threshold=float(raw.get("threshold", 90)),
        detection_type=detection_type,
    )


def _parse_action(raw: Dict[str, Any], event_id: str, index: int) -> Action:
    action_id = str(raw.get("id", f"{event_id}-action-{index + 1}"))
    name = str(raw.get("name", ""))
    kind = str(raw.get("type", "")).lower()
    if kind == "click":
        position = raw.get("position")
        return Click(
            id=action_id,
            name=name,
            position=_point(position, f"click {action_id}") if position is not None else None,
            on_condition=bool(raw.get("on_condition", False)),
            press_duration_ms=int(raw.get("press_duration_ms", 1)),
            random_offset=int(raw.get("random_offset", 0)),
        )
    if kind == "swipe":
        return Swipe(
            id=action_id,
            name=name,
            start=_point(raw.get("start"), f"swipe {action_id}"),
            end=_point(raw.get("end"), f"swipe {action_id}"),
            duration_ms=int(raw.get("duration_ms", 300)),
        )
    if kind == "pause":
        return Pause(id=action_id, name=name, duration_ms=int(raw.get("duration_ms", 0)))
    raise ConfigError(f"event {event_id}: unknown action type {kind!r}")


def _parse_event(raw: Dict[str, Any], base_dir: Path) -> Event:
    if "id" not in raw:
        raise ConfigError("event without id")
    event_id = str(raw["id"])
    return Event(
        id=event_id,
        name=str(raw.get("name", "")),
        conditions=[_parse_condition(c, base_dir, event_id) for c in raw.get("conditions") or []],
        condition_operator=_operator(raw.get("operator", "and"), f"event {event_id}"),
        actions=[_parse_action(a, event_id, i) for i, a in enumerate(raw.get("actions") or [])],
        enabled=bool(raw.get("enabled", True)),
    )


def parse_scenario(config: Dict[str, Any], base_dir: Path | str = ".") -> Scenario:
    """Build and validate a Scenario from an already parsed mapping."""
    if not isinstance(config, dict):
        raise ConfigError("scenario must be a mapping")
    if "id" not in config:
        raise ConfigError("scenario without id")

    base = Path(base_dir)
    try:
        scenario = Scenario(
            id=str(config["id"]),
            name=str(config.get("name", "")),
            events=[_parse_event(e, base) for e in config.get("events") or []],
            detection_quality=int(config.get("detection_quality", settings.detection_quality)),
            end_condition_operator=_operator(config.get("end_condition_operator", "or"), "end conditions"),
            end_conditions=[
                EndCondition(event_id=str(e["event_id"]), executions=int(e.get("executions", 1)))
                for e in config.get("end_conditions") or []
            ],
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise ConfigError(f"malformed scenario: {e}") from e

    validate_scenario(scenario)
    return scenario


def load_scenario(path: Path | str) -> Scenario:
    """加载 YAML 场景文件。

    Raises:
        ConfigError: 文件不存在、解析失败或校验失败
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigError(f"scenario file not found: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parse error in {file_path}: {e}") from e

    # 重新加载时图片可能已被替换
    clear_image_cache()
    scenario = parse_scenario(config, file_path.parent)
    _log.info("场景已加载: {} ({} 个事件)", scenario.id, len(scenario.events))
    return scenario


__all__ = ["validate_scenario", "parse_scenario", "load_scenario"]
