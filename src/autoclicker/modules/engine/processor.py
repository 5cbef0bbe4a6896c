"""
Scenario processor: the detection and evaluation loop.

States: IDLE -> RUNNING -> STOPPING -> STOPPED.

Per tick the bound frame is matched against the conditions of each enabled
event, in declared order. The first event whose conditions satisfy its
operator fires: its actions are dispatched and the remaining events are
skipped for that tick, so a frame never triggers two action lists. After the
tick the end conditions are evaluated and may stop the session.

A failing condition (bad image, unreadable area) counts as not matched and
never aborts the tick. A failing action stops the session, since the device
state is unknown afterwards.
"""
from __future__ import annotations

import asyncio
import functools
from typing import TYPE_CHECKING, Dict, Optional

from ...core.config import settings
from ...core.constants import ConditionOperator, ProcessorState, StopReason
from ...core.exceptions import ActionError, MatchError, SourceExhausted, StateError
from ...core.logger import get_session_logger
from ...core.thread_pool import run_in_compute
from ..vision.matcher import ImageMatcher
from ..vision.types import DetectionResult
from .actions import ActionDispatcher, ActionExecutor
from .loader import validate_scenario
from .sources import FrameSource
from .types import Action, Condition, Event, ProcessorResult, Scenario, SessionOutcome

if TYPE_CHECKING:
    from ..debugging.engine import DebugEngine


class ScenarioProcessor:
    def __init__(
        self,
        scenario: Scenario,
        matcher: ImageMatcher,
        executor: ActionExecutor,
        *,
        debug_engine: Optional["DebugEngine"] = None,
        tick_interval_ms: Optional[int] = None,
        frame_retry_interval_ms: Optional[int] = None,
        offload_matching: bool = True,
    ) -> None:
        self.scenario = scenario
        self.matcher = matcher
        self.debug_engine = debug_engine
        self.tick_interval_ms = settings.tick_interval_ms if tick_interval_ms is None else tick_interval_ms
        self.frame_retry_interval_ms = (
            settings.frame_retry_interval_ms if frame_retry_interval_ms is None else frame_retry_interval_ms
        )
        self.offload_matching = offload_matching

        self.state = ProcessorState.IDLE
        self.stop_reason: Optional[StopReason] = None
        self.failed_action: Optional[Action] = None
        self.error: Optional[str] = None
        self.ticks = 0
        self.executions: Dict[str, int] = {}

        self._stop_event = asyncio.Event()
        self.dispatcher = ActionDispatcher(executor, stop_event=self._stop_event)
        self._log = get_session_logger(scenario.id)

    # ── 生命周期 ──

    def start(self) -> None:
        """Validate the scenario and enter RUNNING.

        Raises:
            StateError: already running
            ConfigError: invalid scenario, the processor stays IDLE
        """
        if self.state in (ProcessorState.RUNNING, ProcessorState.STOPPING):
            raise StateError(f"cannot start a processor in state {self.state.value}")
        validate_scenario(self.scenario)

        self.executions = {event.id: 0 for event in self.scenario.events}
        self.ticks = 0
        self.stop_reason = None
        self.failed_action = None
        self.error = None
        self._stop_event.clear()
        self.state = ProcessorState.RUNNING
        if self.debug_engine is not None:
            self.debug_engine.on_session_start()
        self._log.info(
            "会话开始: events={}, end_conditions={} ({})",
            len(self.scenario.events),
            len(self.scenario.end_conditions),
            self.scenario.end_condition_operator.value,
        )

    def request_stop(self) -> None:
        """Cooperative stop, honoured at the next tick or action wait boundary."""
        if self.state is ProcessorState.RUNNING:
            self._log.info("收到停止请求")
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def _finish(self, reason: StopReason, *, failed_action: Optional[Action] = None, error: Optional[str] = None) -> None:
        if self.state is not ProcessorState.RUNNING:
            return
        self.state = ProcessorState.STOPPING
        self.stop_reason = reason
        self.failed_action = failed_action
        self.error = error
        self._stop_event.set()
        if self.debug_engine is not None:
            self.debug_engine.on_session_end(success=reason not in (StopReason.ACTION_FAILED, StopReason.ERROR))
        self.state = ProcessorState.STOPPED
        self._log.info("会话结束: reason={}, ticks={}, executions={}", reason.value, self.ticks, self.executions)

    def outcome(self) -> SessionOutcome:
        return SessionOutcome(
            state=self.state,
            reason=self.stop_reason,
            ticks=self.ticks,
            executions=dict(self.executions),
            failed_action=self.failed_action,
            error=self.error,
            report=self.debug_engine.report if self.debug_engine is not None else None,
        )

    # ── 主循环 ──

    async def run(self, frame_source: FrameSource, *, max_ticks: Optional[int] = None) -> SessionOutcome:
        """Process frames until an end condition, a stop request, a failed action,
        max_ticks or the end of a finite frame source."""
        self.start()
        try:
            while self.state is ProcessorState.RUNNING:
                if self.stop_requested:
                    self._finish(StopReason.CANCELLED)
                    break
                if max_ticks is not None and self.ticks >= max_ticks:
                    self._finish(StopReason.MAX_TICKS)
                    break

                try:
                    frame = await frame_source.next_frame()
                except SourceExhausted:
                    self._finish(StopReason.SOURCE_EXHAUSTED)
                    break
                if frame is None:
                    # 暂无画面：稍后重试，不计入帧数
                    await self._sleep(self.frame_retry_interval_ms)
                    continue

                try:
                    await self.process_frame(frame)
                except ActionError:
                    break

                if self.state is ProcessorState.RUNNING:
                    await self._sleep(self.tick_interval_ms)
        except asyncio.CancelledError:
            self._finish(StopReason.CANCELLED)
            raise
        except Exception as e:
            self._log.exception("会话异常终止: {}", e)
            self._finish(StopReason.ERROR, error=str(e))
            raise
        return self.outcome()

    async def _sleep(self, duration_ms: int) -> None:
        if duration_ms <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=duration_ms / 1000.0)
        except asyncio.TimeoutError:
            pass

    async def _call_matcher(self, func, *args):
        if self.offload_matching:
            return await run_in_compute(functools.partial(func, *args))
        return func(*args)

    # ── 单帧处理 ──

    async def process_frame(self, frame) -> ProcessorResult:
        """Run one tick on ``frame``.

        Returns:
            result of the fired event, or an empty ProcessorResult if none fired

        Raises:
            StateError: processor is not running
            ActionError: an action failed; the session is already STOPPED
        """
        if self.state is not ProcessorState.RUNNING:
            raise StateError(f"process_frame called in state {self.state.value}")

        debug = self.debug_engine
        result = ProcessorResult()
        action_error: Optional[ActionError] = None
        if debug is not None:
            debug.on_image_start()
        try:
            frame_ok = True
            try:
                await self._call_matcher(self.matcher.prepare_frame, frame)
            except MatchError as e:
                self._log.warning("画面无效，跳过本帧: {}", e)
                frame_ok = False

            for event in self.scenario.events if frame_ok else ():
                if not event.enabled:
                    continue

                if debug is not None:
                    debug.on_event_start(event)
                evaluated = ProcessorResult(event=event)
                try:
                    evaluated = await self._evaluate_event(event)
                finally:
                    if debug is not None:
                        debug.on_event_end(evaluated)

                if evaluated.event_matched:
                    result = evaluated
                    self._log.debug("事件触发: {}", event.name or event.id)
                    try:
                        done = await self.dispatcher.dispatch(event.actions, evaluated.detection_result)
                    except ActionError as e:
                        action_error = e
                    else:
                        if done == len(event.actions):
                            self.executions[event.id] = self.executions.get(event.id, 0) + 1
                        else:
                            # 停止请求打断了动作序列，不计入触发次数
                            self._log.info("事件 {} 的动作被中断: {}/{}", event.id, done, len(event.actions))
                    break
        finally:
            if debug is not None:
                debug.on_image_end(result.event_matched)

        self.ticks += 1
        if action_error is not None:
            self._log.error("动作执行失败，终止会话: {}", action_error)
            self._finish(StopReason.ACTION_FAILED, failed_action=action_error.action, error=str(action_error))
            raise action_error
        if self._end_conditions_reached():
            self._finish(StopReason.END_CONDITION)
        return result

    async def _evaluate_event(self, event: Event) -> ProcessorResult:
        if not event.conditions:
            # 无条件的事件永不触发
            return ProcessorResult(event=event, event_matched=False)

        is_and = event.condition_operator is ConditionOperator.AND
        condition: Optional[Condition] = None
        detection: Optional[DetectionResult] = None
        for condition in event.conditions:
            detection = await self._evaluate_condition(condition)
            if is_and and not detection.matched:
                return ProcessorResult(event=event, condition=condition, detection_result=detection, event_matched=False)
            if not is_and and detection.matched:
                return ProcessorResult(event=event, condition=condition, detection_result=detection, event_matched=True)

        # AND: all matched, OR: none matched
        return ProcessorResult(event=event, condition=condition, detection_result=detection, event_matched=is_and)

    async def _evaluate_condition(self, condition: Condition) -> DetectionResult:
        debug = self.debug_engine
        detection = DetectionResult.not_found()
        if debug is not None:
            debug.on_condition_start(condition)
        try:
            detection = await self._call_matcher(
                self.matcher.match, condition.image, condition.threshold, condition.search_area
            )
        except MatchError as e:
            self._log.debug("条件 {} 匹配失败，按未匹配处理: {}", condition.id, e)
        except StateError:
            raise
        except Exception as e:
            self._log.warning("条件 {} 匹配异常，按未匹配处理: {}", condition.id, e)
        finally:
            if debug is not None:
                debug.on_condition_end(detection.matched)
        return detection

    def _end_conditions_reached(self) -> bool:
        ends = self.scenario.end_conditions
        if not ends:
            return False
        reached = [self.executions.get(end.event_id, 0) >= end.executions for end in ends]
        if self.scenario.end_condition_operator is ConditionOperator.AND:
            return all(reached)
        return any(reached)


__all__ = ["ScenarioProcessor"]
