"""
Action dispatch: runs the action list of a triggered event, in order.

Each action returns control only after its own duration elapsed: gestures
block in the executor for their press/swipe duration, pauses wait here.
Pauses are interruptible by the processor's stop event so a stop request is
honoured within one action's duration.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, Protocol, Sequence

from ...core.exceptions import ActionError
from ...core.logger import logger
from ..vision.types import DetectionResult, Point
from ..vision.utils import jitter
from .types import Action, Click, Pause, Swipe


class ActionExecutor(Protocol):
    """Performs the physical input injection, returns False when rejected."""

    async def tap(self, x: int, y: int, duration_ms: int) -> bool:
        ...

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> bool:
        ...


class ActionDispatcher:
    def __init__(self, executor: ActionExecutor, *, stop_event: Optional[asyncio.Event] = None) -> None:
        self.executor = executor
        self.stop_event = stop_event
        self._log = logger.bind(module="ActionDispatcher")

    def _stop_requested(self) -> bool:
        return self.stop_event is not None and self.stop_event.is_set()

    async def dispatch(self, actions: Sequence[Action], detection: Optional[DetectionResult] = None) -> int:
        """Execute actions sequentially.

        Returns:
            number of actions executed (less than len(actions) if a stop was requested)

        Raises:
            ActionError: injection failed; the remaining actions are not run
        """
        done = 0
        for action in actions:
            if self._stop_requested():
                self._log.info("stop requested, {} action(s) skipped", len(actions) - done)
                break
            await self.execute(action, detection)
            done += 1
        return done

    async def execute(self, action: Action, detection: Optional[DetectionResult] = None) -> None:
        if isinstance(action, Pause):
            self._log.debug("pause {}ms", action.duration_ms)
            await self._wait(action.duration_ms)

        elif isinstance(action, Click):
            target = self._click_position(action, detection)
            self._log.debug("click {} at ({}, {})", action.name or action.id, target.x, target.y)
            await self._inject(action, self.executor.tap(target.x, target.y, action.press_duration_ms))

        elif isinstance(action, Swipe):
            self._log.debug(
                "swipe {} ({}, {}) -> ({}, {}) in {}ms",
                action.name or action.id,
                action.start.x,
                action.start.y,
                action.end.x,
                action.end.y,
                action.duration_ms,
            )
            await self._inject(
                action,
                self.executor.swipe(action.start.x, action.start.y, action.end.x, action.end.y, action.duration_ms),
            )

        else:
            raise ActionError(f"unsupported action type: {type(action).__name__}", action)

    @staticmethod
    def _click_position(action: Click, detection: Optional[DetectionResult]) -> Point:
        if action.on_condition:
            if detection is None or not detection.matched:
                raise ActionError("click on condition without a detected condition", action)
            target = detection.center
        elif action.position is not None:
            target = action.position
        else:
            raise ActionError("click has no position", action)
        return jitter(target, action.random_offset)

    async def _inject(self, action: Action, call: Awaitable[bool]) -> None:
        try:
            ok = await call
        except ActionError:
            raise
        except Exception as e:
            raise ActionError(f"input injection failed for {action.id}: {e}", action) from e
        if not ok:
            raise ActionError(f"input injection rejected for {action.id}", action)

    async def _wait(self, duration_ms: int) -> None:
        if duration_ms <= 0:
            return
        if self.stop_event is None:
            await asyncio.sleep(duration_ms / 1000.0)
            return
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=duration_ms / 1000.0)
        except asyncio.TimeoutError:
            pass


__all__ = ["ActionExecutor", "ActionDispatcher"]
