"""
ADB 协作者

- AdbFrameSource: 通过 screencap 获取画面，失败视为暂时无画面
- AdbActionExecutor: 通过 input tap / swipe 注入点击和滑动

阻塞的 subprocess 调用统一 offload 到 I/O 线程池。
"""
from __future__ import annotations

import functools
from typing import Optional

from ...core.logger import logger
from ...core.thread_pool import run_in_io
from .adb import Adb, AdbError

# 超过该时长的按压改用原地 swipe 实现长按
_LONG_PRESS_MS = 50


class AdbFrameSource:
    def __init__(self, adb: Adb, addr: str) -> None:
        self.adb = adb
        self.addr = addr
        self.logger = logger.bind(device=addr, module="AdbFrameSource")

    async def next_frame(self) -> Optional[bytes]:
        try:
            data = await run_in_io(self.adb.screencap, self.addr)
        except AdbError as e:
            self.logger.warning(f"ADB截图失败，稍后重试: {e}")
            return None
        self.logger.debug(f"ADB截图成功，数据大小: {len(data)} bytes")
        return data


class AdbActionExecutor:
    def __init__(self, adb: Adb, addr: str) -> None:
        self.adb = adb
        self.addr = addr
        self.logger = logger.bind(device=addr, module="AdbActionExecutor")

    async def tap(self, x: int, y: int, duration_ms: int) -> bool:
        try:
            if duration_ms > _LONG_PRESS_MS:
                await run_in_io(
                    functools.partial(self.adb.swipe, self.addr, x, y, x, y, dur_ms=duration_ms)
                )
            else:
                await run_in_io(self.adb.tap, self.addr, x, y)
        except AdbError as e:
            self.logger.error(f"ADB点击失败 ({x}, {y}): {e}")
            return False
        return True

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> bool:
        try:
            await run_in_io(
                functools.partial(self.adb.swipe, self.addr, x1, y1, x2, y2, dur_ms=duration_ms)
            )
        except AdbError as e:
            self.logger.error(f"ADB滑动失败 ({x1}, {y1}) -> ({x2}, {y2}): {e}")
            return False
        return True


class LoggingActionExecutor:
    """只记录不注入的执行器，用于回放画面时的演练。"""

    def __init__(self) -> None:
        self.logger = logger.bind(module="DryRun")
        self.performed: list[tuple] = []

    async def tap(self, x: int, y: int, duration_ms: int) -> bool:
        self.performed.append(("tap", x, y, duration_ms))
        self.logger.info(f"[演练] 点击 ({x}, {y}) {duration_ms}ms")
        return True

    async def swipe(self, x1: int, y1: int, x2: int, y2: int, duration_ms: int) -> bool:
        self.performed.append(("swipe", x1, y1, x2, y2, duration_ms))
        self.logger.info(f"[演练] 滑动 ({x1}, {y1}) -> ({x2}, {y2}) {duration_ms}ms")
        return True
