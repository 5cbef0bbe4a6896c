"""
ADB 命令封装

引擎只需要四类设备操作：连接、列出设备、截图、输入注入（tap / swipe）。
所有方法都是阻塞调用，由 adapter 统一放到 I/O 线程池执行。
"""
from __future__ import annotations

import subprocess
from typing import List, Sequence


class AdbError(RuntimeError):
    pass


class Adb:
    def __init__(self, adb_path: str = "adb") -> None:
        self.adb_path = adb_path

    def _exec(self, args: Sequence[str], timeout: float) -> subprocess.CompletedProcess:
        command = [self.adb_path, *args]
        try:
            return subprocess.run(command, capture_output=True, timeout=timeout)
        except FileNotFoundError as e:
            raise AdbError(f"ADB 不可用: {self.adb_path}") from e
        except subprocess.TimeoutExpired as e:
            raise AdbError(f"ADB 超时 ({timeout}s): {' '.join(args)}") from e

    def _checked(self, args: Sequence[str], timeout: float) -> bytes:
        cp = self._exec(args, timeout)
        if cp.returncode != 0:
            detail = (cp.stderr or cp.stdout or b"").decode(errors="ignore").strip()
            raise AdbError(f"ADB 返回 {cp.returncode}: {detail}")
        return cp.stdout or b""

    def _input(self, addr: str, *params: object, timeout: float = 10.0) -> None:
        self._checked(["-s", addr, "shell", "input", *(str(p) for p in params)], timeout)

    def connect(self, addr: str, timeout: float = 10.0) -> bool:
        cp = self._exec(["connect", addr], timeout)
        text = (cp.stdout or b"").decode(errors="ignore").lower()
        # "connected to x" / "already connected to x"; 失败时同样返回 0
        return cp.returncode == 0 and "connected to" in text

    def devices(self, timeout: float = 10.0) -> List[str]:
        """Serials of devices in the ``device`` state."""
        text = self._checked(["devices"], timeout).decode(errors="ignore")
        serials = []
        for line in text.splitlines()[1:]:
            fields = line.split()
            if fields[1:2] == ["device"]:
                serials.append(fields[0])
        return serials

    def screencap(self, addr: str, timeout: float = 15.0) -> bytes:
        png = self._checked(["-s", addr, "exec-out", "screencap", "-p"], timeout)
        if not png:
            raise AdbError("screencap 没有输出")
        return png

    def tap(self, addr: str, x: int, y: int, timeout: float = 10.0) -> None:
        self._input(addr, "tap", x, y, timeout=timeout)

    def swipe(self, addr: str, x1: int, y1: int, x2: int, y2: int, dur_ms: int = 300, timeout: float = 10.0) -> None:
        self._input(addr, "swipe", x1, y1, x2, y2, dur_ms, timeout=timeout)
