import subprocess

import pytest

from autoclicker.core.thread_pool import shutdown_pools
from autoclicker.modules.emu import adapter as adapter_module
from autoclicker.modules.emu.adapter import AdbActionExecutor, AdbFrameSource, LoggingActionExecutor
from autoclicker.modules.emu.adb import Adb, AdbError


class _DummyAdb:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def screencap(self, addr):
        self.calls.append(("screencap", addr))
        if self.fail:
            raise AdbError("device offline")
        return b"png"

    def tap(self, addr, x, y):
        self.calls.append(("tap", addr, x, y))
        if self.fail:
            raise AdbError("device offline")

    def swipe(self, addr, x1, y1, x2, y2, dur_ms=300):
        self.calls.append(("swipe", addr, x1, y1, x2, y2, dur_ms))
        if self.fail:
            raise AdbError("device offline")


@pytest.fixture(autouse=True)
def _inline_io(monkeypatch):
    async def _fake_run_in_io(func, *args):
        return func(*args)

    monkeypatch.setattr(adapter_module, "run_in_io", _fake_run_in_io)
    yield
    shutdown_pools()


@pytest.mark.asyncio
async def test_frame_source_returns_screencap_bytes():
    adb = _DummyAdb()
    source = AdbFrameSource(adb, "127.0.0.1:5555")

    assert await source.next_frame() == b"png"
    assert adb.calls == [("screencap", "127.0.0.1:5555")]


@pytest.mark.asyncio
async def test_frame_source_returns_none_on_adb_error():
    source = AdbFrameSource(_DummyAdb(fail=True), "127.0.0.1:5555")

    assert await source.next_frame() is None


@pytest.mark.asyncio
async def test_short_press_is_a_tap_long_press_is_a_swipe_in_place():
    adb = _DummyAdb()
    executor = AdbActionExecutor(adb, "emu-1")

    assert await executor.tap(10, 20, 1) is True
    assert await executor.tap(10, 20, 500) is True

    assert adb.calls == [
        ("tap", "emu-1", 10, 20),
        ("swipe", "emu-1", 10, 20, 10, 20, 500),
    ]


@pytest.mark.asyncio
async def test_executor_reports_rejection_on_adb_error():
    executor = AdbActionExecutor(_DummyAdb(fail=True), "emu-1")

    assert await executor.tap(1, 1, 1) is False
    assert await executor.swipe(0, 0, 5, 5, 300) is False


@pytest.mark.asyncio
async def test_logging_executor_records_actions():
    executor = LoggingActionExecutor()

    await executor.tap(1, 2, 3)
    await executor.swipe(1, 2, 3, 4, 5)

    assert executor.performed == [("tap", 1, 2, 3), ("swipe", 1, 2, 3, 4, 5)]


def _completed(returncode=0, stdout=b"", stderr=b""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_adb_devices_parses_online_devices(monkeypatch):
    out = b"List of devices attached\nemulator-5554\tdevice\n127.0.0.1:5555\toffline\n"
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: _completed(stdout=out))

    assert Adb("adb").devices() == ["emulator-5554"]


def test_adb_screencap_rejects_empty_output(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: _completed(stdout=b""))

    with pytest.raises(AdbError):
        Adb("adb").screencap("emu-1")


def test_adb_missing_binary(monkeypatch):
    def _missing(*args, **kwargs):
        raise FileNotFoundError("adb")

    monkeypatch.setattr(subprocess, "run", _missing)

    with pytest.raises(AdbError):
        Adb("/nonexistent/adb").tap("emu-1", 1, 1)
