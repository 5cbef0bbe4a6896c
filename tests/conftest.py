import os

# 测试期间不写日志文件
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import numpy as np
import pytest


def textured(height: int, width: int, seed: int) -> np.ndarray:
    """Random BGR noise image; textured enough for normalised correlation."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms / 1000.0


@pytest.fixture()
def make_image():
    return textured


@pytest.fixture()
def frame():
    """320x240 frame with a 40x40 'button' at (100, 100)-(140, 140)."""
    return textured(240, 320, seed=1)


@pytest.fixture()
def button(frame):
    return frame[100:140, 100:140].copy()


@pytest.fixture()
def foreign():
    """Image that does not appear in ``frame``."""
    return textured(40, 40, seed=99)


@pytest.fixture()
def clock():
    return FakeClock()
