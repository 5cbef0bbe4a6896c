"""
Image input helpers shared by the matcher, the scenario loader and the
action dispatcher.

Frames and condition images arrive as decoded arrays, encoded bytes (ADB
screencap output, replay files) or file paths (scenario definitions).
"""
from __future__ import annotations

import math
import random
from pathlib import Path
from typing import Dict, Union

import cv2  # type: ignore
import numpy as np

from .types import Point

ImageLike = Union[str, Path, bytes, bytearray, np.ndarray]

# 条件图片在会话内反复使用，按绝对路径缓存解码结果
_decoded_files: Dict[str, np.ndarray] = {}


def _decode(buffer: Union[bytes, bytearray]) -> np.ndarray:
    mat = cv2.imdecode(np.frombuffer(buffer, dtype=np.uint8), cv2.IMREAD_COLOR)
    if mat is None or mat.size == 0:
        raise ValueError(f"cannot decode {len(buffer)} bytes as an image")
    return mat


def _read(path: Path) -> np.ndarray:
    key = str(path.resolve())
    cached = _decoded_files.get(key)
    if cached is not None:
        return cached
    if not path.is_file():
        raise FileNotFoundError(f"image file not found: {path}")
    # imread 不支持非 ASCII 路径，先读字节再解码
    mat = _decode(path.read_bytes())
    _decoded_files[key] = mat
    return mat


def load_image(img: ImageLike) -> np.ndarray:
    """Return ``img`` as an OpenCV array.

    Raises:
        FileNotFoundError: path does not exist
        ValueError: bytes/file content is not a decodable image
        TypeError: unsupported input
    """
    if isinstance(img, np.ndarray):
        return img
    if isinstance(img, (bytes, bytearray)):
        return _decode(img)
    if isinstance(img, (str, Path)):
        return _read(Path(img))
    raise TypeError(f"unsupported image input: {type(img).__name__}")


def clear_image_cache() -> None:
    _decoded_files.clear()


def to_gray(img: np.ndarray) -> np.ndarray:
    """8-bit single channel view of a gray, BGR or BGRA image."""
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    if img.ndim == 2:
        return img
    channels = img.shape[2]
    if channels == 1:
        return img[:, :, 0]
    code = cv2.COLOR_BGRA2GRAY if channels == 4 else cv2.COLOR_BGR2GRAY
    return cv2.cvtColor(img, code)


def jitter(center: Point, radius: int) -> Point:
    """Uniform random point within ``radius`` of ``center``, clamped to x, y >= 0."""
    if radius <= 0:
        return center
    theta = random.uniform(0.0, 2.0 * math.pi)
    distance = radius * math.sqrt(random.random())
    return Point(
        max(0, int(center.x + distance * math.cos(theta))),
        max(0, int(center.y + distance * math.sin(theta))),
    )


__all__ = [
    "ImageLike",
    "load_image",
    "clear_image_cache",
    "to_gray",
    "jitter",
]
