"""
Image matcher: binds a screen frame once per tick and answers condition
queries against it.

Matching uses normalised cross-correlation (TM_CCOEFF_NORMED) on grayscale
images, which tolerates brightness shifts and capture compression noise.
Flat condition images (a single colour) have no variance to correlate and
are scored by RMS pixel difference instead. Scores are reported on a 0..100
scale; a condition matches when the best score over the whole search window
is >= its threshold.

Frames larger than the detection quality (target length of the longest
side) are searched coarse-to-fine: the downscaled frame ranks a few
candidate locations, each candidate is rescored at full resolution in a
small window around it, and the best full resolution score decides. A
pixel-identical region is therefore found whatever its offset relative to
the downscaling grid.
"""
from __future__ import annotations

import math
from typing import List, Optional, Protocol, Tuple

import cv2  # type: ignore
import numpy as np

from ...core.constants import DEFAULT_DETECTION_QUALITY, MatcherBackend
from ...core.exceptions import MatchError, StateError
from ...core.logger import logger
from .template import Match, best_match, fits, method_for, top_matches
from .types import DetectionResult, Point, Rect
from .utils import ImageLike, load_image, to_gray

# 粗匹配阶段保留的候选数量
_COARSE_CANDIDATES = 8


class ImageMatcher(Protocol):
    """Capability interface of a matcher backend."""

    def prepare_frame(self, frame: ImageLike) -> None:
        """Bind the full screen capture used by the following match calls."""
        ...

    def match(
        self,
        condition_image: ImageLike,
        threshold: float,
        area: Optional[Rect] = None,
    ) -> DetectionResult:
        """Search the bound frame (or ``area`` of it) for condition_image."""
        ...

    def close(self) -> None:
        ...


def _resize(gray: np.ndarray, scale: float) -> np.ndarray:
    h, w = gray.shape[:2]
    size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return np.ascontiguousarray(cv2.resize(gray, size, interpolation=cv2.INTER_AREA))


class TemplateMatcher:
    """OpenCV template matcher, on numpy buffers or on OpenCL UMat buffers."""

    def __init__(
        self,
        quality: int = DEFAULT_DETECTION_QUALITY,
        *,
        backend: MatcherBackend = MatcherBackend.CPU,
    ) -> None:
        if quality <= 0:
            raise ValueError(f"detection quality must be positive: {quality}")
        self.quality = int(quality)
        self.backend = MatcherBackend(backend)
        self._full: Optional[np.ndarray] = None
        self._frame: Optional[np.ndarray] = None
        self._frame_umat = None
        self._frame_size: Tuple[int, int] = (0, 0)
        self._scale = 1.0
        self._closed = False
        self._log = logger.bind(module="TemplateMatcher")

    @property
    def scale(self) -> float:
        return self._scale

    @property
    def frame_size(self) -> Tuple[int, int]:
        """(w, h) of the bound frame at full resolution."""
        return self._frame_size

    def _check_open(self) -> None:
        if self._closed:
            raise StateError("matcher is closed")

    def prepare_frame(self, frame: ImageLike) -> None:
        self._check_open()
        try:
            mat = load_image(frame)
        except (FileNotFoundError, ValueError, TypeError) as e:
            raise MatchError(f"invalid frame: {e}") from e
        if mat.size == 0:
            raise MatchError("invalid frame: zero size")

        gray = np.ascontiguousarray(to_gray(mat))
        h, w = gray.shape[:2]
        scale = min(1.0, self.quality / float(max(h, w)))

        self._full = gray
        self._frame = _resize(gray, scale) if scale < 1.0 else gray
        self._frame_size = (w, h)
        self._scale = scale
        self._frame_umat = cv2.UMat(self._frame) if self.backend is MatcherBackend.OPENCL else None

    def _load_condition(self, condition_image: ImageLike) -> np.ndarray:
        if condition_image is None:
            raise MatchError("condition image is missing")
        try:
            mat = load_image(condition_image)
        except (FileNotFoundError, ValueError, TypeError) as e:
            raise MatchError(f"invalid condition image: {e}") from e
        if mat.size == 0 or mat.shape[0] == 0 or mat.shape[1] == 0:
            raise MatchError("invalid condition image: zero size")
        return np.ascontiguousarray(to_gray(mat))

    def _bounds(self, area: Optional[Rect]) -> Rect:
        """Search bounds in full resolution frame coordinates."""
        full_w, full_h = self._frame_size
        if area is None:
            return Rect(0, 0, full_w, full_h)
        clipped = area.clip(full_w, full_h)
        if clipped.is_empty:
            raise MatchError(f"search area {area} is outside the frame {full_w}x{full_h}")
        return clipped

    def _coarse_window(self, bounds: Rect) -> Tuple[np.ndarray, Tuple[int, int]]:
        """Scaled search window and its top-left offset in scaled coordinates."""
        frame_h, frame_w = self._frame.shape[:2]
        if bounds == Rect(0, 0, *self._frame_size):
            return self._frame, (0, 0)
        left = min(frame_w - 1, int(bounds.left * self._scale))
        top = min(frame_h - 1, int(bounds.top * self._scale))
        right = min(frame_w, max(left + 1, int(round(bounds.right * self._scale))))
        bottom = min(frame_h, max(top + 1, int(round(bounds.bottom * self._scale))))
        return self._frame[top:bottom, left:right], (left, top)

    def _coarse(self, window: np.ndarray, template: np.ndarray, method: int, count: int, whole: bool) -> List[Match]:
        if self.backend is MatcherBackend.OPENCL:
            image = self._frame_umat if whole else cv2.UMat(np.ascontiguousarray(window))
            th, tw = template.shape[:2]
            return top_matches(image, cv2.UMat(template), count, template_size=(tw, th), method=method)
        return top_matches(window, template, count, method=method)

    def _refine(self, candidate: Match, offset: Tuple[int, int], template: np.ndarray, method: int, bounds: Rect) -> Optional[Match]:
        """Rescore a coarse candidate at full resolution, in frame coordinates."""
        th, tw = template.shape[:2]
        margin = int(math.ceil(1.0 / self._scale)) + 1
        fx = int((candidate.x + offset[0]) / self._scale)
        fy = int((candidate.y + offset[1]) / self._scale)
        left = max(bounds.left, fx - margin)
        top = max(bounds.top, fy - margin)
        right = min(bounds.right, fx + tw + margin)
        bottom = min(bounds.bottom, fy + th + margin)
        if not fits((right - left, bottom - top), (tw, th)):
            return None
        found = best_match(self._full[top:bottom, left:right], template, method=method)
        return Match(x=found.x + left, y=found.y + top, w=tw, h=th, score=found.score)

    def match(
        self,
        condition_image: ImageLike,
        threshold: float,
        area: Optional[Rect] = None,
    ) -> DetectionResult:
        self._check_open()
        if self._frame is None:
            raise StateError("no frame bound, call prepare_frame first")
        if not 0 <= threshold <= 100:
            raise MatchError(f"threshold out of range [0, 100]: {threshold}")

        template = self._load_condition(condition_image)
        bounds = self._bounds(area)
        th, tw = template.shape[:2]
        if not fits((bounds.width, bounds.height), (tw, th)):
            # condition bigger than the searched region can never be found
            return DetectionResult.not_found()

        method = method_for(template)
        window, offset = self._coarse_window(bounds)
        whole = area is None

        if self._scale >= 1.0:
            found = self._coarse(window, template, method, 1, whole)[0]
            found = Match(found.x + offset[0], found.y + offset[1], tw, th, found.score)
        else:
            small = _resize(template, self._scale)
            sh, sw = small.shape[:2]
            wh, ww = window.shape[:2]
            if not fits((ww, wh), (sw, sh)):
                return DetectionResult.not_found()
            candidates = self._coarse(window, small, method, _COARSE_CANDIDATES, whole)
            refined = [r for r in (self._refine(c, offset, template, method, bounds) for c in candidates) if r]
            if not refined:
                return DetectionResult.not_found()
            found = max(refined, key=lambda m: m.score)

        score = round(found.score * 100.0, 2)
        if score < threshold:
            return DetectionResult.not_found(score)

        cx, cy = found.center
        return DetectionResult(matched=True, center=Point(cx, cy), score=score)

    def close(self) -> None:
        self._full = None
        self._frame = None
        self._frame_umat = None
        self._closed = True

    def __enter__(self) -> "TemplateMatcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def create_matcher(
    backend: MatcherBackend | str = MatcherBackend.CPU,
    quality: int = DEFAULT_DETECTION_QUALITY,
) -> TemplateMatcher:
    """Build the matcher backend selected by configuration.

    The OpenCL backend falls back to the CPU one when no OpenCL device is
    available.
    """
    backend = MatcherBackend(backend)
    if backend is MatcherBackend.OPENCL:
        if cv2.ocl.haveOpenCL():
            cv2.ocl.setUseOpenCL(True)
        else:
            logger.bind(module="TemplateMatcher").warning("OpenCL 不可用，回退到 CPU 匹配")
            backend = MatcherBackend.CPU
    return TemplateMatcher(quality, backend=backend)


__all__ = ["ImageMatcher", "TemplateMatcher", "create_matcher"]
