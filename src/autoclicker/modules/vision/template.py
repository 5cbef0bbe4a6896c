"""
Template matching primitives.

Features:
- Best match over the whole search window (global maximum, never first hit)
- Ranked distinct candidates for coarse-to-fine refinement
- Flat (single colour) templates scored by pixel difference, since
  normalised correlation is undefined for them
- Works on numpy arrays and on cv2.UMat (OpenCL) buffers
- Returns coordinates relative to the searched image (top-left origin)
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union
import cv2  # type: ignore
import numpy as np


Searchable = Union[np.ndarray, "cv2.UMat"]

_LOWER_IS_BETTER = (cv2.TM_SQDIFF, cv2.TM_SQDIFF_NORMED)


@dataclass
class Match:
    x: int
    y: int
    w: int
    h: int
    score: float  # 0..1

    @property
    def center(self) -> Tuple[int, int]:
        return (self.x + self.w // 2, self.y + self.h // 2)


def fits(image_size: Tuple[int, int], template_size: Tuple[int, int]) -> bool:
    """True if a ``(w, h)`` template can be slid over a ``(w, h)`` image."""
    wb, hb = image_size
    ws, hs = template_size
    return ws <= wb and hs <= hb


def is_flat(template: np.ndarray) -> bool:
    """True when every pixel of the template has the same value."""
    return template.size > 0 and int(template.min()) == int(template.max())


def method_for(template: np.ndarray) -> int:
    """TM_CCOEFF_NORMED, or TM_SQDIFF for flat templates (zero variance)."""
    return cv2.TM_SQDIFF if is_flat(template) else cv2.TM_CCOEFF_NORMED


def _score(value: float, method: int, w: int, h: int) -> float:
    if method == cv2.TM_SQDIFF:
        # 均方根像素差，归一化到 0..1
        score = 1.0 - math.sqrt(max(0.0, value) / (w * h * 255.0 * 255.0))
    elif method == cv2.TM_SQDIFF_NORMED:
        score = 1.0 - value
    else:
        score = value
    if not math.isfinite(score):
        return 0.0
    return min(1.0, max(0.0, score))


def top_matches(
    image: Searchable,
    template: Searchable,
    count: int = 1,
    *,
    template_size: Optional[Tuple[int, int]] = None,
    method: int = cv2.TM_CCOEFF_NORMED,
) -> List[Match]:
    """Up to ``count`` distinct best locations, best first.

    After each pick, the neighbourhood of half a template around it is
    suppressed so the next candidate is a different place.
    """
    if template_size is None:
        h, w = template.shape[:2]
    else:
        w, h = template_size

    res = cv2.matchTemplate(image, template, method)
    if isinstance(res, cv2.UMat):
        res = res.get()
    res = np.array(res, dtype=np.float32)

    lower = method in _LOWER_IS_BETTER
    finite = np.isfinite(res)
    if not finite.any():
        return [Match(x=0, y=0, w=int(w), h=int(h), score=0.0)]
    worst = float(res[finite].max() if lower else res[finite].min())
    if not finite.all():
        res[~finite] = worst

    found: List[Match] = []
    for _ in range(max(1, count)):
        min_val, max_val, min_loc, max_loc = cv2.minMaxLoc(res)
        value, (x, y) = (min_val, min_loc) if lower else (max_val, max_loc)
        if found and value == worst:
            break
        found.append(Match(x=int(x), y=int(y), w=int(w), h=int(h), score=_score(float(value), method, w, h)))
        res[max(0, y - h // 2): y + h // 2 + 1, max(0, x - w // 2): x + w // 2 + 1] = worst
    return found


def best_match(
    image: Searchable,
    template: Searchable,
    *,
    template_size: Optional[Tuple[int, int]] = None,
    method: int = cv2.TM_CCOEFF_NORMED,
) -> Match:
    """Find the best scoring location of template in image.

    Args:
        image: search window (np.ndarray or cv2.UMat)
        template: template (np.ndarray or cv2.UMat)
        template_size: (w, h) of the template, required when template is a UMat
        method: OpenCV matchTemplate method (default TM_CCOEFF_NORMED)

    Returns:
        Match at the global optimum. The score is normalised to 0..1 and a
        degenerate (NaN/inf) score is reported as 0.
    """
    return top_matches(image, template, 1, template_size=template_size, method=method)[0]


__all__ = [
    "Match",
    "fits",
    "is_flat",
    "method_for",
    "top_matches",
    "best_match",
]
