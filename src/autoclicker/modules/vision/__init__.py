from .matcher import (
    ImageMatcher,
    TemplateMatcher,
    create_matcher,
)
from .template import (
    Match,
    best_match,
)
from .types import (
    DetectionResult,
    Point,
    Rect,
)
from .utils import (
    ImageLike,
    load_image,
    to_gray,
    jitter,
)

__all__ = [
    "ImageMatcher",
    "TemplateMatcher",
    "create_matcher",
    "Match",
    "best_match",
    "DetectionResult",
    "Point",
    "Rect",
    "ImageLike",
    "load_image",
    "to_gray",
    "jitter",
]
