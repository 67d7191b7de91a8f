"""Geometry and helper utilities."""

import math
from typing import Iterable, Optional, Tuple

import numpy as np

from .models import Landmark

STRAIGHT_ANGLE = 180.0


def calculate_angle(
    point_a: Optional[Landmark], point_b: Optional[Landmark], point_c: Optional[Landmark]
) -> float:
    """Return angle ABC in degrees, or 180 when a point is missing or a ray is degenerate."""
    if point_a is None or point_b is None or point_c is None:
        return STRAIGHT_ANGLE

    a = np.array((point_a.x, point_a.y), dtype=np.float64)
    b = np.array((point_b.x, point_b.y), dtype=np.float64)
    c = np.array((point_c.x, point_c.y), dtype=np.float64)

    ba = a - b
    bc = c - b
    norm_ba = np.linalg.norm(ba)
    norm_bc = np.linalg.norm(bc)

    if norm_ba == 0.0 or norm_bc == 0.0:
        return STRAIGHT_ANGLE

    cosine_angle = float(np.dot(ba, bc) / (norm_ba * norm_bc))
    cosine_angle = float(np.clip(cosine_angle, -1.0, 1.0))
    return float(np.degrees(np.arccos(cosine_angle)))


def distance(point_a: Optional[Landmark], point_b: Optional[Landmark]) -> float:
    if point_a is None or point_b is None:
        return 0.0
    return float(np.hypot(point_a.x - point_b.x, point_a.y - point_b.y))


def bounding_box(points: Iterable[Optional[Landmark]]) -> Optional[Tuple[float, float, float, float]]:
    xs = []
    ys = []
    for point in points:
        if point is None:
            continue
        xs.append(point.x)
        ys.append(point.y)
    if not xs:
        return None
    return float(min(xs)), float(min(ys)), float(max(xs)), float(max(ys))


def safe_mean(values: Iterable[Optional[float]]) -> float:
    numeric_values = [value for value in values if value is not None and not math.isnan(value)]
    if not numeric_values:
        return float("nan")
    return float(np.mean(numeric_values))
