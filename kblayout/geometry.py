# SPDX-FileCopyrightText: 2025 adamws <adamws@users.noreply.github.com>
#
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from shapely.geometry import MultiPoint

from .defaults import (
    BASE_UNIT_PX,
    CANVAS_MAX_HEIGHT,
    CANVAS_MAX_WIDTH,
    CANVAS_MIN_HEIGHT,
    CANVAS_MIN_WIDTH,
    CANVAS_PADDING,
    DEFAULT_PITCH_MM,
    SNAP_THRESHOLD_PX,
)
from .key_layout import KeyLayout, Point

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bounds:
    width: float
    height: float
    offset_x: float
    offset_y: float


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float


def clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def unit_px_for_pitch(pitch_mm: float) -> float:
    return BASE_UNIT_PX * pitch_mm / DEFAULT_PITCH_MM


def rotate(origin: Point, point: Point, angle: float) -> Point:
    """Rotates `point` around `origin` by `angle` degrees, clockwise
    in screen coordinates (y axis pointing down)"""
    radians = math.radians(angle)
    cos = math.cos(radians)
    sin = math.sin(radians)
    dx = point.x - origin.x
    dy = point.y - origin.y
    return Point(
        origin.x + dx * cos - dy * sin,
        origin.y + dx * sin + dy * cos,
    )


def corner_points(key: KeyLayout, unit_px: float = 1.0) -> List[Point]:
    """Returns key corners after rotation, in order:
    top-left, top-right, bottom-left, bottom-right.
    """
    x = key.x * unit_px
    y = key.y * unit_px
    width = key.w * unit_px
    height = key.h * unit_px
    center = Point(key.rotation_center.x * unit_px, key.rotation_center.y * unit_px)

    corners = [
        Point(x, y),
        Point(x + width, y),
        Point(x, y + height),
        Point(x + width, y + height),
    ]
    if key.rotation_angle == 0:
        return corners
    return [rotate(center, corner, key.rotation_angle) for corner in corners]


def _envelope(points: Iterable[Point]) -> Tuple[float, float, float, float]:
    return MultiPoint([(p.x, p.y) for p in points]).bounds


def bounding_box(keys: Iterable[KeyLayout], unit_px: float) -> Bounds:
    points = [corner for key in keys for corner in corner_points(key, unit_px)]
    if not points:
        return Bounds(
            CANVAS_MAX_WIDTH, CANVAS_MAX_HEIGHT, CANVAS_PADDING, CANVAS_PADDING
        )

    min_x, min_y, max_x, max_y = _envelope(points)
    width = clamp(
        max_x - min_x + 2 * CANVAS_PADDING, CANVAS_MIN_WIDTH, CANVAS_MAX_WIDTH
    )
    height = clamp(
        max_y - min_y + 2 * CANVAS_PADDING, CANVAS_MIN_HEIGHT, CANVAS_MAX_HEIGHT
    )
    return Bounds(width, height, -min_x + CANVAS_PADDING, -min_y + CANVAS_PADDING)


def key_bounding_rect(
    key: KeyLayout, unit_px: float, offset: Point = Point(0, 0)
) -> Rect:
    min_x, min_y, max_x, max_y = _envelope(corner_points(key, unit_px))
    return Rect(min_x + offset.x, min_y + offset.y, max_x - min_x, max_y - min_y)


def nearest_snap_offset(
    moving_key: KeyLayout,
    other_keys: Iterable[KeyLayout],
    unit_px: float,
    threshold_px: float = SNAP_THRESHOLD_PX,
) -> Optional[Point]:
    """Returns translation (in pixels) which aligns closest pair of corners
    of `moving_key` and any of `other_keys`, or None if no corner pair
    is closer than `threshold_px`.
    """
    moving_corners = corner_points(moving_key, unit_px)
    best: Optional[Tuple[float, float, float]] = None

    for other in other_keys:
        if other.id == moving_key.id:
            continue
        other_corners = corner_points(other, unit_px)
        for corner in moving_corners:
            for target in other_corners:
                dx = target.x - corner.x
                dy = target.y - corner.y
                distance = math.hypot(dx, dy)
                if distance <= threshold_px and (best is None or distance < best[2]):
                    best = (dx, dy, distance)

    if best is None:
        return None
    logger.debug(f"Snapping key {moving_key.id} by {best[0]:.3f}, {best[1]:.3f}")
    return Point(best[0], best[1])


def rects_intersect(a: Rect, b: Rect) -> bool:
    """Axis-aligned overlap test, touching edges count as intersecting"""
    return not (
        a.x > b.x + b.width
        or a.x + a.width < b.x
        or a.y > b.y + b.height
        or a.y + a.height < b.y
    )
