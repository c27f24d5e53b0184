"""Geometry primitives and clamp policies for the floating widget.

This module is intentionally free of Qt types. The three clamp policies are kept
separate because each transition applies a different bound set:

- free drag (both states): half the window may leave the work area on every side;
- expanded post-move correction: same horizontal margin, but never above y=0;
- expand transition: a fixed left margin of -200 and the default panel size.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Tuple

COLLAPSED_SIZE = 80
EXPANDED_WIDTH = 400
EXPANDED_HEIGHT = 600
EXPANDED_MIN_SIZE = (300, 400)
EXPANDED_MAX_SIZE = (800, 1000)
EXPANDED_MIN_VISIBLE_X = -(EXPANDED_WIDTH / 2)
SNAP_PADDING = 20


@dataclass(frozen=True)
class Point:
    x: int
    y: int

    def as_dict(self) -> dict:
        return {"x": self.x, "y": self.y}


@dataclass(frozen=True)
class Size:
    width: int
    height: int


@dataclass(frozen=True)
class WorkArea:
    """Usable rectangle of the primary display (taskbars/docks excluded)."""

    width: int
    height: int


@dataclass(frozen=True)
class WidgetState:
    expanded: bool
    position: Point
    size: Size

    def size_is_legal(self) -> bool:
        if not self.expanded:
            return self.size == Size(COLLAPSED_SIZE, COLLAPSED_SIZE)
        min_w, min_h = EXPANDED_MIN_SIZE
        max_w, max_h = EXPANDED_MAX_SIZE
        return min_w <= self.size.width <= max_w and min_h <= self.size.height <= max_h


COLLAPSED = Size(COLLAPSED_SIZE, COLLAPSED_SIZE)
EXPANDED_DEFAULT = Size(EXPANDED_WIDTH, EXPANDED_HEIGHT)


def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def round_half_up(value: float) -> int:
    """Round like the window system does: .5 always goes towards +infinity."""
    return int(math.floor(value + 0.5))


def _clamp_axis(value: float, lower: float, upper: float) -> int:
    # Integer result that never leaves [lower, upper] even when a bound is fractional.
    lo = math.ceil(lower)
    hi = math.floor(upper)
    return max(lo, min(hi, round_half_up(value)))


def clamp_drag_position(x: float, y: float, size: Size, area: WorkArea) -> Point:
    """Free-drag bounds: at most half the window may leave the work area on each side."""
    min_x = -(size.width / 2)
    max_x = area.width - size.width / 2
    min_y = -(size.height / 2)
    max_y = area.height - size.height / 2
    return Point(_clamp_axis(x, min_x, max_x), _clamp_axis(y, min_y, max_y))


def clamp_moved_position(x: float, y: float, size: Size, area: WorkArea) -> Tuple[Point, bool]:
    """Correction applied after a native move of the expanded panel.

    Returns the corrected position and whether it differs from the input.
    """
    min_x = -(size.width / 2)
    max_x = area.width - size.width / 2
    min_y = 0.0
    max_y = area.height - size.height / 2
    new_x, new_y = float(x), float(y)
    needs_correction = False
    if new_x < min_x:
        new_x, needs_correction = min_x, True
    if new_x > max_x:
        new_x, needs_correction = max_x, True
    if new_y < min_y:
        new_y, needs_correction = min_y, True
    if new_y > max_y:
        new_y, needs_correction = max_y, True
    if not needs_correction:
        return Point(round_half_up(x), round_half_up(y)), False
    return Point(_clamp_axis(new_x, min_x, max_x), _clamp_axis(new_y, min_y, max_y)), True


def clamp_expand_position(x: float, y: float, area: WorkArea) -> Point:
    """Bounds used when the ball opens into the default-sized panel."""
    min_x = EXPANDED_MIN_VISIBLE_X
    max_x = area.width - EXPANDED_WIDTH / 2
    min_y = 0.0
    max_y = area.height - EXPANDED_HEIGHT / 2
    return Point(_clamp_axis(x, min_x, max_x), _clamp_axis(y, min_y, max_y))


def default_collapsed_position(area: WorkArea) -> Point:
    """Bottom-right resting spot used before any position was persisted."""
    return Point(
        area.width - COLLAPSED_SIZE - SNAP_PADDING,
        area.height - COLLAPSED_SIZE - SNAP_PADDING,
    )
