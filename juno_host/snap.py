"""Snap-to-edge selection for the collapsed ball."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Tuple

from juno_host.geometry import SNAP_PADDING, Point, Size, WorkArea, round_half_up

# Enumeration order doubles as the tie-break: the first candidate at the minimum distance wins.
SNAP_ANCHORS: Tuple[str, ...] = (
    "top-left",
    "top-right",
    "bottom-left",
    "bottom-right",
    "left-middle",
    "right-middle",
    "top-middle",
    "bottom-middle",
)


@dataclass(frozen=True)
class SnapTarget:
    name: str
    x: float
    y: float

    def center(self, size: Size) -> Tuple[float, float]:
        return self.x + size.width / 2, self.y + size.height / 2

    def rounded(self) -> Point:
        return Point(round_half_up(self.x), round_half_up(self.y))


def snap_candidates(size: Size, area: WorkArea, padding: int = SNAP_PADDING) -> List[SnapTarget]:
    left = padding
    right = area.width - size.width - padding
    top = padding
    bottom = area.height - size.height - padding
    middle_x = (area.width - size.width) / 2
    middle_y = (area.height - size.height) / 2
    coordinates = (
        (left, top),
        (right, top),
        (left, bottom),
        (right, bottom),
        (left, middle_y),
        (right, middle_y),
        (middle_x, top),
        (middle_x, bottom),
    )
    return [SnapTarget(name, x, y) for name, (x, y) in zip(SNAP_ANCHORS, coordinates)]


def nearest_snap_target(
    position: Point,
    size: Size,
    area: WorkArea,
    padding: int = SNAP_PADDING,
) -> SnapTarget:
    center_x = position.x + size.width / 2
    center_y = position.y + size.height / 2
    candidates = snap_candidates(size, area, padding)
    best = candidates[0]
    best_distance = math.inf
    for candidate in candidates:
        cx, cy = candidate.center(size)
        distance = math.hypot(center_x - cx, center_y - cy)
        if distance < best_distance:
            best_distance = distance
            best = candidate
    return best
