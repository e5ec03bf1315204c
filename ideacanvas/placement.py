"""Spatial placement of new items.

Item counts per canvas are small (tens), so a bounded spiral search
against every existing point is good enough and never fails.
"""

import math
from typing import Iterable, List, Sequence

from ideacanvas.models import ORIGIN, Point

MIN_DISTANCE = 200.0
SPIRAL_ITERATIONS = 64
SPIRAL_ANGLE_STEP = math.pi / 7  # ~25.7 degrees
SPIRAL_RADIUS_STEP = 24.0

# Initial batch: rough triangle around the view center
INITIAL_BASE_RADIUS = 380.0
INITIAL_ANGLES = (-math.pi / 6, math.pi / 2, math.pi + math.pi / 6)
INITIAL_MIN_DISTANCE = 340.0

# Children fan out away from the origin
CHILD_ANGLE_OFFSETS = (-0.5, 0.0, 0.5)
CHILD_BASE_DISTANCE = 220.0
CHILD_DISTANCE_STEP = 30.0


def _is_clear(x: float, y: float, occupied: Sequence[Point], min_distance: float) -> bool:
    return all(math.hypot(x - p.x, y - p.y) > min_distance for p in occupied)


def find_open_spot(target: Point, occupied: Iterable[Point],
                   min_distance: float = MIN_DISTANCE) -> Point:
    """Return a point at or near ``target`` farther than ``min_distance``
    from every occupied point and from the trunk at the origin.

    Spiral outward from the target; after the iteration budget give up and
    return the farthest point tried along the zero bearing.
    """
    points = list(occupied)
    points.append(ORIGIN)

    radius = 0.0
    angle = 0.0
    for _ in range(SPIRAL_ITERATIONS):
        x = target.x + math.cos(angle) * radius
        y = target.y + math.sin(angle) * radius
        if _is_clear(x, y, points, min_distance):
            return Point(x, y)
        radius += SPIRAL_RADIUS_STEP
        angle += SPIRAL_ANGLE_STEP
    return Point(target.x + radius, target.y)


def initial_targets(center: Point, count: int) -> List[Point]:
    """Desired positions for the first batch of items around ``center``."""
    targets = []
    for i in range(count):
        angle = INITIAL_ANGLES[i % len(INITIAL_ANGLES)]
        targets.append(Point(center.x + math.cos(angle) * INITIAL_BASE_RADIUS,
                             center.y + math.sin(angle) * INITIAL_BASE_RADIUS))
    return targets


def child_targets(parent: Point, count: int) -> List[Point]:
    """Desired positions for children of ``parent``.

    The bearing runs from the world origin through the parent so new
    children grow away from the trunk; siblings spread by a fixed angle and
    step further out with their index.
    """
    out_angle = math.atan2(parent.y, parent.x)
    targets = []
    for i in range(count):
        angle = out_angle + CHILD_ANGLE_OFFSETS[i % len(CHILD_ANGLE_OFFSETS)]
        distance = CHILD_BASE_DISTANCE + i * CHILD_DISTANCE_STEP
        targets.append(Point(parent.x + math.cos(angle) * distance,
                             parent.y + math.sin(angle) * distance))
    return targets


def _resolve(targets: Iterable[Point], occupied: Iterable[Point],
             min_distance: float) -> List[Point]:
    taken = list(occupied)
    spots = []
    for target in targets:
        spot = find_open_spot(target, taken, min_distance)
        spots.append(spot)
        taken.append(spot)
    return spots


def layout_initial(center: Point, count: int, occupied: Iterable[Point] = ()) -> List[Point]:
    """Resolve the initial batch; spots are also kept clear of each other."""
    return _resolve(initial_targets(center, count), occupied, INITIAL_MIN_DISTANCE)


def layout_children(parent: Point, count: int, occupied: Iterable[Point] = (),
                    min_distance: float = MIN_DISTANCE) -> List[Point]:
    """Resolve positions for ``count`` new children of ``parent``."""
    return _resolve(child_targets(parent, count), occupied, min_distance)
