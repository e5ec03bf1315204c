"""Tests for spatial placement."""

import math

import pytest

from ideacanvas import placement
from ideacanvas.models import ORIGIN, Point


def distance(a: Point, b: Point) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


class TestFindOpenSpot:
    """Tests for the spiral open-spot search."""

    def test_free_target_is_returned_as_is(self):
        spot = placement.find_open_spot(Point(1000, 1000), [])

        assert spot == Point(1000, 1000)

    def test_keeps_clear_of_origin(self):
        """The trunk at the origin always counts as occupied."""
        spot = placement.find_open_spot(ORIGIN, [])

        assert distance(spot, ORIGIN) > placement.MIN_DISTANCE

    def test_keeps_clear_of_occupied_points(self):
        occupied = [Point(500, 500), Point(700, 500), Point(600, 650)]
        spot = placement.find_open_spot(Point(600, 550), occupied)

        for p in occupied + [ORIGIN]:
            assert distance(spot, p) > placement.MIN_DISTANCE

    def test_falls_back_when_crowded(self):
        """A hopelessly crowded area still yields a point on the zero bearing."""
        occupied = [Point(x, y) for x in range(-2000, 2001, 100) for y in range(-2000, 2001, 100)]
        spot = placement.find_open_spot(Point(0, 0), occupied)

        expected_radius = placement.SPIRAL_ITERATIONS * placement.SPIRAL_RADIUS_STEP
        assert spot == Point(expected_radius, 0)

    def test_custom_min_distance(self):
        spot = placement.find_open_spot(Point(1000, 0), [Point(1000, 0)], min_distance=50)

        assert distance(spot, Point(1000, 0)) > 50


class TestLayouts:
    """Tests for initial and child layouts."""

    def test_initial_batch_is_mutually_clear(self):
        spots = placement.layout_initial(ORIGIN, 3)

        assert len(spots) == 3
        for i, a in enumerate(spots):
            assert distance(a, ORIGIN) > placement.INITIAL_MIN_DISTANCE
            for b in spots[i + 1:]:
                assert distance(a, b) > placement.INITIAL_MIN_DISTANCE

    def test_initial_targets_form_a_triangle(self):
        targets = placement.initial_targets(Point(100, 100), 3)

        for target in targets:
            assert distance(target, Point(100, 100)) == pytest.approx(placement.INITIAL_BASE_RADIUS)
        # One target straight below the center
        assert targets[1].x == pytest.approx(100)
        assert targets[1].y == pytest.approx(100 + placement.INITIAL_BASE_RADIUS)

    def test_children_grow_away_from_origin(self):
        parent = Point(400, 0)
        targets = placement.child_targets(parent, 3)

        assert targets[1].x == pytest.approx(400 + placement.CHILD_BASE_DISTANCE + placement.CHILD_DISTANCE_STEP)
        assert targets[1].y == pytest.approx(0)
        for target in targets:
            assert target.x > parent.x

    def test_children_are_clear_of_everything(self):
        parent = Point(380, 0)
        occupied = [parent, Point(600, 0), Point(-300, 200)]
        spots = placement.layout_children(parent, 3, occupied)

        assert len(spots) == 3
        taken = occupied + [ORIGIN]
        for spot in spots:
            for p in taken:
                assert distance(spot, p) > placement.MIN_DISTANCE
            taken.append(spot)

    def test_zero_count(self):
        assert placement.layout_children(Point(10, 10), 0) == []
        assert placement.layout_initial(ORIGIN, 0) == []
