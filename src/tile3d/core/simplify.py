"""Polyline simplification for area ring boundaries.

Radial-distance prefilter followed by Douglas-Peucker, operating on any
sequence of objects exposing ``x`` and ``y``. The returned list holds the
original objects, so node descriptors and OSM references survive.
"""

from typing import Sequence, TypeVar

import numpy as np

SIMPLIFY_TOLERANCE = 0.5

P = TypeVar("P")


def _sq_seg_dist(px: float, py: float, x1: float, y1: float, x2: float, y2: float) -> float:
    """Squared distance from a point to a segment."""
    x, y = x1, y1
    dx = x2 - x
    dy = y2 - y
    if dx != 0 or dy != 0:
        t = ((px - x) * dx + (py - y) * dy) / (dx * dx + dy * dy)
        if t > 1:
            x, y = x2, y2
        elif t > 0:
            x += dx * t
            y += dy * t
    dx = px - x
    dy = py - y
    return dx * dx + dy * dy


def _simplify_radial_dist(points: list, sq_tolerance: float) -> list:
    prev_point = points[0]
    new_points = [prev_point]
    point = prev_point
    for point in points[1:]:
        dx = point.x - prev_point.x
        dy = point.y - prev_point.y
        if dx * dx + dy * dy > sq_tolerance:
            new_points.append(point)
            prev_point = point
    if prev_point is not point:
        new_points.append(point)
    return new_points


def _simplify_douglas_peucker(points: list, sq_tolerance: float) -> list:
    last = len(points) - 1
    keep = np.zeros(len(points), dtype=bool)
    keep[0] = True
    keep[last] = True

    stack = [(0, last)]
    while stack:
        first, end = stack.pop()
        max_sq_dist = sq_tolerance
        index = -1
        p1 = points[first]
        p2 = points[end]
        for i in range(first + 1, end):
            sq_dist = _sq_seg_dist(points[i].x, points[i].y, p1.x, p1.y, p2.x, p2.y)
            if sq_dist > max_sq_dist:
                index = i
                max_sq_dist = sq_dist
        if index < 0:
            continue
        keep[index] = True
        if index - first > 1:
            stack.append((first, index))
        if end - index > 1:
            stack.append((index, end))

    return [p for p, k in zip(points, keep) if k]


def simplify(points: Sequence[P], tolerance: float = SIMPLIFY_TOLERANCE, high_quality: bool = False) -> list[P]:
    """Simplify a point sequence with the given distance tolerance.

    Args:
        points: Objects with ``x`` and ``y`` attributes.
        tolerance: Maximum allowed deviation, in the points' units.
        high_quality: Skip the radial-distance prefilter (slower, closer fit).

    Returns:
        A sub-sequence of the input objects. The first and last points are
        always kept, so a closed ring stays closed.
    """
    points = list(points)
    if len(points) <= 2:
        return points

    sq_tolerance = tolerance * tolerance
    if not high_quality:
        points = _simplify_radial_dist(points, sq_tolerance)
    return _simplify_douglas_peucker(points, sq_tolerance)


def simplify_nodes(nodes: Sequence[P]) -> list[P]:
    """Simplify area ring nodes with the fixed ring tolerance, single pass."""
    return simplify(nodes, SIMPLIFY_TOLERANCE, high_quality=False)
