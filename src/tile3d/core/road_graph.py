"""Road connectivity graph and intersection footprints.

Roads are registered first, then the graph is finalized once with
``init_intersections``. Every vertex shared by two or more distinct roads
becomes an ``Intersection`` whose directions are the road arms leaving it,
sorted counter-clockwise by angle in the (x, z) plane.
"""

import logging
import math

import numpy as np

logger = logging.getLogger(__name__)

_KEY_PRECISION = 3


class Road:
    """One road-like polyline registered in the graph.

    Hashed by identity so it can key the per-tile material side table.
    """

    def __init__(self, vertices, width: float):
        self.vertices = np.asarray(vertices, dtype=np.float64).reshape(-1, 2)
        self.width = float(width)
        self.start_intersection: "Intersection | None" = None
        self.end_intersection: "Intersection | None" = None

    def __repr__(self) -> str:
        return f"Road(vertices={len(self.vertices)}, width={self.width})"

    def get_cut_distance(self, at_start: bool) -> float:
        """Length to remove from one end so a usable intersection polygon fits."""
        intersection = self.start_intersection if at_start else self.end_intersection
        if intersection is None or intersection.skip:
            return 0.0
        index = 0 if at_start else len(self.vertices) - 1
        for direction in intersection.directions:
            if direction.road is self and direction.vertex_index == index:
                return direction.distance
        return 0.0


class Direction:
    """A road arm leaving an intersection."""

    def __init__(self, road: Road, vertex_index: int, vector: np.ndarray, length: float):
        self.road = road
        self.vertex_index = vertex_index
        self.vector = vector
        self.length = length
        self.angle = math.atan2(vector[1], vector[0])
        self.distance = 0.0

    @property
    def half_width(self) -> float:
        return self.road.width / 2

    @property
    def left(self) -> np.ndarray:
        return np.array([-self.vector[1], self.vector[0]])

    @property
    def right(self) -> np.ndarray:
        return np.array([self.vector[1], -self.vector[0]])


class Intersection:
    def __init__(self, position: np.ndarray):
        self.position = position
        self.directions: list[Direction] = []
        self.skip = False
        self.polygon: list[tuple[float, float]] | None = None

    def __repr__(self) -> str:
        return (
            f"Intersection(position=({self.position[0]:.2f}, {self.position[1]:.2f}), "
            f"directions={len(self.directions)}, skip={self.skip})"
        )


class RoadGraph:
    def __init__(self):
        self.roads: list[Road] = []
        self.intersections: list[Intersection] = []
        self.is_finalized = False

    def add_road(self, road: Road) -> None:
        if self.is_finalized:
            raise RuntimeError("Cannot add roads after intersections are initialized")
        self.roads.append(road)

    def init_intersections(self) -> list[Intersection]:
        """Finalize the graph: find shared vertices and their incident directions."""
        if self.is_finalized:
            raise RuntimeError("Road graph intersections are already initialized")
        self.is_finalized = True

        vertex_map: dict[tuple[float, float], list[tuple[Road, int]]] = {}
        for road in self.roads:
            for index, vertex in enumerate(road.vertices):
                key = (round(float(vertex[0]), _KEY_PRECISION), round(float(vertex[1]), _KEY_PRECISION))
                vertex_map.setdefault(key, []).append((road, index))

        for occurrences in vertex_map.values():
            if len({id(road) for road, _ in occurrences}) < 2:
                continue

            road0, index0 = occurrences[0]
            intersection = Intersection(road0.vertices[index0].copy())

            for road, index in occurrences:
                last = len(road.vertices) - 1
                if index > 0:
                    self._add_direction(intersection, road, index, index - 1)
                if index < last:
                    self._add_direction(intersection, road, index, index + 1)
                if index == 0:
                    road.start_intersection = intersection
                if index == last:
                    road.end_intersection = intersection

            if len(intersection.directions) < 2:
                continue
            intersection.directions.sort(key=lambda d: d.angle)
            self.intersections.append(intersection)

        logger.debug(
            "Road graph finalized: %d roads, %d intersections",
            len(self.roads), len(self.intersections),
        )
        return self.intersections

    @staticmethod
    def _add_direction(intersection: Intersection, road: Road, index: int, towards: int) -> None:
        delta = road.vertices[towards] - road.vertices[index]
        length = float(np.hypot(delta[0], delta[1]))
        if length < 1e-9:
            return
        intersection.directions.append(Direction(road, index, delta / length, length))

    def build_intersection_polygons(
        self, min_distance: float = 0.0
    ) -> list[tuple[Intersection, list[tuple[float, float]]]]:
        """Compute each intersection's footprint polygon.

        For each pair of neighbouring arms, the left edge of one arm is
        intersected with the right edge of the next to find how far both arms
        must be cut back. The polygon then visits, for every arm in
        counter-clockwise order, its right and left mouth corners.

        Returns:
            List of (intersection, polygon) with polygon vertices as (x, z)
            tuples, open (first vertex not repeated).
        """
        if not self.is_finalized:
            raise RuntimeError("Initialize intersections before building polygons")

        result = []
        for intersection in self.intersections:
            directions = intersection.directions
            for direction in directions:
                direction.distance = min_distance

            m = len(directions)
            for i in range(m):
                a = directions[i]
                b = directions[(i + 1) % m]
                t, s = self._corner_distances(a, b)
                a.distance = max(a.distance, min(max(t, min_distance), a.length))
                b.distance = max(b.distance, min(max(s, min_distance), b.length))

            center = intersection.position
            polygon = []
            for d in directions:
                mouth = center + d.vector * d.distance
                right = mouth + d.right * d.half_width
                left = mouth + d.left * d.half_width
                for corner in (right, left):
                    if polygon and np.allclose(polygon[-1], corner, atol=1e-6):
                        continue
                    polygon.append((float(corner[0]), float(corner[1])))
            if len(polygon) > 1 and np.allclose(polygon[0], polygon[-1], atol=1e-6):
                polygon.pop()

            intersection.polygon = polygon
            result.append((intersection, polygon))

        return result

    @staticmethod
    def _corner_distances(a: Direction, b: Direction) -> tuple[float, float]:
        """Distances along ``a`` and ``b`` where a's left edge meets b's right edge."""
        # t * a - s * b = b.right * wb - a.left * wa
        rhs = b.right * b.half_width - a.left * a.half_width
        det = -a.vector[0] * b.vector[1] + b.vector[0] * a.vector[1]
        if abs(det) < 1e-6:
            fallback = max(a.half_width, b.half_width)
            return fallback, fallback
        t = (rhs[0] * -b.vector[1] + b.vector[0] * rhs[1]) / det
        s = (a.vector[0] * rhs[1] - a.vector[1] * rhs[0]) / det
        return float(t), float(s)
