"""Mesh emission helpers shared by the feature handlers.

All 2D inputs are (x, z) pairs in tile-local metres; outputs are [x, y, z]
vertices with Y up and triangles wound counter-clockwise when viewed from
the side the face points to.
"""

import numpy as np

from .models import BoundingBox

_EPS = 1e-12


def signed_area(points_2d) -> float:
    """Shoelace signed area in the (x, z) plane."""
    pts = np.asarray(points_2d, dtype=np.float64)
    if len(pts) < 3:
        return 0.0
    x = pts[:, 0]
    z = pts[:, 1]
    return 0.5 * float(np.sum(x * np.roll(z, -1) - np.roll(x, -1) * z))


def open_ring(points_2d) -> np.ndarray:
    """Drop the repeated closing point of a ring, if present."""
    pts = np.asarray(points_2d, dtype=np.float64).reshape(-1, 2)
    if len(pts) > 1 and np.allclose(pts[0], pts[-1], atol=1e-9):
        pts = pts[:-1]
    return pts


def _cross(o, a, b) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _is_ear(indices: list[int], pos: int, pts: np.ndarray) -> bool:
    m = len(indices)
    a = pts[indices[(pos - 1) % m]]
    b = pts[indices[pos]]
    c = pts[indices[(pos + 1) % m]]

    if _cross(a, b, c) <= _EPS:
        return False

    for j in range(m):
        if j in ((pos - 1) % m, pos, (pos + 1) % m):
            continue
        p = pts[indices[j]]
        # Bridged holes repeat vertices; a coincident vertex never blocks an ear
        if np.array_equal(p, a) or np.array_equal(p, b) or np.array_equal(p, c):
            continue
        d1 = _cross(a, b, p)
        d2 = _cross(b, c, p)
        d3 = _cross(c, a, p)
        if d1 >= -_EPS and d2 >= -_EPS and d3 >= -_EPS:
            return False
    return True


def triangulate_polygon(points_2d) -> list[list[int]]:
    """Ear-clipping triangulation of a simple polygon.

    Returns index triplets into ``points_2d``, each with positive signed
    area in the (x, z) plane regardless of the input winding.
    """
    pts = np.asarray(points_2d, dtype=np.float64)
    n = len(pts)
    if n < 3:
        return []

    indices = list(range(n))
    if signed_area(pts) < 0:
        indices.reverse()

    triangles = []
    guard = n * n
    while len(indices) > 3 and guard > 0:
        guard -= 1
        m = len(indices)
        for i in range(m):
            if _is_ear(indices, i, pts):
                triangles.append([indices[(i - 1) % m], indices[i], indices[(i + 1) % m]])
                indices.pop(i)
                break
        else:
            # Degenerate remainder: fan it so the footprint is still covered
            for i in range(1, len(indices) - 1):
                triangles.append([indices[0], indices[i], indices[i + 1]])
            return triangles

    if len(indices) == 3:
        triangles.append(list(indices))
    return triangles


def bridge_holes(outer, holes) -> np.ndarray:
    """Merge hole rings into the outer ring with zero-width bridges.

    The outer ring is oriented with positive area and holes with negative
    area, then each hole (rightmost first) is spliced in at the outer vertex
    closest to the hole's rightmost vertex.
    """
    merged = open_ring(outer)
    if signed_area(merged) < 0:
        merged = merged[::-1]

    prepared = []
    for hole in holes:
        ring = open_ring(hole)
        if len(ring) < 3:
            continue
        if signed_area(ring) > 0:
            ring = ring[::-1]
        prepared.append(ring)
    prepared.sort(key=lambda r: float(np.max(r[:, 0])), reverse=True)

    for ring in prepared:
        j = int(np.argmax(ring[:, 0]))
        dists = np.sum((merged - ring[j]) ** 2, axis=1)
        i = int(np.argmin(dists))
        hole_loop = np.vstack([ring[j:], ring[:j + 1]])
        merged = np.vstack([merged[:i + 1], hole_loop, merged[i:]])

    return merged


def triangulate_with_holes(outer, holes=()) -> tuple[np.ndarray, list[list[int]]]:
    """Triangulate a polygon with holes. Returns (points, triangles)."""
    points = bridge_holes(outer, holes)
    return points, triangulate_polygon(points)


def _flip(triangles: list[list[int]], offset: int = 0) -> list[list[int]]:
    # Positive (x, z) area faces down in a Y-up frame; swap to face up
    return [[a + offset, c + offset, b + offset] for a, b, c in triangles]


def create_flat_polygon(outer, holes=(), y: float = 0.0) -> dict:
    """Upward-facing triangulated polygon at constant height."""
    points, triangles = triangulate_with_holes(outer, holes)
    if not triangles:
        return {"vertices": [], "faces": []}
    vertices = [[float(p[0]), y, float(p[1])] for p in points]
    return {"vertices": vertices, "faces": _flip(triangles)}


def strip_outline(centerline, width: float) -> tuple[np.ndarray, np.ndarray]:
    """Left and right edges of a strip of ``width`` around a centerline.

    Consecutive duplicate points are removed first. Returns two (N, 2)
    arrays; both are empty when fewer than two distinct points remain.
    """
    pts = np.asarray(centerline, dtype=np.float64).reshape(-1, 2)
    if len(pts) == 0:
        return np.empty((0, 2)), np.empty((0, 2))
    keep = [0]
    for i in range(1, len(pts)):
        if not np.allclose(pts[i], pts[keep[-1]], atol=1e-6):
            keep.append(i)
    pts = pts[keep]
    if len(pts) < 2:
        return np.empty((0, 2)), np.empty((0, 2))

    left = []
    right = []
    half = width / 2
    for i, point in enumerate(pts):
        if i == 0:
            direction = pts[1] - pts[0]
        elif i == len(pts) - 1:
            direction = pts[i] - pts[i - 1]
        else:
            direction = pts[i + 1] - pts[i - 1]
        length = float(np.hypot(direction[0], direction[1]))
        if length < 1e-9:
            direction = np.array([1.0, 0.0])
        else:
            direction = direction / length
        perpendicular = np.array([direction[1], -direction[0]])
        left.append(point + perpendicular * half)
        right.append(point - perpendicular * half)

    return np.array(left), np.array(right)


def create_strip(centerline, width: float, heights=None, offset: float = 0.0) -> dict:
    """Upward-facing ribbon along a centerline.

    Args:
        centerline: Sequence of (x, z) points.
        width: Strip width in tile-local units.
        heights: Optional per-point Y values; flat at 0 when omitted.
        offset: Constant added to every Y value.

    Returns:
        Dict with 'vertices' and 'faces'. Two vertices per centerline point.
    """
    pts = np.asarray(centerline, dtype=np.float64).reshape(-1, 2)
    if heights is None:
        heights = np.zeros(len(pts))
    heights = np.asarray(heights, dtype=np.float64)

    # Keep heights aligned with the de-duplicated centerline
    keep = [0] if len(pts) else []
    for i in range(1, len(pts)):
        if not np.allclose(pts[i], pts[keep[-1]], atol=1e-6):
            keep.append(i)
    left, right = strip_outline(pts, width)
    if len(left) == 0:
        return {"vertices": [], "faces": []}
    heights = heights[keep]

    vertices = []
    for l_pt, r_pt, h in zip(left, right, heights):
        y = float(h) + offset
        vertices.append([float(l_pt[0]), y, float(l_pt[1])])
        vertices.append([float(r_pt[0]), y, float(r_pt[1])])

    faces = []
    for i in range(len(left) - 1):
        l0, r0 = 2 * i, 2 * i + 1
        l1, r1 = 2 * i + 2, 2 * i + 3
        faces.append([l0, r0, r1])
        faces.append([l0, r1, l1])

    return {"vertices": vertices, "faces": _orient_up(vertices, faces)}


def _orient_up(vertices: list, faces: list) -> list:
    oriented = []
    for a, b, c in faces:
        va, vb, vc = vertices[a], vertices[b], vertices[c]
        ny = (vb[2] - va[2]) * (vc[0] - va[0]) - (vb[0] - va[0]) * (vc[2] - va[2])
        oriented.append([a, b, c] if ny >= 0 else [a, c, b])
    return oriented


def create_extruded_polygon(outer, holes=(), base_y: float = 0.0, top_y: float = 1.0) -> dict:
    """Walls and a flat roof for a footprint between ``base_y`` and ``top_y``.

    Walls face away from the solid for both the outer ring and holes. No floor
    is emitted since the footprint always stands on terrain.
    """
    outer_ring = open_ring(outer)
    if len(outer_ring) < 3 or top_y <= base_y:
        return {"vertices": [], "faces": []}
    if signed_area(outer_ring) < 0:
        outer_ring = outer_ring[::-1]

    rings = [outer_ring]
    for hole in holes:
        ring = open_ring(hole)
        if len(ring) < 3:
            continue
        if signed_area(ring) > 0:
            ring = ring[::-1]
        rings.append(ring)

    vertices = []
    faces = []

    for ring in rings:
        n = len(ring)
        start = len(vertices)
        for p in ring:
            vertices.append([float(p[0]), base_y, float(p[1])])
        for p in ring:
            vertices.append([float(p[0]), top_y, float(p[1])])
        for i in range(n):
            j = (i + 1) % n
            b0, b1 = start + i, start + j
            t0, t1 = start + n + i, start + n + j
            faces.append([b0, t0, t1])
            faces.append([b0, t1, b1])

    roof = create_flat_polygon(rings[0], rings[1:], y=top_y)
    offset = len(vertices)
    vertices.extend(roof["vertices"])
    faces.extend([[a + offset, b + offset, c + offset] for a, b, c in roof["faces"]])

    return {"vertices": vertices, "faces": faces}


def create_wall(centerline, thickness: float, base_y: float, top_y: float) -> dict:
    """Thin extruded wall along a centerline (fences, hedges, walls)."""
    left, right = strip_outline(centerline, thickness)
    if len(left) == 0:
        return {"vertices": [], "faces": []}
    outline = np.vstack([left, right[::-1]])
    return create_extruded_polygon(outline, (), base_y, top_y)


def point_in_polygon(x: float, z: float, ring) -> bool:
    """Even-odd ray casting test against an open or closed ring."""
    pts = open_ring(ring)
    inside = False
    n = len(pts)
    for i in range(n):
        x1, z1 = pts[i]
        x2, z2 = pts[(i + 1) % n]
        if (z1 > z) != (z2 > z):
            x_cross = x1 + (z - z1) * (x2 - x1) / (z2 - z1)
            if x < x_cross:
                inside = not inside
    return inside


def polyline_length(points) -> float:
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 2:
        return 0.0
    return float(np.sum(np.hypot(*np.diff(pts, axis=0).T)))


def _cut_start(pts: np.ndarray, distance: float) -> np.ndarray:
    remaining = distance
    for i in range(len(pts) - 1):
        seg = pts[i + 1] - pts[i]
        seg_len = float(np.hypot(seg[0], seg[1]))
        if seg_len >= remaining:
            if seg_len < 1e-12:
                return pts[i:]
            start = pts[i] + seg * (remaining / seg_len)
            return np.vstack([start, pts[i + 1:]])
        remaining -= seg_len
    return pts[-1:]


def trim_polyline(points, start: float = 0.0, end: float = 0.0) -> np.ndarray:
    """Shorten a polyline by ``start`` and ``end`` units of length.

    Returns an empty (0, 2) array when the cuts consume the whole line.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(pts) < 2:
        return pts
    if start + end >= polyline_length(pts):
        return np.empty((0, 2))
    if start > 0:
        pts = _cut_start(pts, start)
    if end > 0:
        pts = _cut_start(pts[::-1], end)[::-1]
    return pts


def compute_bounding_box(vertices: list) -> BoundingBox | None:
    if not vertices:
        return None
    arr = np.asarray(vertices, dtype=np.float64)
    return BoundingBox(min=arr.min(axis=0).tolist(), max=arr.max(axis=0).tolist())
