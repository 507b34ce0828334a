"""Tests for ring simplification."""
from tile3d.models import VectorNode


def _nodes(coords):
    return [VectorNode(x=x, y=y) for x, y in coords]


def _coords(nodes):
    return [(n.x, n.y) for n in nodes]


def test_near_collinear_vertex_removed_and_ring_stays_closed():
    from tile3d.core.simplify import simplify_nodes

    ring = _nodes([(0, 0), (5, 0.1), (10, 0), (10, 10), (0, 10), (0, 0)])
    result = simplify_nodes(ring)

    assert _coords(result) == [(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)]
    assert result[0] is ring[0]
    assert result[-1] is ring[-1]


def test_simplify_returns_original_objects():
    from tile3d.core.simplify import simplify_nodes

    ring = _nodes([(0, 0), (10, 0), (10, 10), (0, 10), (0, 0)])
    result = simplify_nodes(ring)
    assert all(any(r is n for n in ring) for r in result)


def test_simplify_is_idempotent():
    from tile3d.core.simplify import simplify_nodes

    ring = _nodes([(0, 0), (3, 0.2), (6, -0.2), (10, 0), (10, 10), (5, 10.3), (0, 10), (0, 0)])
    once = simplify_nodes(ring)
    twice = simplify_nodes(once)
    assert _coords(once) == _coords(twice)


def test_two_points_or_fewer_unchanged():
    from tile3d.core.simplify import simplify

    assert simplify([]) == []
    pts = _nodes([(0, 0), (0.1, 0)])
    assert simplify(pts) == pts


def test_radial_prefilter_drops_close_points():
    from tile3d.core.simplify import simplify

    pts = _nodes([(0, 0), (0.1, 0), (0.2, 0), (10, 0)])
    assert _coords(simplify(pts, 0.5)) == [(0, 0), (10, 0)]


def test_high_quality_keeps_significant_detail():
    from tile3d.core.simplify import simplify

    pts = _nodes([(0, 0), (5, 3), (10, 0)])
    assert _coords(simplify(pts, 0.5, high_quality=True)) == [(0, 0), (5, 3), (10, 0)]
