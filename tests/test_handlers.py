"""Tests for the per-feature handlers."""
import numpy as np
import pytest

from tile3d.models import (
    IntersectionMaterial,
    VectorArea,
    VectorAreaDescriptor,
    VectorAreaRing,
    VectorAreaRingType,
    VectorFeatureCollection,
    VectorNode,
    VectorNodeDescriptor,
    VectorPolyline,
    VectorPolylineDescriptor,
)


def _ring(coords, ring_type=VectorAreaRingType.OUTER):
    closed = list(coords) + [coords[0]]
    return VectorAreaRing(type=ring_type, nodes=[VectorNode(x=x, y=y) for x, y in closed])


def _polyline(coords, **descriptor):
    return VectorPolyline(
        nodes=[VectorNode(x=x, y=y) for x, y in coords],
        descriptor=VectorPolylineDescriptor(**descriptor),
    )


def _deliver(handler, heights):
    params = handler.get_requested_height_positions()
    params.callback(np.asarray(heights, dtype=float))
    return params


# --- nodes ---

def test_tree_instance_sits_on_terrain():
    from tile3d.core.handlers import VectorNodeHandler

    handler = VectorNodeHandler(VectorNode(x=10, y=20, rotation=1.5, descriptor=VectorNodeDescriptor(type="tree")))
    handler.set_mercator_scale(2.0)
    params = _deliver(handler, [5.0])

    assert params.positions.tolist() == [10.0, 20.0]
    [instance] = handler.get_features()
    assert (instance.x, instance.y, instance.z) == (10.0, 5.0, 20.0)
    assert instance.rotation == 1.5
    assert instance.scale == pytest.approx(2.0)


def test_instance_scale_follows_declared_height():
    from tile3d.core.handlers import VectorNodeHandler

    handler = VectorNodeHandler(VectorNode(x=0, y=0, descriptor=VectorNodeDescriptor(type="tree", height=20)))
    [instance] = handler.get_features()
    assert instance.scale == pytest.approx(2.0)


def test_node_without_descriptor_is_ignored():
    from tile3d.core.handlers import VectorNodeHandler

    handler = VectorNodeHandler(VectorNode(x=0, y=0))
    assert handler.get_requested_height_positions() is None
    assert handler.get_features() == []


def test_label_node_emits_label_only():
    from tile3d.core.handlers import VectorNodeHandler

    handler = VectorNodeHandler(VectorNode(x=3, y=4, descriptor=VectorNodeDescriptor(type="label", label="Market Square")))
    _deliver(handler, [12.0])
    [label] = handler.get_features()
    assert label.type == "label"
    assert label.text == "Market Square"
    assert label.priority == 1.0
    assert label.y > 12.0


# --- polylines ---

def test_roadway_is_projected_and_registers_a_road():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline(
        [(0, 0), (10, 0)], type="path", path_type="roadway",
        intersection_material=IntersectionMaterial.CONCRETE,
    ))
    handler.set_mercator_scale(1.5)

    assert handler.get_requested_height_positions() is None
    road = handler.get_graph_road()
    assert road is handler.get_graph_road()
    assert road.width == pytest.approx(9.0)
    assert handler.get_intersection_material() == IntersectionMaterial.CONCRETE

    [feature] = handler.get_features()
    assert feature.type == "projected"
    assert feature.material == "concrete"
    assert feature.z_index == 1


def test_lanes_set_roadway_width():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline([(0, 0), (10, 0)], type="path", path_type="roadway", lanes=4))
    assert handler.get_width() == pytest.approx(12.0)


def test_road_outside_graph_is_not_registered():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline(
        [(0, 0), (10, 0)], type="path", path_type="roadway", is_road_graph_part=False,
    ))
    assert handler.get_graph_road() is None
    assert handler.get_features()[0].type == "projected"


def test_footway_hugs_terrain():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline([(0, 0), (10, 0)], type="path", path_type="footway"))
    params = _deliver(handler, [3.0, 5.0])

    assert params.count == 2
    [feature] = handler.get_features()
    assert feature.type == "hugging"
    assert feature.material == "footway"
    assert feature.bounding_box.min[1] == pytest.approx(3.1)
    assert feature.bounding_box.max[1] == pytest.approx(5.1)


def test_fence_is_extruded_from_lowest_terrain():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline([(0, 0), (10, 0)], type="fence"))
    _deliver(handler, [2.0, 5.0])

    [feature] = handler.get_features()
    assert feature.type == "extruded"
    assert feature.bounding_box.min[1] == pytest.approx(2.0)
    assert feature.terrain_height == 2.0
    assert feature.bounding_box.max[1] == pytest.approx(3.5)


def test_power_line_polyline_has_no_own_geometry():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline([(0, 0), (10, 0)], type="powerLine"))
    assert handler.get_requested_height_positions() is None
    assert handler.get_graph_road() is None
    assert handler.get_features() == []


def test_labelled_polyline_label_at_middle():
    from tile3d.core.handlers import VectorPolylineHandler

    handler = VectorPolylineHandler(_polyline(
        [(0, 0), (10, 0), (20, 0)], type="waterway", label="Mill Creek",
    ))
    _deliver(handler, [1.0, 2.0, 3.0])
    hugging, label = handler.get_features()
    assert hugging.type == "hugging"
    assert (label.x, label.z) == (10.0, 0.0)
    assert label.text == "Mill Creek"


# --- areas ---

def test_building_extruded_from_ground():
    from tile3d.core.handlers import VectorAreaHandler

    area = VectorArea(
        rings=[_ring([(0, 0), (10, 0), (10, 10), (0, 10)])],
        descriptor=VectorAreaDescriptor(type="building", building_levels=2),
    )
    handler = VectorAreaHandler(area)
    params = _deliver(handler, [1.0, 2.0, 3.0, 4.0])

    assert params.count == 4
    [building] = handler.get_features()
    assert building.type == "extruded"
    assert building.bounding_box.min[1] == pytest.approx(1.0)
    assert building.terrain_height == 1.0
    assert building.bounding_box.max[1] == pytest.approx(8.0)


def test_building_min_height_lifts_base():
    from tile3d.core.handlers import VectorAreaHandler

    area = VectorArea(
        rings=[_ring([(0, 0), (10, 0), (10, 10), (0, 10)])],
        descriptor=VectorAreaDescriptor(type="building", building_height=20, building_min_height=5),
    )
    handler = VectorAreaHandler(area)
    _deliver(handler, [0.0] * 4)
    [building] = handler.get_features()
    assert building.bounding_box.min[1] == pytest.approx(5.0)
    assert building.bounding_box.max[1] == pytest.approx(20.0)


def test_inner_ring_becomes_hole_of_containing_outer():
    from tile3d.core.handlers import VectorAreaHandler

    area = VectorArea(
        rings=[
            _ring([(0, 0), (10, 0), (10, 10), (0, 10)]),
            _ring([(4, 4), (6, 4), (6, 6), (4, 6)], VectorAreaRingType.INNER),
            _ring([(20, 0), (30, 0), (30, 10), (20, 10)]),
        ],
        descriptor=VectorAreaDescriptor(type="water"),
    )
    handler = VectorAreaHandler(area)

    assert len(handler.polygons) == 2
    assert len(handler.polygons[0][1]) == 1
    assert handler.polygons[1][1] == []
    assert handler.get_requested_height_positions() is None

    features = handler.get_features()
    assert [f.type for f in features] == ["projected", "projected"]
    assert all(f.z_index == 2 for f in features)


def test_area_without_rings_yields_nothing():
    from tile3d.core.handlers import VectorAreaHandler

    handler = VectorAreaHandler(VectorArea(descriptor=VectorAreaDescriptor(type="forest")))
    assert handler.get_requested_height_positions() is None
    assert handler.get_features() == []


# --- power lines ---

def test_powerline_towers_skip_existing_poles():
    from tile3d.core.handlers import PowerlineHandler

    collection = VectorFeatureCollection(
        nodes=[VectorNode(x=50, y=0, descriptor=VectorNodeDescriptor(type="utilityPole"))],
        polylines=[
            _polyline([(0, 0), (50, 0), (100, 0)], type="powerLine"),
            _polyline([(0, 10), (40, 10)], type="powerLine", height=30),
            _polyline([(0, 20), (40, 20)], type="fence"),
        ],
    )
    handler = PowerlineHandler(collection)
    params = _deliver(handler, [1.0, 2.0, 3.0, 4.0, 5.0])

    assert params.count == 5
    features = handler.get_features()
    instances = [f for f in features if f.type == "instance"]
    wires = [f for f in features if f.type == "hugging"]

    assert [(i.instance_type, i.x, i.y) for i in instances] == [
        ("utilityPole", 0.0, 1.0),
        ("utilityPole", 100.0, 3.0),
        ("transmissionTower", 0.0, 4.0),
        ("transmissionTower", 40.0, 5.0),
    ]
    assert len(wires) == 2
    assert wires[0].bounding_box.min[1] == pytest.approx(10.0)


def test_powerline_handler_without_lines_requests_nothing():
    from tile3d.core.handlers import PowerlineHandler

    handler = PowerlineHandler(VectorFeatureCollection())
    assert handler.get_requested_height_positions() is None
    assert handler.get_features() == []


def test_powerline_wire_offset_follows_mercator_scale():
    from tile3d.core.handlers import PowerlineHandler

    collection = VectorFeatureCollection(polylines=[
        _polyline([(0, 0), (40, 0)], type="powerLine", height=30),
    ])
    handler = PowerlineHandler(collection)
    handler.set_mercator_scale(2.0)
    _deliver(handler, [5.0, 5.0])

    tower, _, wire = handler.get_features()
    assert tower.scale == pytest.approx(2.0)
    assert wire.bounding_box.min[1] == pytest.approx(5.0 + 30.0 * 2.0)
