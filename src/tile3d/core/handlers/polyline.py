"""Linear features: roads, paths, waterways, fences and walls."""

import logging
from typing import Optional

import numpy as np

from tile3d.models import IntersectionMaterial, VectorPolyline
from ..geometry import compute_bounding_box, create_strip, create_wall, trim_polyline
from ..models import (
    RequestedHeightParams,
    Tile3DExtrudedGeometry,
    Tile3DFeature,
    Tile3DHuggingGeometry,
    Tile3DLabel,
    Tile3DProjectedGeometry,
)
from ..road_graph import Road
from .base import Handler

logger = logging.getLogger(__name__)

# Default widths in metres
PATH_WIDTHS = {
    "roadway": 6.0,
    "footway": 2.0,
    "cycleway": 2.0,
    "railway": 1.5,
    "tramway": 1.5,
    "runway": 45.0,
}
LANE_WIDTH = 3.0
WATERWAY_WIDTH = 3.0

PROJECTED_PATHS = {"roadway", "railway", "tramway", "runway"}
HUGGING_PATHS = {"footway", "cycleway"}

# (height, thickness) in metres
BARRIERS = {
    "fence": (1.5, 0.1),
    "wall": (2.5, 0.3),
    "hedge": (1.5, 0.8),
}
BARRIER_COLORS = {
    "fence": "#8C8C8C",
    "wall": "#B5A999",
    "hedge": "#4F7A3A",
}

HUGGING_OFFSET = 0.1
LABEL_HEIGHT_OFFSET = 2.0


class VectorPolylineHandler(Handler):
    def __init__(self, feature: VectorPolyline):
        super().__init__()
        self.feature = feature
        self.vertices = np.array([[n.x, n.y] for n in feature.nodes], dtype=np.float64).reshape(-1, 2)
        self.heights: Optional[np.ndarray] = None
        self.graph_road: Optional[Road] = None

    @property
    def kind(self) -> Optional[str]:
        """Output geometry kind: 'projected', 'hugging', 'extruded' or None."""
        descriptor = self.feature.descriptor
        if descriptor is None or len(self.vertices) < 2:
            return None
        if descriptor.type == "path":
            if descriptor.path_type in PROJECTED_PATHS:
                return "projected"
            if descriptor.path_type in HUGGING_PATHS:
                return "hugging"
            return None
        if descriptor.type == "waterway":
            return "hugging"
        if descriptor.type in BARRIERS:
            return "extruded"
        return None

    @property
    def is_graph_road(self) -> bool:
        descriptor = self.feature.descriptor
        return (
            descriptor is not None
            and descriptor.type == "path"
            and descriptor.path_type == "roadway"
            and descriptor.is_road_graph_part
            and len(self.vertices) >= 2
        )

    def get_width(self) -> float:
        """Width in tile-local units."""
        descriptor = self.feature.descriptor
        if descriptor.width is not None:
            width = descriptor.width
        elif descriptor.type == "waterway":
            width = WATERWAY_WIDTH
        elif descriptor.path_type == "roadway" and descriptor.lanes:
            width = descriptor.lanes * LANE_WIDTH
        else:
            width = PATH_WIDTHS.get(descriptor.path_type, 2.0)
        return width * self.mercator_scale

    def get_graph_road(self) -> Optional[Road]:
        if not self.is_graph_road:
            return None
        if self.graph_road is None:
            self.graph_road = Road(self.vertices, self.get_width())
        return self.graph_road

    def get_intersection_material(self) -> Optional[IntersectionMaterial]:
        if self.feature.descriptor is None:
            return None
        return self.feature.descriptor.intersection_material

    def get_requested_height_positions(self) -> Optional[RequestedHeightParams]:
        kind = self.kind
        has_label = self.feature.descriptor is not None and bool(self.feature.descriptor.label)
        if kind not in ("hugging", "extruded") and not (has_label and len(self.vertices) >= 2):
            return None
        return RequestedHeightParams(
            positions=self.vertices.reshape(-1).copy(),
            callback=self._on_heights,
        )

    def _on_heights(self, heights: np.ndarray) -> None:
        self.heights = np.asarray(heights, dtype=np.float64)

    def _terrain_heights(self) -> np.ndarray:
        if self.heights is None:
            return np.zeros(len(self.vertices))
        return self.heights

    def get_features(self) -> list[Optional[Tile3DFeature]]:
        kind = self.kind
        features: list[Optional[Tile3DFeature]] = []

        if kind == "projected":
            features.append(self._build_projected())
        elif kind == "hugging":
            features.append(self._build_hugging())
        elif kind == "extruded":
            features.append(self._build_extruded())

        label = self._build_label()
        if label is not None:
            features.append(label)
        return features

    def _build_projected(self) -> Optional[Tile3DProjectedGeometry]:
        points = self.vertices
        if self.graph_road is not None:
            points = trim_polyline(
                points,
                self.graph_road.get_cut_distance(at_start=True),
                self.graph_road.get_cut_distance(at_start=False),
            )
        mesh = create_strip(points, self.get_width())
        if not mesh["vertices"]:
            logger.debug("Dropping degenerate path %s", self._describe(self.feature.osm_reference))
            return None
        descriptor = self.feature.descriptor
        material = descriptor.path_type
        if descriptor.path_type == "roadway" and descriptor.intersection_material is not None:
            material = descriptor.intersection_material.value
        return Tile3DProjectedGeometry(
            vertices=mesh["vertices"],
            faces=mesh["faces"],
            bounding_box=compute_bounding_box(mesh["vertices"]),
            osm_reference=self.feature.osm_reference,
            material=material,
            z_index=1 if descriptor.path_type == "roadway" else 0,
        )

    def _build_hugging(self) -> Optional[Tile3DHuggingGeometry]:
        mesh = create_strip(
            self.vertices, self.get_width(), self._terrain_heights(),
            offset=HUGGING_OFFSET * self.mercator_scale,
        )
        if not mesh["vertices"]:
            return None
        descriptor = self.feature.descriptor
        return Tile3DHuggingGeometry(
            vertices=mesh["vertices"],
            faces=mesh["faces"],
            bounding_box=compute_bounding_box(mesh["vertices"]),
            osm_reference=self.feature.osm_reference,
            material=descriptor.path_type or descriptor.type,
        )

    def _build_extruded(self) -> Optional[Tile3DExtrudedGeometry]:
        descriptor = self.feature.descriptor
        default_height, thickness = BARRIERS[descriptor.type]
        height = descriptor.height or default_height
        base_y = float(np.min(self._terrain_heights()))
        mesh = create_wall(self.vertices, thickness * self.mercator_scale, base_y, base_y + height)
        if not mesh["vertices"]:
            return None
        return Tile3DExtrudedGeometry(
            vertices=mesh["vertices"],
            faces=mesh["faces"],
            bounding_box=compute_bounding_box(mesh["vertices"]),
            osm_reference=self.feature.osm_reference,
            material=descriptor.type,
            color=BARRIER_COLORS[descriptor.type],
            terrain_height=base_y,
        )

    def _build_label(self) -> Optional[Tile3DLabel]:
        descriptor = self.feature.descriptor
        if descriptor is None or not descriptor.label or len(self.vertices) < 2:
            return None
        middle = len(self.vertices) // 2
        if len(self.vertices) % 2 == 0:
            x, z = (self.vertices[middle - 1] + self.vertices[middle]) / 2
            ground = float(np.mean(self._terrain_heights()[middle - 1:middle + 1]))
        else:
            x, z = self.vertices[middle]
            ground = float(self._terrain_heights()[middle])
        return Tile3DLabel(
            text=descriptor.label,
            x=float(x),
            y=ground + LABEL_HEIGHT_OFFSET * self.mercator_scale,
            z=float(z),
        )
