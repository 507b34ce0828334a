"""Polygon features: buildings and ground-covering area fills."""

import logging
from typing import Optional

import numpy as np

from tile3d.models import VectorArea, VectorAreaRingType
from ..geometry import (
    compute_bounding_box,
    create_extruded_polygon,
    create_flat_polygon,
    open_ring,
    point_in_polygon,
)
from ..models import (
    RequestedHeightParams,
    Tile3DExtrudedGeometry,
    Tile3DFeature,
    Tile3DLabel,
    Tile3DProjectedGeometry,
)
from .base import Handler

logger = logging.getLogger(__name__)

# Draw order for ground fills; higher is drawn on top
PROJECTED_Z_INDEX = {
    "farmland": 0,
    "grass": 1,
    "forest": 1,
    "sand": 1,
    "water": 2,
    "pavement": 3,
    "helipad": 3,
    "roadwayIntersection": 4,
}

LEVEL_HEIGHT = 3.5
DEFAULT_BUILDING_HEIGHT = 6.0
BUILDING_COLOR = "#E8D5B7"
LABEL_HEIGHT_OFFSET = 2.0


class VectorAreaHandler(Handler):
    def __init__(self, feature: VectorArea):
        super().__init__()
        self.feature = feature
        self.heights: Optional[np.ndarray] = None
        self.polygons = self._group_rings()

    def _group_rings(self) -> list[tuple[np.ndarray, list[np.ndarray]]]:
        """Pair every outer ring with the inner rings that lie inside it."""
        outers = []
        inners = []
        for ring in self.feature.rings:
            points = open_ring([[n.x, n.y] for n in ring.nodes]) if ring.nodes else np.empty((0, 2))
            if len(points) < 3:
                continue
            if ring.type == VectorAreaRingType.OUTER:
                outers.append((points, []))
            else:
                inners.append(points)

        for inner in inners:
            x, z = inner[0]
            for outer, holes in outers:
                if point_in_polygon(x, z, outer):
                    holes.append(inner)
                    break
        return outers

    @property
    def kind(self) -> Optional[str]:
        descriptor = self.feature.descriptor
        if descriptor is None or not self.polygons:
            return None
        if descriptor.type == "building":
            return "extruded"
        if descriptor.type in PROJECTED_Z_INDEX:
            return "projected"
        return None

    def _outer_vertices(self) -> np.ndarray:
        return np.vstack([outer for outer, _ in self.polygons])

    def get_requested_height_positions(self) -> Optional[RequestedHeightParams]:
        descriptor = self.feature.descriptor
        if not self.polygons or descriptor is None:
            return None
        if self.kind != "extruded" and not descriptor.label:
            return None
        return RequestedHeightParams(
            positions=self._outer_vertices().reshape(-1).copy(),
            callback=self._on_heights,
        )

    def _on_heights(self, heights: np.ndarray) -> None:
        self.heights = np.asarray(heights, dtype=np.float64)

    def get_features(self) -> list[Optional[Tile3DFeature]]:
        kind = self.kind
        features: list[Optional[Tile3DFeature]] = []

        if kind == "extruded":
            features.extend(self._build_building())
        elif kind == "projected":
            features.extend(self._build_projected())

        label = self._build_label()
        if label is not None:
            features.append(label)
        return features

    def _building_heights(self) -> tuple[float, float]:
        descriptor = self.feature.descriptor
        if descriptor.building_height is not None:
            height = descriptor.building_height
        elif descriptor.building_levels is not None:
            height = descriptor.building_levels * LEVEL_HEIGHT
        else:
            height = DEFAULT_BUILDING_HEIGHT
        min_height = min(descriptor.building_min_height, height)
        return min_height, height

    def _build_building(self) -> list[Optional[Tile3DExtrudedGeometry]]:
        ground = float(np.min(self.heights)) if self.heights is not None and self.heights.size else 0.0
        min_height, height = self._building_heights()

        features: list[Optional[Tile3DExtrudedGeometry]] = []
        for outer, holes in self.polygons:
            mesh = create_extruded_polygon(outer, holes, ground + min_height, ground + height)
            if not mesh["vertices"]:
                logger.debug("Dropping degenerate building %s", self._describe(self.feature.osm_reference))
                features.append(None)
                continue
            features.append(Tile3DExtrudedGeometry(
                vertices=mesh["vertices"],
                faces=mesh["faces"],
                bounding_box=compute_bounding_box(mesh["vertices"]),
                osm_reference=self.feature.osm_reference,
                material="building",
                color=BUILDING_COLOR,
                terrain_height=ground,
            ))
        return features

    def _build_projected(self) -> list[Optional[Tile3DProjectedGeometry]]:
        descriptor = self.feature.descriptor
        material = descriptor.type
        if descriptor.intersection_material is not None:
            material = descriptor.intersection_material.value

        features: list[Optional[Tile3DProjectedGeometry]] = []
        for outer, holes in self.polygons:
            mesh = create_flat_polygon(outer, holes)
            if not mesh["faces"]:
                features.append(None)
                continue
            features.append(Tile3DProjectedGeometry(
                vertices=mesh["vertices"],
                faces=mesh["faces"],
                bounding_box=compute_bounding_box(mesh["vertices"]),
                osm_reference=self.feature.osm_reference,
                material=material,
                z_index=PROJECTED_Z_INDEX[descriptor.type],
            ))
        return features

    def _build_label(self) -> Optional[Tile3DLabel]:
        descriptor = self.feature.descriptor
        if descriptor is None or not descriptor.label or not self.polygons:
            return None
        outer = self.polygons[0][0]
        x, z = outer.mean(axis=0)
        ground = float(np.max(self.heights)) if self.heights is not None and self.heights.size else 0.0
        if self.kind == "extruded":
            ground += self._building_heights()[1] * self.mercator_scale
        return Tile3DLabel(
            text=descriptor.label,
            x=float(x),
            y=ground + LABEL_HEIGHT_OFFSET * self.mercator_scale,
            z=float(z),
        )
