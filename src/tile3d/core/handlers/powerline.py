"""Power lines: one aggregate handler for the whole tile.

Towers are placed at every power line vertex unless the tile already has a
pole or tower node there, so the handler needs to see the full collection.
"""

import math
from typing import Optional

import numpy as np

from tile3d.models import VectorFeatureCollection
from ..geometry import compute_bounding_box, create_strip
from ..models import RequestedHeightParams, Tile3DFeature, Tile3DHuggingGeometry, Tile3DInstance
from .base import Handler
from .node import INSTANCE_HEIGHTS

POLE_TYPES = ("utilityPole", "transmissionTower")
TRANSMISSION_MIN_HEIGHT = 15.0
WIRE_WIDTH = 0.15


class PowerlineHandler(Handler):
    def __init__(self, collection: VectorFeatureCollection):
        super().__init__()
        self.lines = [
            polyline for polyline in collection.polylines
            if polyline.descriptor is not None
            and polyline.descriptor.type == "powerLine"
            and len(polyline.nodes) >= 2
        ]
        self.existing_poles = {
            (round(node.x, 3), round(node.y, 3))
            for node in collection.nodes
            if node.descriptor is not None and node.descriptor.type in POLE_TYPES
        }
        self.vertices = [
            np.array([[n.x, n.y] for n in line.nodes], dtype=np.float64) for line in self.lines
        ]
        self.heights: Optional[list[np.ndarray]] = None

    def get_requested_height_positions(self) -> Optional[RequestedHeightParams]:
        if not self.lines:
            return None
        return RequestedHeightParams(
            positions=np.concatenate([v.reshape(-1) for v in self.vertices]),
            callback=self._on_heights,
        )

    def _on_heights(self, heights: np.ndarray) -> None:
        offsets = np.cumsum([len(v) for v in self.vertices])[:-1]
        self.heights = np.split(np.asarray(heights, dtype=np.float64), offsets)

    def get_features(self) -> list[Optional[Tile3DFeature]]:
        features: list[Optional[Tile3DFeature]] = []

        for i, line in enumerate(self.lines):
            vertices = self.vertices[i]
            heights = self.heights[i] if self.heights is not None else np.zeros(len(vertices))
            tower_height = line.descriptor.height or INSTANCE_HEIGHTS["utilityPole"]
            tower_type = "transmissionTower" if tower_height >= TRANSMISSION_MIN_HEIGHT else "utilityPole"

            for j, (x, z) in enumerate(vertices):
                if (round(float(x), 3), round(float(z), 3)) in self.existing_poles:
                    continue
                prev_pt = vertices[max(j - 1, 0)]
                next_pt = vertices[min(j + 1, len(vertices) - 1)]
                rotation = math.atan2(next_pt[1] - prev_pt[1], next_pt[0] - prev_pt[0])
                features.append(Tile3DInstance(
                    instance_type=tower_type,
                    x=float(x),
                    y=float(heights[j]),
                    z=float(z),
                    rotation=rotation,
                    scale=tower_height / INSTANCE_HEIGHTS[tower_type] * self.mercator_scale,
                    osm_reference=line.osm_reference,
                ))

            wire = create_strip(
                vertices, WIRE_WIDTH * self.mercator_scale, heights,
                offset=tower_height * self.mercator_scale,
            )
            if not wire["vertices"]:
                continue
            features.append(Tile3DHuggingGeometry(
                vertices=wire["vertices"],
                faces=wire["faces"],
                bounding_box=compute_bounding_box(wire["vertices"]),
                osm_reference=line.osm_reference,
                material="wire",
            ))

        return features
