"""Point features: trees, street furniture, poles and point labels."""

from typing import Optional

import numpy as np

from tile3d.models import VectorNode
from ..models import RequestedHeightParams, Tile3DFeature, Tile3DInstance, Tile3DLabel
from .base import Handler

# Real-world height in metres of each instance model at scale 1
INSTANCE_HEIGHTS = {
    "tree": 10.0,
    "hydrant": 1.0,
    "streetLamp": 6.0,
    "utilityPole": 9.0,
    "transmissionTower": 30.0,
    "bench": 1.0,
    "busStop": 3.0,
    "memorial": 3.0,
}

LABEL_HEIGHT_OFFSET = 2.0


class VectorNodeHandler(Handler):
    def __init__(self, feature: VectorNode):
        super().__init__()
        self.feature = feature
        self.terrain_height: Optional[float] = None

    def get_requested_height_positions(self) -> Optional[RequestedHeightParams]:
        if self.feature.descriptor is None:
            return None
        return RequestedHeightParams(
            positions=np.array([self.feature.x, self.feature.y], dtype=np.float64),
            callback=self._on_heights,
        )

    def _on_heights(self, heights: np.ndarray) -> None:
        self.terrain_height = float(heights[0])

    def get_features(self) -> list[Optional[Tile3DFeature]]:
        descriptor = self.feature.descriptor
        if descriptor is None:
            return []

        ground = self.terrain_height if self.terrain_height is not None else 0.0
        features: list[Optional[Tile3DFeature]] = []

        if descriptor.type in INSTANCE_HEIGHTS:
            base_height = INSTANCE_HEIGHTS[descriptor.type]
            height = descriptor.height or base_height
            features.append(Tile3DInstance(
                instance_type=descriptor.type,
                x=self.feature.x,
                y=ground,
                z=self.feature.y,
                rotation=self.feature.rotation,
                scale=height / base_height * self.mercator_scale,
                osm_reference=self.feature.osm_reference,
            ))

        if descriptor.label:
            features.append(Tile3DLabel(
                text=descriptor.label,
                x=self.feature.x,
                y=ground + LABEL_HEIGHT_OFFSET * self.mercator_scale,
                z=self.feature.y,
                priority=1.0 if descriptor.type == "label" else 0.5,
            ))

        return features
