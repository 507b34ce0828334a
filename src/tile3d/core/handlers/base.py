"""Shared capability contract for feature handlers."""

from abc import ABC, abstractmethod
from typing import Optional

from tile3d.models import IntersectionMaterial, OsmReference
from ..models import RequestedHeightParams, Tile3DFeature
from ..road_graph import Road, RoadGraph


class Handler(ABC):
    """Converts one vector feature (or a whole collection) into 3D features.

    Lifecycle: constructed once, given the road graph and the mercator
    scale, optionally fed terrain heights through the callback of its
    height request, then asked once for its features.
    """

    def __init__(self):
        self.mercator_scale = 1.0
        self.road_graph: Optional[RoadGraph] = None

    def set_mercator_scale(self, scale: float) -> None:
        self.mercator_scale = scale

    def set_road_graph(self, graph: RoadGraph) -> None:
        self.road_graph = graph

    def get_graph_road(self) -> Optional[Road]:
        """Road to register in the graph, or None for non-road features."""
        return None

    def get_intersection_material(self) -> Optional[IntersectionMaterial]:
        return None

    @abstractmethod
    def get_requested_height_positions(self) -> Optional[RequestedHeightParams]:
        """Positions needing terrain heights, or None if heights are not needed."""

    @abstractmethod
    def get_features(self) -> list[Optional[Tile3DFeature]]:
        """Build the output features. May be empty or contain None entries."""

    @staticmethod
    def _describe(osm_reference: Optional[OsmReference]) -> str:
        if osm_reference is None:
            return "synthetic"
        return f"{osm_reference.type}/{osm_reference.id}"
