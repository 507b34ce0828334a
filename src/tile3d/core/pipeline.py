"""Vector tile to 3D tile pipeline.

Stages, in order:
1. one handler per node, polyline and (simplified) area, plus the power
   line aggregate;
2. mercator scale for every handler;
3. road graph: register roads, finalize intersections, synthesize
   intersection pavement areas with a majority-vote material;
4. one batched elevation query for all handlers;
5. assembly into a ``Tile3DFeatureCollection`` and the extruded-bucket
   mercator correction.

The elevation query is the only suspension point. Nothing here is shared
between calls, so tiles can be generated concurrently.
"""

import logging
from collections import Counter
from typing import Awaitable, Callable, Optional, Protocol

import numpy as np

from tile3d.models import (
    IntersectionMaterial,
    VectorArea,
    VectorAreaDescriptor,
    VectorAreaRing,
    VectorAreaRingType,
    VectorFeatureCollection,
    VectorNode,
)
from .handlers import (
    Handler,
    PowerlineHandler,
    VectorAreaHandler,
    VectorNodeHandler,
    VectorPolylineHandler,
)
from .mercator import apply_mercator_factor_to_extruded_features, get_mercator_scale_factor_for_tile
from .models import RequestedHeightParams, Tile3DFeatureCollection
from .road_graph import Intersection, Road, RoadGraph
from .simplify import simplify_nodes

logger = logging.getLogger(__name__)

MIN_INTERSECTION_VOTES = 3

HeightProvider = Callable[[np.ndarray], Awaitable[np.ndarray]]

_BUCKETS = {
    "instance": "instances",
    "projected": "projected",
    "extruded": "extruded",
    "hugging": "hugging",
    "label": "labels",
}


class TileGenerationError(RuntimeError):
    """Raised when a tile cannot be generated; no partial output exists."""


class VectorFeatureProvider(Protocol):
    async def get_collection(self, x: int, y: int, zoom: int) -> VectorFeatureCollection: ...


def create_handlers(collection: VectorFeatureCollection) -> list[Handler]:
    """Build handlers in submission order: nodes, polylines, areas, aggregate.

    Area ring nodes are replaced in place by their simplified version.
    """
    handlers: list[Handler] = []

    for feature in collection.nodes:
        handlers.append(VectorNodeHandler(feature))

    for feature in collection.polylines:
        handlers.append(VectorPolylineHandler(feature))

    for feature in collection.areas:
        for ring in feature.rings:
            ring.nodes = simplify_nodes(ring.nodes)
        handlers.append(VectorAreaHandler(feature))

    handlers.append(PowerlineHandler(collection))

    return handlers


def update_features_mercator_scale(handlers: list[Handler], scale: float) -> None:
    for handler in handlers:
        handler.set_mercator_scale(scale)


def get_intersection_material(
    intersection: Intersection,
    materials: dict[Road, Optional[IntersectionMaterial]],
) -> Optional[IntersectionMaterial]:
    """Majority vote over the intersection's arms.

    Needs at least ``MIN_INTERSECTION_VOTES`` declared materials. Ties go to
    the material declared first in ``IntersectionMaterial``.
    """
    votes = Counter()
    for direction in intersection.directions:
        material = materials.get(direction.road)
        if material is not None:
            votes[material] += 1

    if sum(votes.values()) < MIN_INTERSECTION_VOTES:
        return None

    # max() keeps the first of equal keys, so iterate in declaration order
    winner = max(IntersectionMaterial, key=lambda m: votes[m])
    if votes[winner] == 0:
        return None
    return winner


def create_intersection_area(polygon: list[tuple[float, float]], material: IntersectionMaterial) -> VectorArea:
    """Closed, reversed ring around an intersection footprint."""
    ring = list(polygon)
    ring.append(ring[0])
    ring.reverse()

    return VectorArea(
        descriptor=VectorAreaDescriptor(
            type="roadwayIntersection",
            intersection_material=material,
        ),
        rings=[VectorAreaRing(
            type=VectorAreaRingType.OUTER,
            nodes=[VectorNode(x=x, y=y, rotation=0.0) for x, y in ring],
        )],
        osm_reference=None,
    )


def add_road_graph_to_handlers(handlers: list[Handler], mercator_scale: float = 1.0) -> RoadGraph:
    """Attach a fresh road graph and append synthetic intersection handlers.

    Synthetic handlers inherit the mercator scale of the tile and take part
    in elevation and assembly, but never register roads themselves.
    """
    graph = RoadGraph()
    materials: dict[Road, Optional[IntersectionMaterial]] = {}

    for handler in handlers:
        handler.set_road_graph(graph)
        road = handler.get_graph_road()
        if road is not None:
            graph.add_road(road)
            materials[road] = handler.get_intersection_material()

    graph.init_intersections()

    skipped = 0
    for intersection, polygon in graph.build_intersection_polygons(0):
        material = get_intersection_material(intersection, materials)
        if material is None:
            intersection.skip = True
            skipped += 1
            continue

        handler = VectorAreaHandler(create_intersection_area(polygon, material))
        handler.set_road_graph(graph)
        handler.set_mercator_scale(mercator_scale)
        handlers.append(handler)

    logger.debug(
        "Road graph: %d roads, %d intersections, %d skipped",
        len(graph.roads), len(graph.intersections), skipped,
    )
    return graph


def split_height_array(array: np.ndarray, offsets: list[int]) -> list[np.ndarray]:
    """Split a combined result by cumulative end offsets."""
    parts = []
    start = 0
    for end in offsets:
        parts.append(array[start:end])
        start = end
    return parts


async def update_features_height(handlers: list[Handler], height_provider: HeightProvider) -> None:
    """Resolve every handler's height request with a single provider call."""
    params_list: list[RequestedHeightParams] = []
    for handler in handlers:
        params = handler.get_requested_height_positions()
        if params is not None and params.count > 0:
            params_list.append(params)

    if not params_list:
        logger.debug("No height requests; skipping elevation query")
        return

    offsets = []
    current = 0
    for params in params_list:
        current += params.count
        offsets.append(current)

    merged = np.concatenate([params.positions for params in params_list])
    logger.debug("Querying %d heights for %d handlers", current, len(params_list))

    try:
        heights = await height_provider(merged)
    except Exception as exc:
        raise TileGenerationError(f"Elevation query failed: {exc}") from exc

    heights = np.asarray(heights, dtype=np.float64).reshape(-1)
    if heights.size != current:
        raise TileGenerationError(
            f"Elevation provider returned {heights.size} values for {current} positions"
        )

    for params, part in zip(params_list, split_height_array(heights, offsets)):
        params.callback(part)


def get_features_from_handlers(handlers: list[Handler]) -> Tile3DFeatureCollection:
    collection = Tile3DFeatureCollection()

    for handler in handlers:
        try:
            output = handler.get_features()
        except Exception as exc:
            logger.warning("%s failed to build features: %s", type(handler).__name__, exc)
            continue

        for feature in output or []:
            if feature is None:
                continue
            getattr(collection, _BUCKETS[feature.type]).append(feature)

    return collection


async def generate_tile3d(
    collection: VectorFeatureCollection,
    x: int, y: int, zoom: int,
    height_provider: HeightProvider,
) -> Tile3DFeatureCollection:
    """Convert one tile's vector features into 3D tile features.

    Raises:
        TileGenerationError: if the elevation query fails. No partial
            collection is produced.
    """
    handlers = create_handlers(collection)

    scale = get_mercator_scale_factor_for_tile(x, y, zoom)
    update_features_mercator_scale(handlers, scale)
    add_road_graph_to_handlers(handlers, scale)
    await update_features_height(handlers, height_provider)

    result = get_features_from_handlers(handlers)
    apply_mercator_factor_to_extruded_features(result.extruded, x, y, zoom)

    logger.debug("Tile %d/%d/%d: %s", zoom, x, y, result.counts())
    return result


class Tile3DFromVectorProvider:
    """Fetches vector features for a tile and converts them to 3D features."""

    def __init__(self, vector_provider: VectorFeatureProvider, height_provider: HeightProvider):
        self.vector_provider = vector_provider
        self.height_provider = height_provider

    async def get_collection(self, x: int, y: int, zoom: int) -> Tile3DFeatureCollection:
        try:
            vector_tile = await self.vector_provider.get_collection(x, y, zoom)
        except Exception as exc:
            raise TileGenerationError(f"Vector tile {zoom}/{x}/{y} unavailable: {exc}") from exc

        return await generate_tile3d(vector_tile, x, y, zoom, self.height_provider)
