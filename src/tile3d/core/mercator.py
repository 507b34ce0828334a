"""Web mercator tile math and mercator scale correction.

Tile-local coordinate system (metres in mercator space):
- X: east, 0 at the tile's west edge
- Y: up (elevation)
- Z: south, 0 at the tile's north edge

Vector features carry (x, y) pairs which map to (X, Z).
"""

import math

import numpy as np

EARTH_CIRCUMFERENCE = 40075016.68557849


def tile_size_meters(zoom: int) -> float:
    """Edge length of a tile at ``zoom`` in mercator metres."""
    return EARTH_CIRCUMFERENCE / (2.0 ** zoom)


def tile_to_lat_lon(x: float, y: float, zoom: int) -> tuple[float, float]:
    """Convert (possibly fractional) tile coordinates to lat/lon."""
    n = 2.0 ** zoom
    lon = x / n * 360.0 - 180.0
    lat_rad = math.atan(math.sinh(math.pi * (1 - 2 * y / n)))
    lat = math.degrees(lat_rad)
    return lat, lon


def tile_local_to_tile_fraction(
    xs: np.ndarray, zs: np.ndarray, x: int, y: int, zoom: int
) -> tuple[np.ndarray, np.ndarray]:
    """Convert tile-local metre arrays to fractional tile coordinates at ``zoom``."""
    size = tile_size_meters(zoom)
    return x + np.asarray(xs) / size, y + np.asarray(zs) / size


def get_mercator_scale_factor_for_tile(x: int, y: int, zoom: int) -> float:
    """Mercator scale factor at the centre of a tile.

    Lengths measured in metres on the ground must be multiplied by this
    factor to be expressed in tile-local mercator units.
    """
    lat, _ = tile_to_lat_lon(x + 0.5, y + 0.5, zoom)
    return 1.0 / math.cos(math.radians(lat))


def apply_mercator_factor_to_extruded_features(features: list, x: int, y: int, zoom: int) -> None:
    """Scale the height above terrain of extruded geometry by the tile's mercator factor.

    Extruded heights are emitted in ground metres on top of each feature's
    ``terrain_height``; only that part is converted, so volumes stay on the
    same terrain as instances and hugging geometry. Mutates ``features``.
    """
    scale = get_mercator_scale_factor_for_tile(x, y, zoom)

    for feature in features:
        base = feature.terrain_height
        for vertex in feature.vertices:
            vertex[1] = base + (vertex[1] - base) * scale
        if feature.bounding_box is not None:
            feature.bounding_box.min[1] = base + (feature.bounding_box.min[1] - base) * scale
            feature.bounding_box.max[1] = base + (feature.bounding_box.max[1] - base) * scale
