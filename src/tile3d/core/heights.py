"""Terrain heights from AWS Terrain-RGB tiles (Terrarium format).

Implements the height provider contract for one vector tile: a flat array
of tile-local (x, z) pairs in, one elevation in metres per pair out.
"""

import logging
import math
from io import BytesIO

import httpx
import numpy as np
from PIL import Image
from scipy.ndimage import map_coordinates

from ..state import Tile3DProviderParams
from .mercator import tile_local_to_tile_fraction

logger = logging.getLogger(__name__)

TERRAIN_TILE_SIZE = 256


def _decode_terrarium(r: np.ndarray, g: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Decode Terrarium format RGB to elevation in meters."""
    return (r * 256.0 + g + b / 256.0) - 32768.0


class TerrariumHeightProvider:
    """Samples terrain heights with bilinear interpolation over Terrarium tiles."""

    def __init__(self, params: Tile3DProviderParams | None = None):
        self.params = params or Tile3DProviderParams()

    def for_tile(self, x: int, y: int, zoom: int):
        """Bind tile coordinates, returning an ``async (positions) -> heights`` callable."""
        async def height_provider(positions: np.ndarray) -> np.ndarray:
            return await self.get_heights(positions, x, y, zoom)
        return height_provider

    def _pixel_coords(self, positions: np.ndarray, x: int, y: int, zoom: int) -> tuple[np.ndarray, np.ndarray]:
        pairs = positions.reshape(-1, 2)
        tx, ty = tile_local_to_tile_fraction(pairs[:, 0], pairs[:, 1], x, y, zoom)
        factor = 2.0 ** (self.params.terrain_zoom - zoom) * TERRAIN_TILE_SIZE
        return tx * factor, ty * factor

    async def get_heights(self, positions: np.ndarray, x: int, y: int, zoom: int) -> np.ndarray:
        """Elevation in metres for each (x, z) pair of ``positions``.

        Terrain tiles that fail to download are logged and read as zero.

        Raises:
            ValueError: if positions are not a flat array of pairs, or span more
                terrain tiles than ``max_terrain_tiles``.
        """
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 1 or positions.size % 2 != 0:
            raise ValueError(f"Positions must be a flat array of x,y pairs, got shape {positions.shape}")
        if positions.size == 0:
            return np.empty(0, dtype=np.float64)

        px, py = self._pixel_coords(positions, x, y, zoom)
        n_tiles = 2 ** self.params.terrain_zoom

        # One extra pixel each way so bilinear sampling never falls off the block
        x_min = max(int(math.floor((float(px.min()) - 1) / TERRAIN_TILE_SIZE)), 0)
        x_max = min(int(math.floor((float(px.max()) + 1) / TERRAIN_TILE_SIZE)), n_tiles - 1)
        y_min = max(int(math.floor((float(py.min()) - 1) / TERRAIN_TILE_SIZE)), 0)
        y_max = min(int(math.floor((float(py.max()) + 1) / TERRAIN_TILE_SIZE)), n_tiles - 1)

        num_tiles_x = x_max - x_min + 1
        num_tiles_y = y_max - y_min + 1
        if num_tiles_x * num_tiles_y > self.params.max_terrain_tiles:
            raise ValueError(
                f"Positions span {num_tiles_x}x{num_tiles_y} terrain tiles, "
                f"limit is {self.params.max_terrain_tiles}"
            )

        stitched = np.zeros((num_tiles_y * TERRAIN_TILE_SIZE, num_tiles_x * TERRAIN_TILE_SIZE))
        zoom_t = self.params.terrain_zoom

        async with httpx.AsyncClient(
            timeout=self.params.request_timeout,
            headers={"User-Agent": self.params.user_agent},
        ) as client:
            for ty in range(y_min, y_max + 1):
                for tx in range(x_min, x_max + 1):
                    url = self.params.terrain_url_template.format(z=zoom_t, x=tx, y=ty)
                    try:
                        response = await client.get(url)
                        if response.status_code != 200:
                            logger.warning("Terrain tile %s returned HTTP %s", url, response.status_code)
                            continue
                        img = Image.open(BytesIO(response.content)).convert("RGB")
                        img_array = np.array(img)
                    except Exception as exc:
                        logger.warning("Terrain tile %s failed: %s", url, exc)
                        continue

                    r = img_array[:, :, 0].astype(np.float64)
                    g = img_array[:, :, 1].astype(np.float64)
                    b = img_array[:, :, 2].astype(np.float64)
                    row = (ty - y_min) * TERRAIN_TILE_SIZE
                    col = (tx - x_min) * TERRAIN_TILE_SIZE
                    stitched[row:row + TERRAIN_TILE_SIZE, col:col + TERRAIN_TILE_SIZE] = _decode_terrarium(r, g, b)

        # Pixel centres sit at +0.5
        rows = py - y_min * TERRAIN_TILE_SIZE - 0.5
        cols = px - x_min * TERRAIN_TILE_SIZE - 0.5
        return map_coordinates(stitched, [rows, cols], order=1, mode="nearest")
