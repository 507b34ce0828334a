"""Tile tools: set_tile, load_vector_tile, generate_tile, export_tile."""

import json
import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from pydantic import ValidationError

from ..state import state
from ..models import TileCoords, VectorFeatureCollection
from ..core.heights import TerrariumHeightProvider
from ..core.pipeline import TileGenerationError, generate_tile3d
from ._prereqs import require_state

logger = logging.getLogger(__name__)


def register_tile_tools(mcp: FastMCP):

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False))
    def set_tile(x: int, y: int, zoom: int) -> str:
        """Select the web mercator tile to generate.

        **Next:** load_vector_tile, then generate_tile.

        Args:
            x: Tile column.
            y: Tile row.
            zoom: Zoom level (0-24).
        """
        try:
            tile = TileCoords(x=x, y=y, zoom=zoom)
        except ValidationError as e:
            return f"Error: invalid tile: {e.errors()[0]['msg']}"

        state.tile = tile
        state.result = None
        return f"Tile set to {zoom}/{x}/{y}"

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False))
    def load_vector_tile(path: str) -> str:
        """Load a vector feature collection (nodes, polylines, areas) from JSON.

        Coordinates are tile-local metres: x east from the tile's west edge,
        y south from its north edge.
        **Next:** set_tile (if not done), then generate_tile.

        Args:
            path: JSON file with 'nodes', 'polylines' and 'areas' lists.
        """
        source = Path(path)
        try:
            with open(source) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            return f"Error: could not read {source}: {e}"

        try:
            collection = VectorFeatureCollection.model_validate(data)
        except ValidationError as e:
            return f"Error: invalid vector tile: {e.error_count()} validation errors, first: {e.errors()[0]['msg']}"

        state.vector_tile = collection
        state.vector_source = str(source)
        state.result = None

        logger.info("Loaded vector tile from %s", source)
        return (
            f"Loaded {len(collection.nodes)} nodes, {len(collection.polylines)} polylines, "
            f"{len(collection.areas)} areas from {source}"
        )

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True))
    async def generate_tile() -> str:
        """Convert the loaded vector features into 3D tile features.

        Fetches terrain heights once for all features that need them.
        **Requires:** set_tile + load_vector_tile.
        **Next:** export_tile.
        """
        try:
            require_state(state, tile=True, vector_tile=True)
        except ValueError as e:
            return f"Error: {e}"

        t = state.tile
        provider = TerrariumHeightProvider(state.provider_params)
        try:
            result = await generate_tile3d(
                state.vector_tile.model_copy(deep=True), t.x, t.y, t.zoom,
                provider.for_tile(t.x, t.y, t.zoom),
            )
        except TileGenerationError as e:
            state.result = None
            return f"Error: {e}"

        state.result = result
        logger.info("Generated tile %d/%d/%d", t.zoom, t.x, t.y)
        return f"Tile generated: {result.counts()}"

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=False, destructiveHint=True))
    def export_tile(path: str) -> str:
        """Write the generated 3D tile features to a JSON file.

        **Requires:** generate_tile.

        Args:
            path: Output file path.
        """
        try:
            require_state(state, result=True)
        except ValueError as e:
            return f"Error: {e}"

        out_path = Path(path)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, "w") as f:
            f.write(state.result.model_dump_json(indent=2))

        logger.info("Tile exported to %s", out_path)
        return f"Tile exported to {out_path}"
