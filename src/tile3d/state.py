"""Session state for the tile3d MCP server.

Holds the loaded vector tile, the tile coordinates it belongs to, provider
parameters and the last generated 3D tile.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tile3d.core.models import Tile3DFeatureCollection
from tile3d.models import TileCoords, VectorFeatureCollection


class Tile3DProviderParams(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    terrain_url_template: str = "https://s3.amazonaws.com/elevation-tiles-prod/terrarium/{z}/{x}/{y}.png"
    terrain_zoom: int = Field(default=12, ge=0, le=15)
    request_timeout: float = Field(default=30.0, gt=0)
    user_agent: str = "tile3d/0.1"
    max_terrain_tiles: int = Field(default=16, gt=0, le=64)

    @field_validator("terrain_url_template")
    @classmethod
    def must_have_tile_placeholders(cls, v: str) -> str:
        for placeholder in ("{z}", "{x}", "{y}"):
            if placeholder not in v:
                raise ValueError(f"Terrain URL template must contain {placeholder}")
        return v


class SessionState(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    tile: Optional[TileCoords] = None
    vector_tile: Optional[VectorFeatureCollection] = None
    vector_source: str = ""
    provider_params: Tile3DProviderParams = Field(default_factory=Tile3DProviderParams)
    result: Optional[Tile3DFeatureCollection] = None

    def summary(self) -> dict:
        return {
            "tile": self.tile.model_dump() if self.tile else None,
            "vector_tile": {
                "loaded": self.vector_tile is not None,
                "source": self.vector_source or None,
                "nodes": len(self.vector_tile.nodes) if self.vector_tile else 0,
                "polylines": len(self.vector_tile.polylines) if self.vector_tile else 0,
                "areas": len(self.vector_tile.areas) if self.vector_tile else 0,
            },
            "provider": {
                "terrain_zoom": self.provider_params.terrain_zoom,
                "request_timeout": self.provider_params.request_timeout,
            },
            "result": self.result.counts() if self.result else None,
        }


# Global session state, one per MCP server process
state = SessionState()
