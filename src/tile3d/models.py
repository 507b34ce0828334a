"""Pydantic domain models for vector tile features."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class IntersectionMaterial(str, Enum):
    # Declaration order is the tie-break order for intersection materials
    ASPHALT = "asphalt"
    CONCRETE = "concrete"
    COBBLESTONE = "cobblestone"


class VectorAreaRingType(str, Enum):
    OUTER = "outer"
    INNER = "inner"


class OsmReference(BaseModel):
    type: Literal["node", "way", "relation"]
    id: int


class VectorNodeDescriptor(BaseModel):
    type: Literal[
        "tree", "hydrant", "streetLamp", "utilityPole", "transmissionTower",
        "bench", "busStop", "memorial", "label",
    ]
    height: Optional[float] = Field(default=None, gt=0)
    label: Optional[str] = None


class VectorPolylineDescriptor(BaseModel):
    type: Literal["path", "fence", "wall", "hedge", "powerLine", "waterway"]
    path_type: Optional[Literal[
        "roadway", "footway", "cycleway", "railway", "tramway", "runway",
    ]] = None
    width: Optional[float] = Field(default=None, gt=0)
    height: Optional[float] = Field(default=None, gt=0)
    lanes: Optional[int] = Field(default=None, gt=0)
    is_road_graph_part: bool = True
    intersection_material: Optional[IntersectionMaterial] = None
    label: Optional[str] = None


class VectorAreaDescriptor(BaseModel):
    type: Literal[
        "building", "water", "pavement", "roadwayIntersection",
        "forest", "grass", "sand", "farmland", "helipad",
    ]
    building_height: Optional[float] = Field(default=None, gt=0)
    building_min_height: float = Field(default=0.0, ge=0)
    building_levels: Optional[int] = Field(default=None, gt=0)
    intersection_material: Optional[IntersectionMaterial] = None
    label: Optional[str] = None


class VectorNode(BaseModel):
    type: Literal["node"] = "node"
    x: float
    y: float
    rotation: float = 0.0
    descriptor: Optional[VectorNodeDescriptor] = None
    osm_reference: Optional[OsmReference] = None


class VectorPolyline(BaseModel):
    type: Literal["polyline"] = "polyline"
    nodes: list[VectorNode] = Field(default_factory=list)
    descriptor: Optional[VectorPolylineDescriptor] = None
    osm_reference: Optional[OsmReference] = None


class VectorAreaRing(BaseModel):
    type: VectorAreaRingType = VectorAreaRingType.OUTER
    nodes: list[VectorNode] = Field(default_factory=list)


class VectorArea(BaseModel):
    type: Literal["area"] = "area"
    rings: list[VectorAreaRing] = Field(default_factory=list)
    descriptor: Optional[VectorAreaDescriptor] = None
    osm_reference: Optional[OsmReference] = None

    @field_validator("rings")
    @classmethod
    def must_have_outer_ring_when_not_empty(cls, v: list[VectorAreaRing]) -> list[VectorAreaRing]:
        if v and not any(ring.type == VectorAreaRingType.OUTER for ring in v):
            raise ValueError("Area with rings must have at least one outer ring")
        return v


class VectorFeatureCollection(BaseModel):
    nodes: list[VectorNode] = Field(default_factory=list)
    polylines: list[VectorPolyline] = Field(default_factory=list)
    areas: list[VectorArea] = Field(default_factory=list)


class TileCoords(BaseModel):
    x: int = Field(ge=0)
    y: int = Field(ge=0)
    zoom: int = Field(ge=0, le=24)

    @model_validator(mode="after")
    def check_within_zoom(self) -> "TileCoords":
        limit = 2 ** self.zoom
        if self.x >= limit or self.y >= limit:
            raise ValueError(
                f"Tile ({self.x}, {self.y}) out of range for zoom {self.zoom}"
            )
        return self
