"""Pydantic return models for 3D tile features."""

from typing import Callable, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tile3d.models import OsmReference


class BoundingBox(BaseModel):
    min: list[float] = Field(min_length=3, max_length=3)
    max: list[float] = Field(min_length=3, max_length=3)

    @model_validator(mode="after")
    def min_must_not_exceed_max(self) -> "BoundingBox":
        for axis, (lo, hi) in enumerate(zip(self.min, self.max)):
            if lo > hi:
                raise ValueError(f"Bounding box min exceeds max on axis {axis}: {lo} > {hi}")
        return self


class MeshGeometry(BaseModel):
    """Triangle mesh in tile-local coordinates (X east, Y up, Z south)."""
    vertices: list[list[float]]
    faces: list[list[int]]
    bounding_box: Optional[BoundingBox] = None
    osm_reference: Optional[OsmReference] = None

    @field_validator("vertices")
    @classmethod
    def vertices_must_be_3d(cls, v: list[list[float]]) -> list[list[float]]:
        for i, vertex in enumerate(v):
            if len(vertex) != 3:
                raise ValueError(f"Vertex {i} must have exactly 3 components, got {len(vertex)}")
        return v

    @field_validator("faces")
    @classmethod
    def faces_must_be_triangles_with_non_negative_indices(
        cls, v: list[list[int]]
    ) -> list[list[int]]:
        for i, face in enumerate(v):
            if len(face) != 3:
                raise ValueError(f"Face {i} must have exactly 3 indices, got {len(face)}")
            for idx in face:
                if idx < 0:
                    raise ValueError(f"Face {i} has negative index {idx}")
        return v

    @model_validator(mode="after")
    def face_indices_must_be_valid(self) -> "MeshGeometry":
        n_verts = len(self.vertices)
        if n_verts == 0:
            return self
        for i, face in enumerate(self.faces):
            for idx in face:
                if idx >= n_verts:
                    raise ValueError(
                        f"Face {i} references vertex {idx} but only {n_verts} vertices exist"
                    )
        return self


class Tile3DInstance(BaseModel):
    type: Literal["instance"] = "instance"
    instance_type: str
    x: float
    y: float
    z: float
    rotation: float = 0.0
    scale: float = Field(default=1.0, gt=0)
    osm_reference: Optional[OsmReference] = None


class Tile3DProjectedGeometry(MeshGeometry):
    type: Literal["projected"] = "projected"
    material: str = ""
    z_index: int = 0


class Tile3DExtrudedGeometry(MeshGeometry):
    """Volume standing on terrain. Heights above ``terrain_height`` are in ground metres."""
    type: Literal["extruded"] = "extruded"
    material: str = ""
    color: str = "#FFFFFF"
    terrain_height: float = 0.0


class Tile3DHuggingGeometry(MeshGeometry):
    type: Literal["hugging"] = "hugging"
    material: str = ""


class Tile3DLabel(BaseModel):
    type: Literal["label"] = "label"
    text: str = Field(min_length=1)
    x: float
    y: float
    z: float
    priority: float = 0.0


Tile3DFeature = Union[
    Tile3DInstance,
    Tile3DProjectedGeometry,
    Tile3DExtrudedGeometry,
    Tile3DHuggingGeometry,
    Tile3DLabel,
]


class Tile3DFeatureCollection(BaseModel):
    """Return type for tile generation: one list per feature kind."""
    instances: list[Tile3DInstance] = []
    projected: list[Tile3DProjectedGeometry] = []
    extruded: list[Tile3DExtrudedGeometry] = []
    hugging: list[Tile3DHuggingGeometry] = []
    labels: list[Tile3DLabel] = []

    def counts(self) -> dict[str, int]:
        return {
            "instances": len(self.instances),
            "projected": len(self.projected),
            "extruded": len(self.extruded),
            "hugging": len(self.hugging),
            "labels": len(self.labels),
        }


class RequestedHeightParams(BaseModel):
    """Positions a handler needs terrain heights for, and where to deliver them."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    positions: np.ndarray
    callback: Callable[[np.ndarray], None]

    @field_validator("positions", mode="before")
    @classmethod
    def positions_must_be_flat_xy_pairs(cls, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v, dtype=np.float64)
        if v.ndim != 1 or v.size % 2 != 0:
            raise ValueError(f"Positions must be a flat array of x,y pairs, got shape {v.shape}")
        return v

    @property
    def count(self) -> int:
        return self.positions.size // 2

