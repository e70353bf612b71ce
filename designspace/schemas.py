# schemas.py
"""
Pydantic shapes for the nested design documents.

The frontend speaks camelCase; every model here accepts either camelCase or
snake_case keys and dumps camelCase (``by_alias=True``), which is also the
shape stored in the JSON columns.
"""

import uuid
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ProjectStatus = Literal["draft", "in_progress", "completed", "archived"]
CollaboratorRole = Literal["viewer", "editor", "admin"]
FurnitureCategory = Literal["Seating", "Tables", "Storage", "Lighting", "Bedroom", "Decorative"]
RoomCategory = Literal["living", "bedroom", "kitchen", "bathroom", "office", "outdoor", "commercial"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# ===================================================================
# Geometry
# ===================================================================

class Vec3(CamelModel):
    x: float
    y: float
    z: float


class Rotation(CamelModel):
    x: float = 0
    y: float = 0
    z: float = 0


class Scale(CamelModel):
    x: float = 1
    y: float = 1
    z: float = 1


class Point2D(CamelModel):
    x: float
    y: float


class WallIn(CamelModel):
    id: Optional[str] = None
    type: Literal["wall", "room"] = "wall"
    color: str = "#666666"
    points: List[Point2D] = Field(default_factory=list)
    completed: bool = False
    thickness: float = Field(0.2, gt=0)
    height: float = Field(3, gt=0)


class WallPatch(CamelModel):
    type: Optional[Literal["wall", "room"]] = None
    color: Optional[str] = None
    points: Optional[List[Point2D]] = None
    completed: Optional[bool] = None
    thickness: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)


class WindowIn(CamelModel):
    """A window sits on segment `segment_index` of wall `wall_id`, at fraction `t` along it."""
    id: str
    type: str = "window"
    wall_id: str
    segment_index: int = Field(..., ge=0)
    t: float = Field(..., ge=0, le=1)
    width: float = 1.2
    height: float = 1.2
    sill: float = 0.9
    color: str = "#22d3ee"


class Elements(CamelModel):
    walls: List[WallIn] = Field(default_factory=list)
    windows: List[WindowIn] = Field(default_factory=list)
    rooms: List[WallIn] = Field(default_factory=list)


class LayerIn(CamelModel):
    id: str
    name: str
    visible: bool = True
    active: bool = False
    order: int = 0


class CameraIn(CamelModel):
    position: Vec3
    target: Vec3
    fov: float = Field(60, gt=0, lt=180)


class LightingIn(CamelModel):
    ambient_intensity: float = Field(0.2, ge=0)
    directional_intensity: float = Field(0.6, ge=0)
    point_intensity: float = Field(0.2, ge=0)


class EnvironmentIn(CamelModel):
    lighting: LightingIn = Field(default_factory=LightingIn)
    background: str = "city"
    custom_background: Optional[str] = None


class DesignSettingsIn(CamelModel):
    grid_visible: bool = True
    snap_to_grid: bool = True
    show_measurements: bool = True
    zoom_level: float = Field(100, gt=0)
    active_mode: Literal["2D", "3D"] = "2D"


# ===================================================================
# Furniture placements
# ===================================================================

def _check_custom_value(path: str, value: Any) -> None:
    if isinstance(value, (bool, int, float, str)):
        return
    if isinstance(value, dict):
        for key, nested in value.items():
            if not isinstance(key, str):
                raise ValueError(f"{path} keys must be strings")
            _check_custom_value(f"{path}.{key}", nested)
        return
    raise ValueError(f"{path} must be a string, number, boolean or object")


def check_custom_properties(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if value is not None:
        for key, nested in value.items():
            _check_custom_value(f"customProperties.{key}", nested)
    return value


class FurnitureItemIn(CamelModel):
    id: Optional[str] = None
    # Catalog entry the placement was taken from; its values are copied, not linked.
    furniture_id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    category: FurnitureCategory
    type: Optional[str] = None
    price: float = Field(0, ge=0)
    color: str = "#8B4513"
    position: Vec3
    rotation: Rotation = Field(default_factory=Rotation)
    scale: Scale = Field(default_factory=Scale)
    custom_properties: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("custom_properties")
    @classmethod
    def _custom_values(cls, value):
        return check_custom_properties(value)


class FurniturePatch(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    category: Optional[FurnitureCategory] = None
    type: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    color: Optional[str] = None
    position: Optional[Vec3] = None
    rotation: Optional[Rotation] = None
    scale: Optional[Scale] = None
    custom_properties: Optional[Dict[str, Any]] = None

    @field_validator("custom_properties")
    @classmethod
    def _custom_values(cls, value):
        return check_custom_properties(value)


class DesignData(CamelModel):
    """Structural state a client may send when creating or saving a design."""
    settings: Optional[DesignSettingsIn] = None
    elements: Optional[Elements] = None
    furniture: Optional[List[FurnitureItemIn]] = None
    layers: Optional[List[LayerIn]] = None
    camera: Optional[CameraIn] = None
    environment: Optional[EnvironmentIn] = None

    def documents(self) -> Dict[str, Any]:
        """Column name to stored JSON, for the parts that were sent."""
        out: Dict[str, Any] = {}
        for name in ("settings", "elements", "camera", "environment"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value.dump()
        if self.furniture is not None:
            # Placements need an id for the per-item endpoints.
            out["furniture"] = [
                {**item.dump(), "id": item.id or f"furniture-{uuid.uuid4().hex}"} for item in self.furniture
            ]
        if self.layers is not None:
            out["layers"] = [layer.dump() for layer in self.layers]
        return out


class ProjectSettingsIn(CamelModel):
    units: Literal["metric", "imperial"] = "metric"
    grid_size: float = Field(0.5, gt=0)
    snap_to_grid: bool = True
    show_measurements: bool = True


class RatingIn(CamelModel):
    rating: float = Field(..., ge=1, le=5)
