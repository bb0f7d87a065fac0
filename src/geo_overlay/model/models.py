from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]


# --- geometry ---------------------------------------------------------

@dataclass(frozen=True)
class Point3D:
    x: float
    y: float
    z: float = 0.0

    def __add__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Point3D") -> "Point3D":
        return Point3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def to_tuple(self) -> Vec3:
        return (self.x, self.y, self.z)

    @classmethod
    def of(cls, v) -> "Point3D":
        """[x, y, z] / (x, y) / {"x":..,"y":..,"z":..} -> Point3D"""
        if isinstance(v, Point3D):
            return v
        if isinstance(v, dict):
            return cls(float(v["x"]), float(v["y"]), float(v.get("z", 0.0)))
        vals = [float(c) for c in v]
        return cls(*vals)


# Scene-local frame; the only space the decorator understands.
SpatialCoordinate = Point3D


@dataclass(frozen=True)
class AABB3D:
    """Axis-Aligned Bounding Box (3D)"""
    min: Point3D
    max: Point3D

    def center(self) -> Point3D:
        return Point3D(
            (self.min.x + self.max.x) * 0.5,
            (self.min.y + self.max.y) * 0.5,
            (self.min.z + self.max.z) * 0.5,
        )

    def union(self, other: "AABB3D") -> "AABB3D":
        return AABB3D(
            min=Point3D(min(self.min.x, other.min.x), min(self.min.y, other.min.y), min(self.min.z, other.min.z)),
            max=Point3D(max(self.max.x, other.max.x), max(self.max.y, other.max.y), max(self.max.z, other.max.z)),
        )


@dataclass(frozen=True)
class GeoCoordinate:
    latitude: float
    longitude: float
    height: float = 0.0

    def is_valid(self) -> bool:
        return -90.0 <= self.latitude <= 90.0 and -180.0 <= self.longitude <= 180.0


# --- marker placement ---------------------------------------------------

@dataclass(frozen=True)
class GeoPlacement:
    coordinate: GeoCoordinate


@dataclass(frozen=True)
class LocalPlacement:
    position: Point3D


Placement = Union[GeoPlacement, LocalPlacement]


@dataclass(frozen=True)
class MarkerKindStyle:
    icon_asset: str
    label_prefix: str
    size: Vec2 = (40.0, 40.0)
    label_offset: Vec2 = (0.0, 30.0)


MARKER_KIND_STYLES: Dict[str, MarkerKindStyle] = {
    "camera": MarkerKindStyle("/images/icons8-video-camera-64.png", "Video Camera"),
    "sensor": MarkerKindStyle("/images/icons8-sensor-64.png", "Sensor"),
    "instrument": MarkerKindStyle("/images/icons8-gauge-64.png", "Instrument"),
}


@dataclass(frozen=True)
class MarkerDef:
    id: str
    kind: str
    label: str
    placement: Placement
    content_ref: Optional[str] = None

    @property
    def is_geographic(self) -> bool:
        return isinstance(self.placement, GeoPlacement)


# --- viewport configuration -------------------------------------------

@dataclass(frozen=True)
class BackgroundMapSettings:
    provider: str = "OpenStreetMap.Mapnik"
    apply_terrain: bool = False
    non_locatable: bool = True


@dataclass(frozen=True)
class MapLayerSettings:
    url_template: str
    name: str = "Mapbox Layer"
    format_id: str = "MapboxImagery"
    credential_key: str = "access_token"
    credential: Optional[str] = None

    def resolved_url(self) -> str:
        """Template with the credential appended as a query parameter.

        Tile placeholders ({z}/{x}/{y}) are left untouched.
        """
        if not self.credential:
            return self.url_template
        parts = urlsplit(self.url_template)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != self.credential_key]
        query.append((self.credential_key, self.credential))
        return urlunsplit(parts._replace(query=urlencode(query, safe="{}")))


@dataclass(frozen=True)
class Rotation:
    heading_deg: float = 0.0
    pitch_deg: float = 0.0
    roll_deg: float = 0.0


@dataclass(frozen=True)
class RealityModelAnchor:
    url: str
    anchor: GeoCoordinate
    rotation: Rotation = field(default_factory=Rotation)
    name: Optional[str] = None
    credential: Optional[str] = None


@dataclass(frozen=True)
class CameraPose:
    eye: Point3D
    target: Point3D
    up: Point3D = Point3D(0.0, 0.0, 1.0)


@dataclass(frozen=True)
class CentroidCameraPlacement:
    """eye = centroid(markers) + offset, looking at the centroid"""
    offset: Point3D
    up: Point3D = Point3D(0.0, 0.0, 1.0)


CameraSetting = Union[CameraPose, CentroidCameraPlacement, None]


@dataclass(frozen=True)
class ViewportConfig:
    background_map: BackgroundMapSettings = field(default_factory=BackgroundMapSettings)
    map_layer: Optional[MapLayerSettings] = None
    reality_model: Optional[RealityModelAnchor] = None
    camera: CameraSetting = None


class SceneReadinessState(Enum):
    LOADING = "loading"
    READY = "ready"
    TIMED_OUT = "timed_out"

    def can_transition(self, new: "SceneReadinessState") -> bool:
        return self is SceneReadinessState.LOADING and new is not SceneReadinessState.LOADING


__all__ = [
    "Vec2",
    "Vec3",
    "Point3D",
    "SpatialCoordinate",
    "AABB3D",
    "GeoCoordinate",
    "GeoPlacement",
    "LocalPlacement",
    "Placement",
    "MarkerKindStyle",
    "MARKER_KIND_STYLES",
    "MarkerDef",
    "BackgroundMapSettings",
    "MapLayerSettings",
    "Rotation",
    "RealityModelAnchor",
    "CameraPose",
    "CentroidCameraPlacement",
    "CameraSetting",
    "ViewportConfig",
    "SceneReadinessState",
]
