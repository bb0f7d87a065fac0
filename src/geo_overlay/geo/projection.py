# projection.py  --  geographic <-> scene-local ENU metres (pyproj)
from dataclasses import dataclass
import math
from typing import Tuple

from pyproj import Transformer

WGS84 = "EPSG:4326"
WEB_MERCATOR = "EPSG:3857"


def aeqd_crs(lat: float, lon: float) -> str:
    """Azimuthal equidistant CRS centred on (lat, lon), in metres."""
    return f"+proj=aeqd +lat_0={lat} +lon_0={lon} +datum=WGS84 +units=m +no_defs"


@dataclass(frozen=True)
class PlanarProjection:
    """WGS84 lon/lat <-> planar x/y in ``crs`` (always_xy order)."""
    crs: str = WEB_MERCATOR

    def __post_init__(self):
        object.__setattr__(self, "_forward", Transformer.from_crs(WGS84, self.crs, always_xy=True))
        object.__setattr__(self, "_inverse", Transformer.from_crs(self.crs, WGS84, always_xy=True))

    def lonlat_to_xy(self, lon: float, lat: float) -> Tuple[float, float]:
        return self._forward.transform(lon, lat)

    def xy_to_lonlat(self, x: float, y: float) -> Tuple[float, float]:
        return self._inverse.transform(x, y)


@dataclass(frozen=True)
class GeoProjector:
    """Scene registration: geographic origin + east/north offset.

    The scene's local frame is ENU (x=east, y=north, z=up) in metres,
    with z measured from ``origin_height``. The plane is an azimuthal
    equidistant projection around the origin, or Web Mercator with
    ``use_mercator``.
    """
    origin_lat: float
    origin_lon: float
    origin_height: float = 0.0
    offset_x: float = 0.0  # East (m)
    offset_y: float = 0.0  # North (m)
    use_mercator: bool = False

    def __post_init__(self):
        crs = WEB_MERCATOR if self.use_mercator else aeqd_crs(self.origin_lat, self.origin_lon)
        plane = PlanarProjection(crs)
        object.__setattr__(self, "plane", plane)
        object.__setattr__(self, "_origin_xy", plane.lonlat_to_xy(self.origin_lon, self.origin_lat))

    def enu_to_lonlat(self, x: float, y: float) -> Tuple[float, float]:
        """Scene (x, y) -> (lat, lon)."""
        ox, oy = self._origin_xy
        lon, lat = self.plane.xy_to_lonlat(ox + x + self.offset_x, oy + y + self.offset_y)
        return lat, lon

    def lonlat_to_enu(self, lat: float, lon: float) -> Tuple[float, float]:
        """(lat, lon) -> scene (x, y)."""
        ox, oy = self._origin_xy
        px, py = self.plane.lonlat_to_xy(lon, lat)
        return px - ox - self.offset_x, py - oy - self.offset_y

    def to_enu(self, lat: float, lon: float, height: float = 0.0) -> Tuple[float, float, float]:
        x, y = self.lonlat_to_enu(lat, lon)
        return x, y, height - self.origin_height

    def distance_from_origin(self, lat: float, lon: float) -> float:
        # measured on the plane, ignoring the scene offset
        x, y = self.lonlat_to_enu(lat, lon)
        return math.hypot(x + self.offset_x, y + self.offset_y)
