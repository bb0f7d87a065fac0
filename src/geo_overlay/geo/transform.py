"""Geographic -> spatial coordinate conversion.

``CoordinateTransformService`` is the only place the rest of the package
converts coordinates. It delegates to a ``GeolocationService`` (the host
scene's geolocation API, or ``ProjectorGeolocationService`` for scenes whose
registration is known locally) and normalises every failure into
``TransformFailure``.
"""
from __future__ import annotations
import asyncio
import logging
import math
from typing import Iterable, List, Optional, Protocol, Union

from geo_overlay.errors import TransformFailure
from geo_overlay.model.models import GeoCoordinate, Point3D
from .projection import GeoProjector

logger = logging.getLogger(__name__)


class GeolocationService(Protocol):
    async def geo_to_spatial(self, latitude: float, longitude: float, height: float) -> Point3D: ...


class ProjectorGeolocationService:
    """GeolocationService backed by a pyproj GeoProjector.

    With ``max_distance_m`` set, coordinates farther than that from the scene
    origin are outside the scene's registration and are rejected.
    """

    def __init__(self, projector: GeoProjector, max_distance_m: Optional[float] = None):
        self.projector = projector
        self.max_distance_m = max_distance_m

    async def geo_to_spatial(self, latitude: float, longitude: float, height: float) -> Point3D:
        x, y, z = self.projector.to_enu(latitude, longitude, height)
        if not all(math.isfinite(v) for v in (x, y, z)):
            raise TransformFailure(f"projection of ({latitude}, {longitude}) is not finite")
        if self.max_distance_m is not None:
            d = self.projector.distance_from_origin(latitude, longitude)
            if d > self.max_distance_m:
                raise TransformFailure(
                    f"({latitude}, {longitude}) is {d:.0f} m from the scene origin "
                    f"(limit {self.max_distance_m:.0f} m)"
                )
        return Point3D(x, y, z)


class CoordinateTransformService:
    def __init__(self, service: GeolocationService):
        self.service = service

    async def transform(self, geo: GeoCoordinate) -> Point3D:
        """Convert one coordinate; raises TransformFailure."""
        if not geo.is_valid():
            raise TransformFailure(f"invalid geographic coordinate {geo}", geo)
        try:
            spatial = await self.service.geo_to_spatial(geo.latitude, geo.longitude, geo.height)
        except asyncio.CancelledError:
            raise
        except TransformFailure as exc:
            if exc.coordinate is None:
                exc.coordinate = geo
            raise
        except Exception as exc:
            raise TransformFailure(f"geolocation service failed for {geo}: {exc}", geo) from exc
        if spatial is None:
            raise TransformFailure(f"geolocation service returned no position for {geo}", geo)
        return spatial

    async def transform_many(self, geos: Iterable[GeoCoordinate]) -> List[Union[Point3D, TransformFailure]]:
        """Concurrent fan-out; one failure never affects its siblings.

        The result list is aligned with the input: each slot holds either the
        spatial position or the TransformFailure for that coordinate. A
        request cancelled by the service counts as a failure of that slot;
        cancelling the caller still cancels the whole fan-out.
        """
        geos = list(geos)
        results = await asyncio.gather(*(self.transform(g) for g in geos), return_exceptions=True)
        out: List[Union[Point3D, TransformFailure]] = []
        for geo, res in zip(geos, results):
            if isinstance(res, asyncio.CancelledError):
                res = TransformFailure(f"geolocation request for {geo} was cancelled", geo)
            elif isinstance(res, BaseException) and not isinstance(res, Exception):
                raise res
            elif isinstance(res, Exception) and not isinstance(res, TransformFailure):
                res = TransformFailure(f"transform of {geo} failed: {res}", geo)
            out.append(res)
        return out
