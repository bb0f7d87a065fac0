"""Tests for the coordinate transform service and the pyproj projector.

Covers failure normalisation into TransformFailure, fan-out isolation,
and the ENU conversion of the reference geolocation service.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeGeolocation
from geo_overlay.errors import TransformFailure
from geo_overlay.geo.projection import GeoProjector
from geo_overlay.geo.transform import CoordinateTransformService, ProjectorGeolocationService
from geo_overlay.model.models import GeoCoordinate, Point3D


def test_transform_delegates_to_service(transform_service: CoordinateTransformService) -> None:
    """Test that a valid coordinate is converted by the geolocation service."""
    result = asyncio.run(transform_service.transform(GeoCoordinate(1.0, 2.0, 3.0)))
    assert result == Point3D(2000.0, 1000.0, 3.0)


def test_transform_wraps_service_errors(transform_service: CoordinateTransformService) -> None:
    """Test that service exceptions surface as TransformFailure."""
    geo = GeoCoordinate(13.0, 2.0)
    with pytest.raises(TransformFailure) as info:
        asyncio.run(transform_service.transform(geo))
    assert info.value.coordinate == geo
    assert isinstance(info.value.__cause__, ConnectionError)


def test_transform_rejects_invalid_coordinate() -> None:
    """Test that out-of-range latitude never reaches the service."""
    geolocation = FakeGeolocation()
    service = CoordinateTransformService(geolocation)
    with pytest.raises(TransformFailure):
        asyncio.run(service.transform(GeoCoordinate(91.0, 0.0)))
    assert geolocation.calls == []


def test_transform_many_isolates_failures(transform_service: CoordinateTransformService) -> None:
    """Test that one failing coordinate leaves its siblings intact and ordered."""
    geos = [GeoCoordinate(1.0, 1.0), GeoCoordinate(13.0, 1.0), GeoCoordinate(2.0, 1.0)]
    results = asyncio.run(transform_service.transform_many(geos))
    assert results[0] == Point3D(1000.0, 1000.0, 0.0)
    assert isinstance(results[1], TransformFailure)
    assert results[2] == Point3D(1000.0, 2000.0, 0.0)


def test_transform_many_keeps_input_order_with_uneven_latency() -> None:
    """Test that slower transforms do not reorder results."""
    service = CoordinateTransformService(FakeGeolocation(delays={1.0: 0.03, 2.0: 0.0}))
    results = asyncio.run(service.transform_many([GeoCoordinate(1.0, 0.0), GeoCoordinate(2.0, 0.0)]))
    assert [r.y for r in results] == [1000.0, 2000.0]


def test_projector_origin_maps_to_zero() -> None:
    """Test that the scene origin converts to the local origin."""
    projector = GeoProjector(origin_lat=35.0, origin_lon=139.0, origin_height=10.0)
    x, y, z = projector.to_enu(35.0, 139.0, 12.5)
    assert x == pytest.approx(0.0, abs=1e-6)
    assert y == pytest.approx(0.0, abs=1e-6)
    assert z == pytest.approx(2.5)


def test_projector_axes_are_east_north() -> None:
    """Test that moving north/east increases y/x respectively."""
    projector = GeoProjector(origin_lat=35.0, origin_lon=139.0)
    x_n, y_n = projector.lonlat_to_enu(35.001, 139.0)
    x_e, y_e = projector.lonlat_to_enu(35.0, 139.001)
    assert y_n == pytest.approx(110.9, rel=0.01)
    assert abs(x_n) < 1e-3
    assert x_e == pytest.approx(91.3, rel=0.01)
    assert abs(y_e) < 0.1


def test_projector_round_trip_with_offset() -> None:
    """Test that enu_to_lonlat inverts lonlat_to_enu when an offset is set."""
    projector = GeoProjector(origin_lat=35.0, origin_lon=139.0, offset_x=20.0, offset_y=-5.0)
    x, y = projector.lonlat_to_enu(35.0004, 139.0007)
    lat, lon = projector.enu_to_lonlat(x, y)
    assert lat == pytest.approx(35.0004, abs=1e-9)
    assert lon == pytest.approx(139.0007, abs=1e-9)


def test_projector_service_rejects_outside_registration() -> None:
    """Test that coordinates beyond max_distance_m are rejected."""
    projector = GeoProjector(origin_lat=35.0, origin_lon=139.0)
    service = CoordinateTransformService(ProjectorGeolocationService(projector, max_distance_m=500.0))
    near = asyncio.run(service.transform(GeoCoordinate(35.001, 139.0)))
    assert near.y == pytest.approx(110.9, rel=0.01)
    with pytest.raises(TransformFailure):
        asyncio.run(service.transform(GeoCoordinate(35.1, 139.0)))


def test_transform_many_isolates_service_cancellation() -> None:
    """Test that a request cancelled by the service fails only its own slot."""
    service = CoordinateTransformService(FakeGeolocation(cancel_latitudes={2.0}))
    geos = [GeoCoordinate(1.0, 1.0), GeoCoordinate(2.0, 2.0), GeoCoordinate(3.0, 3.0)]
    results = asyncio.run(service.transform_many(geos))
    assert results[0] == Point3D(1000.0, 1000.0, 0.0)
    assert isinstance(results[1], TransformFailure)
    assert results[1].coordinate == geos[1]
    assert results[2] == Point3D(3000.0, 3000.0, 0.0)


def test_transform_many_propagates_caller_cancellation() -> None:
    """Test that cancelling the caller still cancels the fan-out."""
    service = CoordinateTransformService(FakeGeolocation(delays={1.0: 1.0}))

    async def run():
        task = asyncio.ensure_future(service.transform_many([GeoCoordinate(1.0, 1.0)]))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())


def test_mercator_projector() -> None:
    """Test the Web Mercator plane: one degree of longitude at the equator."""
    projector = GeoProjector(origin_lat=0.0, origin_lon=0.0, use_mercator=True)
    x, y = projector.lonlat_to_enu(0.0, 1.0)
    assert x == pytest.approx(111319.49, rel=1e-6)
    assert y == pytest.approx(0.0, abs=1e-6)
    lat, lon = projector.enu_to_lonlat(x, y)
    assert lon == pytest.approx(1.0, abs=1e-9)
