"""Pytest configuration and shared fakes for the overlay core.

Exposes the src/ package for imports without installation, forces the
non-interactive matplotlib backend, and provides small stand-ins for the
host viewer's collaborators (viewport, geolocation, attachment service).
"""

from __future__ import annotations

import asyncio
import os
import pathlib
import sys

import pytest

os.environ.setdefault("MPLBACKEND", "Agg")

SRC_ROOT = pathlib.Path(__file__).resolve().parent.parent / "src"

if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from geo_overlay.errors import AttachmentFailure, TransformFailure  # noqa: E402
from geo_overlay.geo.transform import CoordinateTransformService  # noqa: E402
from geo_overlay.model.models import (  # noqa: E402
    AABB3D,
    GeoCoordinate,
    GeoPlacement,
    LocalPlacement,
    MarkerDef,
    Point3D,
)
from geo_overlay.viewport.click import ClickDispatch, ContentPanelState  # noqa: E402


class FakeGeolocation:
    """Maps (lat, lon, h) -> (lon*1000, lat*1000, h); rejects listed latitudes."""

    def __init__(self, reject_latitudes=(), delays=None, cancel_latitudes=()) -> None:
        self.reject_latitudes = set(reject_latitudes)
        self.cancel_latitudes = set(cancel_latitudes)
        self.delays = delays or {}
        self.calls: list[tuple[float, float, float]] = []

    async def geo_to_spatial(self, latitude: float, longitude: float, height: float) -> Point3D:
        self.calls.append((latitude, longitude, height))
        delay = self.delays.get(latitude, 0.0)
        await asyncio.sleep(delay)
        if latitude in self.reject_latitudes:
            raise ConnectionError("geolocation service unavailable")
        if latitude in self.cancel_latitudes:
            raise asyncio.CancelledError("request aborted by the service")
        return Point3D(longitude * 1000.0, latitude * 1000.0, height)


class FakeViewport:
    def __init__(self, streamed: bool = True, fail_background: bool = False,
                 fail_register: bool = False) -> None:
        self.streamed = streamed
        self.fail_background = fail_background
        self.fail_register = fail_register
        self.background = None
        self.poses: list = []
        self.fits: list = []
        self.decorators: list = []
        self.stream_checks = 0
        self.events: list[str] = []

    def set_background_map(self, settings) -> None:
        self.events.append("background")
        if self.fail_background:
            raise RuntimeError("background map provider rejected")
        self.background = settings

    def look_at(self, pose) -> None:
        self.events.append("look_at")
        self.poses.append(pose)

    def fit_view(self, extents=None) -> None:
        self.events.append("fit")
        self.fits.append(extents)

    def is_fully_streamed(self) -> bool:
        self.stream_checks += 1
        return self.streamed

    def add_decorator(self, decorator) -> None:
        self.events.append("add_decorator")
        if self.fail_register:
            raise RuntimeError("decorator registry unavailable")
        self.decorators.append(decorator)

    def drop_decorator(self, decorator) -> None:
        self.events.append("drop_decorator")
        self.decorators.remove(decorator)


class FakeAttachments:
    def __init__(self, fail_layer: bool = False, fail_model: bool = False,
                 model_delay: float = 0.0) -> None:
        self.fail_layer = fail_layer
        self.fail_model = fail_model
        self.model_delay = model_delay
        self.layers: list = []
        self.models: list = []

    async def attach_map_layer(self, viewport, layer) -> None:
        viewport.events.append("map_layer")
        if self.fail_layer:
            raise AttachmentFailure("layer unreachable", layer.name)
        self.layers.append(layer)

    async def attach_reality_model(self, viewport, anchor) -> AABB3D:
        viewport.events.append("reality_model")
        await asyncio.sleep(self.model_delay)
        if self.fail_model:
            raise TimeoutError("reality model host did not answer")
        self.models.append(anchor)
        return AABB3D(Point3D(-10.0, -10.0, 0.0), Point3D(10.0, 10.0, 5.0))

    def detach_map_layer(self, viewport, layer) -> None:
        viewport.events.append("detach_map_layer")
        self.layers.remove(layer)

    def detach_reality_model(self, viewport, anchor) -> None:
        viewport.events.append("detach_reality_model")
        self.models.remove(anchor)


def geo_def(mid: str, lat: float, lon: float, kind: str = "camera", content: str | None = None) -> MarkerDef:
    return MarkerDef(id=mid, kind=kind, label=mid.title(),
                     placement=GeoPlacement(GeoCoordinate(lat, lon, 0.0)), content_ref=content)


def local_def(mid: str, x: float, y: float, z: float = 0.0, kind: str = "sensor") -> MarkerDef:
    return MarkerDef(id=mid, kind=kind, label=mid.title(),
                     placement=LocalPlacement(Point3D(x, y, z)))


@pytest.fixture
def geolocation() -> FakeGeolocation:
    return FakeGeolocation(reject_latitudes={13.0})


@pytest.fixture
def transform_service(geolocation: FakeGeolocation) -> CoordinateTransformService:
    return CoordinateTransformService(geolocation)


@pytest.fixture
def panel() -> ContentPanelState:
    return ContentPanelState()


@pytest.fixture
def dispatch(panel: ContentPanelState) -> ClickDispatch:
    return ClickDispatch(panel)


__all__ = [
    "FakeGeolocation",
    "FakeViewport",
    "FakeAttachments",
    "TransformFailure",
    "geo_def",
    "local_def",
]
