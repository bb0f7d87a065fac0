"""Interfaces of the host viewer that the overlay core drives."""
from __future__ import annotations
from typing import Optional, Protocol

from geo_overlay.model.models import (
    AABB3D,
    BackgroundMapSettings,
    CameraPose,
    MapLayerSettings,
    RealityModelAnchor,
)
from geo_overlay.overlay.decorator import Decorator


class Viewport(Protocol):
    def set_background_map(self, settings: BackgroundMapSettings) -> None: ...

    def look_at(self, pose: CameraPose) -> None: ...

    def fit_view(self, extents: Optional[AABB3D] = None) -> None: ...

    def is_fully_streamed(self) -> bool: ...

    def add_decorator(self, decorator: Decorator) -> None: ...

    def drop_decorator(self, decorator: Decorator) -> None: ...


class AttachmentService(Protocol):
    """Remote content attached to a viewport for the lifetime of one setup pass.

    Every successful attach is undone by the matching detach when the pass
    is torn down or replaced.
    """

    async def attach_map_layer(self, viewport: Viewport, layer: MapLayerSettings) -> None: ...

    async def attach_reality_model(self, viewport: Viewport, anchor: RealityModelAnchor) -> AABB3D: ...

    def detach_map_layer(self, viewport: Viewport, layer: MapLayerSettings) -> None: ...

    def detach_reality_model(self, viewport: Viewport, anchor: RealityModelAnchor) -> None: ...
