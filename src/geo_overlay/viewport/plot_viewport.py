# plot_viewport.py  --  top-down matplotlib viewport (preview / tests)
from __future__ import annotations
import logging
from typing import Dict, List, Optional, Tuple

import matplotlib.pyplot as plt
from matplotlib.axes import Axes

from geo_overlay.errors import AttachmentFailure
from geo_overlay.geo.projection import GeoProjector, PlanarProjection
from geo_overlay.geo.transform import CoordinateTransformService
from geo_overlay.model.models import (
    AABB3D,
    BackgroundMapSettings,
    CameraPose,
    MapLayerSettings,
    Point3D,
    RealityModelAnchor,
)
from geo_overlay.overlay.decorator import Decorator
from geo_overlay.overlay.renderer import PlotRenderContext
from geo_overlay.overlay.tiles import TileOverlay, imagery_layer_url, provider_url, resolve_provider

logger = logging.getLogger(__name__)


class PlotViewport:
    """Viewport drawn as a top-down matplotlib plot (x=E, y=N).

    Nothing streams here, so the scene counts as fully streamed unless
    ``streamed`` is set to False. With a projector and ``basemap=True`` the
    background map tiles are fetched and drawn under the decorations.
    """

    def __init__(self, ax: Axes | None = None, *, projector: GeoProjector | None = None,
                 basemap: bool = False, half_extent_m: float = 50.0):
        if ax is None:
            _, ax = plt.subplots(figsize=(10, 8), dpi=120)
        self.ax = ax
        self.projector = projector
        self.basemap = basemap
        self.half_extent_m = half_extent_m
        self.streamed = True
        self.background: Optional[BackgroundMapSettings] = None
        self.background_url: Optional[str] = None
        self.map_layers: List[str] = []
        self.reality_models: List[AABB3D] = []
        self.camera: Optional[CameraPose] = None
        self.decorators: List[Decorator] = []

    # --- Viewport ---

    def set_background_map(self, settings: BackgroundMapSettings) -> None:
        self.background_url = provider_url(resolve_provider(settings.provider))
        self.background = settings

    def look_at(self, pose: CameraPose) -> None:
        self.camera = pose

    def fit_view(self, extents: AABB3D | None = None) -> None:
        boxes = list(self.reality_models)
        if extents is not None:
            boxes.append(extents)
        for d in self.decorators:
            for m in getattr(d, "markers", ()):
                p = m.world_position
                boxes.append(AABB3D(p, p))
        if not boxes:
            self.camera = CameraPose(eye=Point3D(0.0, 0.0, self.half_extent_m), target=Point3D(0.0, 0.0, 0.0))
            return
        box = boxes[0]
        for b in boxes[1:]:
            box = box.union(b)
        c = box.center()
        span = max(box.max.x - box.min.x, box.max.y - box.min.y, 1.0)
        self.camera = CameraPose(eye=Point3D(c.x, c.y, c.z + span), target=c, up=Point3D(0.0, 1.0, 0.0))

    def is_fully_streamed(self) -> bool:
        return self.streamed

    def add_decorator(self, decorator: Decorator) -> None:
        self.decorators.append(decorator)

    def drop_decorator(self, decorator: Decorator) -> None:
        if decorator in self.decorators:
            self.decorators.remove(decorator)

    # --- drawing ---

    def view_bounds(self):
        """(xmin, xmax, ymin, ymax) around the camera target."""
        target = self.camera.target if self.camera else Point3D(0.0, 0.0, 0.0)
        h = self.half_extent_m
        if self.camera:
            h = max(h, abs(self.camera.eye.z - target.z) * 0.5)
        return target.x - h, target.x + h, target.y - h, target.y + h

    def render(self) -> Axes:
        """One frame: background, then every decorator in registration order."""
        ax = self.ax
        ax.clear()
        xmin, xmax, ymin, ymax = self.view_bounds()
        if self.basemap and self.projector is not None and self.background is not None:
            self._draw_basemap(xmin, xmax, ymin, ymax)
        context = PlotRenderContext(ax)
        for d in list(self.decorators):
            d.decorate(context)
        ax.set_xlim(xmin, xmax)
        ax.set_ylim(ymin, ymax)
        ax.set_aspect("equal", adjustable="box")
        ax.set_xlabel("E [m]")
        ax.set_ylabel("N [m]")
        return ax

    def _draw_basemap(self, xmin, xmax, ymin, ymax) -> None:
        merc = PlanarProjection()
        lat0, lon0 = self.projector.enu_to_lonlat(xmin, ymin)
        lat1, lon1 = self.projector.enu_to_lonlat(xmax, ymax)
        X0, Y0 = merc.lonlat_to_xy(lon0, lat0)
        X1, Y1 = merc.lonlat_to_xy(lon1, lat1)
        overlay = TileOverlay(self.background.provider)
        img, _, zoom = overlay.fetch(X0, Y0, X1, Y1)
        logger.debug("basemap %s at z=%d", self.background.provider, zoom)
        self.ax.imshow(img, extent=(xmin, xmax, ymin, ymax), origin="upper",
                       interpolation="bilinear", zorder=0)


class PlotAttachmentService:
    """AttachmentService for PlotViewport.

    Imagery layers are validated and recorded by URL. A reality model is
    placed at its transformed anchor with a cube of ``model_half_extent_m``.
    """

    def __init__(self, transform_service: CoordinateTransformService,
                 model_half_extent_m: float = 25.0):
        self.transform_service = transform_service
        self.model_half_extent_m = model_half_extent_m
        # (viewport id, anchor) -> boxes placed for it, most recent last
        self._placed: Dict[Tuple[int, RealityModelAnchor], List[AABB3D]] = {}

    async def attach_map_layer(self, viewport: PlotViewport, layer: MapLayerSettings) -> None:
        url = imagery_layer_url(layer)
        viewport.map_layers.append(url)
        logger.info("attached map layer %s (%s)", layer.name, layer.format_id)

    def detach_map_layer(self, viewport: PlotViewport, layer: MapLayerSettings) -> None:
        url = imagery_layer_url(layer)
        if url in viewport.map_layers:
            viewport.map_layers.remove(url)
            logger.info("detached map layer %s", layer.name)

    async def attach_reality_model(self, viewport: PlotViewport, anchor: RealityModelAnchor) -> AABB3D:
        if not anchor.url:
            raise AttachmentFailure("reality model has no identifier", anchor.name)
        center = await self.transform_service.transform(anchor.anchor)
        h = self.model_half_extent_m
        box = AABB3D(center - Point3D(h, h, h), center + Point3D(h, h, h))
        viewport.reality_models.append(box)
        self._placed.setdefault((id(viewport), anchor), []).append(box)
        logger.info("attached reality model %s", anchor.name or anchor.url)
        return box

    def detach_reality_model(self, viewport: PlotViewport, anchor: RealityModelAnchor) -> None:
        key = (id(viewport), anchor)
        boxes = self._placed.get(key)
        if not boxes:
            return
        box = boxes.pop()
        if not boxes:
            del self._placed[key]
        if box in viewport.reality_models:
            viewport.reality_models.remove(box)
        logger.info("detached reality model %s", anchor.name or anchor.url)
