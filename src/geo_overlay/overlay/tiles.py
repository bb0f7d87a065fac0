"""Background map / imagery layer sources.

Provider names use contextily's dotted notation ("OpenStreetMap.Mapnik",
"Esri.WorldImagery"); explicit http(s) URL templates are accepted as-is.
"""
from __future__ import annotations
from dataclasses import dataclass

import contextily as ctx
import numpy as np

from geo_overlay.errors import AttachmentFailure
from geo_overlay.model.models import MapLayerSettings

INITIAL_RES = 156543.03392804097  # m/px at z=0 (3857, 256px)
TILE_PLACEHOLDERS = ("{z}", "{x}", "{y}")


def resolve_provider(name: str):
    """'A.B' -> ctx.providers.A.B ; URL templates pass through."""
    if name.startswith(("http://", "https://")):
        return name
    prov = ctx.providers
    for part in name.split("."):
        if not part:
            continue
        try:
            prov = getattr(prov, part)
        except AttributeError:
            try:
                prov = prov[part]
            except (KeyError, TypeError):
                raise KeyError(f"unknown tile provider {name!r}") from None
    return prov


def provider_url(provider) -> str:
    if isinstance(provider, str):
        return provider
    return provider.build_url(scale_factor=None)


def imagery_layer_url(layer: MapLayerSettings) -> str:
    """Credential-bearing URL template for a remote imagery layer."""
    url = layer.resolved_url()
    if not url.startswith(("http://", "https://")):
        raise AttachmentFailure(f"map layer {layer.name!r} has no http(s) URL", layer.name)
    missing = [p for p in TILE_PLACEHOLDERS if p not in url]
    if missing:
        raise AttachmentFailure(
            f"map layer {layer.name!r} URL lacks {' '.join(missing)}", layer.name)
    return url


@dataclass(frozen=True)
class TileOverlay:
    tiles: str = "OpenStreetMap.Mapnik"
    zoom: int | None = None
    max_px: int = 8192

    def auto_zoom(self, m_per_px: float, provider) -> int:
        """Zoom whose ground resolution is nearest ``m_per_px``, clipped to the provider."""
        zoom = int(round(np.log2(INITIAL_RES / max(m_per_px, 1e-9))))
        return int(np.clip(zoom, getattr(provider, "min_zoom", 0), getattr(provider, "max_zoom", 22)))

    def cap_zoom(self, xmin, ymin, xmax, ymax, zoom) -> int:
        """Lower ``zoom`` until the mosaic is at most ``max_px`` wide."""
        while zoom > 0 and (xmax - xmin) * 2 ** zoom / INITIAL_RES > self.max_px:
            zoom -= 1
        return zoom

    def fetch(self, Xmin, Ymin, Xmax, Ymax, m_per_px: float | None = None):
        """Download the mosaic for a Web Mercator bbox; returns (img, extent, zoom)."""
        provider = resolve_provider(self.tiles)
        z = self.zoom
        if z is None:
            z = self.auto_zoom(m_per_px or (Xmax - Xmin) / 1024.0, provider)
            z = self.cap_zoom(Xmin, Ymin, Xmax, Ymax, z)
        img, extent_wm = ctx.bounds2img(Xmin, Ymin, Xmax, Ymax, source=provider, zoom=z, ll=False)
        return img, extent_wm, z
