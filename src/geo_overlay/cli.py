# cli.py  --  render a viewport configuration as a top-down preview
from __future__ import annotations
import argparse
import asyncio
import logging
from typing import Optional, Sequence

import matplotlib.pyplot as plt

from geo_overlay.geo.projection import GeoProjector
from geo_overlay.geo.transform import CoordinateTransformService, ProjectorGeolocationService
from geo_overlay.model.loader import ConfigLoader
from geo_overlay.settings import configure_logging, get_settings
from geo_overlay.viewport.click import ContentPanelState
from geo_overlay.viewport.orchestrator import ViewConfigurationOrchestrator
from geo_overlay.viewport.plot_viewport import PlotAttachmentService, PlotViewport

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None):
    p = argparse.ArgumentParser(description="Preview markers and camera framing of a viewport config")
    p.add_argument("--config", required=True, help="viewport configuration JSON")
    p.add_argument("--origin-lat", type=float, help="scene origin (default: reality model anchor)")
    p.add_argument("--origin-lon", type=float)
    p.add_argument("--origin-height", type=float, default=0.0)
    p.add_argument("--max-distance", type=float, default=None,
                   help="reject geographic markers farther than this from the origin [m]")
    p.add_argument("--basemap", action="store_true", help="draw background map tiles (network)")
    p.add_argument("--out", help="write the preview image here instead of showing it")
    p.add_argument("--print-latlon", action="store_true",
                   help="print marker_id,x_m,y_m,lat,lon for every placed marker")
    p.add_argument("--no-validate", action="store_true", help="skip JSON schema validation")
    p.add_argument("--log-level", default=None)
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    settings = get_settings()

    loader = ConfigLoader(validate_schema=not args.no_validate, settings=settings)
    data = loader.load_json(args.config)
    config = loader.load_viewport_config(data)
    marker_defs = loader.load_marker_defs(data)

    origin_lat, origin_lon = args.origin_lat, args.origin_lon
    if origin_lat is None or origin_lon is None:
        if config.reality_model is None:
            raise SystemExit("--origin-lat/--origin-lon are required without a reality model")
        origin_lat = config.reality_model.anchor.latitude
        origin_lon = config.reality_model.anchor.longitude
    projector = GeoProjector(origin_lat=origin_lat, origin_lon=origin_lon,
                             origin_height=args.origin_height)
    transform = CoordinateTransformService(ProjectorGeolocationService(projector, args.max_distance))

    viewport = PlotViewport(projector=projector, basemap=args.basemap)
    orchestrator = ViewConfigurationOrchestrator.from_settings(
        transform, PlotAttachmentService(transform), ContentPanelState(), settings)
    handle = asyncio.run(orchestrator.configure(viewport, config, marker_defs))
    report = orchestrator.last_report(viewport)
    for err in report.failures:
        logger.warning("setup: %s", err)

    if args.print_latlon and handle is not None:
        print("# marker_id,x_m,y_m,lat,lon")
        for m in handle.markers:
            p = m.world_position
            lat, lon = projector.enu_to_lonlat(p.x, p.y)
            print(f"{m.id},{p.x:.3f},{p.y:.3f},{lat:.8f},{lon:.8f}")

    ax = viewport.render()
    ax.set_title(f"{len(report.markers)} markers, camera={report.camera}")
    if args.out:
        ax.figure.savefig(args.out, bbox_inches="tight")
        logger.info("preview written to %s", args.out)
        plt.close(ax.figure)
    else:
        plt.show()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
