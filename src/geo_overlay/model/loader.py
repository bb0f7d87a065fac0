from __future__ import annotations
import json
import logging
import pathlib
from typing import Any, List, Mapping

import jsonschema

from geo_overlay.errors import ConfigError
from geo_overlay.settings import OverlaySettings
from .models import (
    BackgroundMapSettings,
    CameraPose,
    CameraSetting,
    CentroidCameraPlacement,
    GeoCoordinate,
    GeoPlacement,
    LocalPlacement,
    MapLayerSettings,
    MarkerDef,
    Point3D,
    RealityModelAnchor,
    Rotation,
    ViewportConfig,
)

logger = logging.getLogger(__name__)

SCHEMA_NAME = "viewport_config.schema.json"


def _geo(d: Mapping[str, Any]) -> GeoCoordinate:
    return GeoCoordinate(
        latitude=float(d["lat"]),
        longitude=float(d["lon"]),
        height=float(d.get("height", 0.0)),
    )


class ConfigLoader:
    """Reads a viewport configuration document (JSON) into model objects."""

    def __init__(
        self,
        validate_schema: bool = True,
        schema_dir: str | pathlib.Path | None = None,
        settings: OverlaySettings | None = None,
    ):
        self.validate_schema = validate_schema
        # default: this package's schemas directory
        if schema_dir is None:
            self.schema_dir = pathlib.Path(__file__).parent.parent / "schemas"
        else:
            self.schema_dir = pathlib.Path(schema_dir)
        self.settings = settings

    def load_json(self, path: str | pathlib.Path) -> dict:
        p = pathlib.Path(path)
        if not p.exists():
            raise FileNotFoundError(path)
        with p.open("r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ConfigError(f"{p}: {exc}") from exc
        self._validate(data)
        return data

    def _validate(self, instance: Any) -> None:
        if not self.validate_schema:
            return
        with (self.schema_dir / SCHEMA_NAME).open("r", encoding="utf-8") as f:
            schema = json.load(f)
        try:
            jsonschema.validate(instance=instance, schema=schema)
        except jsonschema.ValidationError as exc:
            where = "/".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigError(f"{where}: {exc.message}") from exc

    # --- public API ----------------------------------------------------

    def load_viewport_config(self, source: str | pathlib.Path | Mapping[str, Any]) -> ViewportConfig:
        data = self._data(source)
        try:
            return ViewportConfig(
                background_map=BackgroundMapSettings(**data.get("background_map", {})),
                map_layer=self._map_layer(data.get("map_layer")),
                reality_model=self._reality_model(data.get("reality_model")),
                camera=self._camera(data.get("camera")),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"invalid viewport config: {exc}") from exc

    def load_marker_defs(self, source: str | pathlib.Path | Mapping[str, Any]) -> List[MarkerDef]:
        data = self._data(source)
        defs: List[MarkerDef] = []
        seen: set[str] = set()
        for item in data.get("markers", []):
            try:
                mid = str(item["id"])
                if "geo" in item:
                    placement = GeoPlacement(_geo(item["geo"]))
                else:
                    placement = LocalPlacement(Point3D.of(item["local"]))
                md = MarkerDef(
                    id=mid,
                    kind=str(item["kind"]),
                    label=str(item.get("label", mid)),
                    placement=placement,
                    content_ref=item.get("content"),
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise ConfigError(f"invalid marker definition {item!r}: {exc}") from exc
            if mid in seen:
                raise ConfigError(f"duplicate marker id {mid!r}")
            seen.add(mid)
            defs.append(md)
        logger.debug("loaded %d marker definitions", len(defs))
        return defs

    # --- helpers -------------------------------------------------------

    def _data(self, source) -> Mapping[str, Any]:
        if isinstance(source, Mapping):
            self._validate(source)
            return source
        return self.load_json(source)

    def _map_layer(self, d: Mapping[str, Any] | None) -> MapLayerSettings | None:
        if d is None:
            return None
        kw = dict(d)
        if not kw.get("credential") and self.settings and self.settings.mapbox_maps_key:
            kw["credential"] = self.settings.mapbox_maps_key
        return MapLayerSettings(**kw)

    def _reality_model(self, d: Mapping[str, Any] | None) -> RealityModelAnchor | None:
        if d is None:
            return None
        credential = d.get("credential")
        if not credential and self.settings and self.settings.cesium_ion_key:
            credential = self.settings.cesium_ion_key
        return RealityModelAnchor(
            url=str(d["url"]),
            anchor=_geo(d["anchor"]),
            rotation=Rotation(**d.get("rotation", {})),
            name=d.get("name"),
            credential=credential,
        )

    @staticmethod
    def _camera(d: Mapping[str, Any] | None) -> CameraSetting:
        if d is None:
            return None
        up = Point3D.of(d["up"]) if "up" in d else Point3D(0.0, 0.0, 1.0)
        if "centroid_offset" in d:
            return CentroidCameraPlacement(offset=Point3D.of(d["centroid_offset"]), up=up)
        return CameraPose(eye=Point3D.of(d["eye"]), target=Point3D.of(d["target"]), up=up)
