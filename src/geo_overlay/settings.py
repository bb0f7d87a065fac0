"""Process-wide settings and logging setup.

Settings are read from ``GEO_OVERLAY_*`` environment variables or a ``.env``
file. Credentials for the imagery layer and the reality model live here so
configuration documents can be committed without secrets.

Example:
    >>> from geo_overlay.settings import get_settings
    >>> settings = get_settings()
    >>> settings.ready_timeout_s
    20.0
"""
from __future__ import annotations

import functools
import logging

import pydantic
import pydantic_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class OverlaySettings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    Attributes:
        mapbox_maps_key: Access token for the Mapbox imagery layer.
        cesium_ion_key: Access token for reality models hosted on Cesium ion.
        poll_interval_s: Scene-ready gate poll interval.
        ready_timeout_s: Scene-ready gate ceiling.
        log_level: Level used by configure_logging().
    """

    mapbox_maps_key: str = ""
    cesium_ion_key: str = ""
    poll_interval_s: float = pydantic.Field(default=0.1, gt=0)
    ready_timeout_s: float = pydantic.Field(default=20.0, gt=0)
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix="GEO_OVERLAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


@functools.lru_cache
def get_settings() -> OverlaySettings:
    """Cached settings instance; the same object is returned on every call."""
    return OverlaySettings()


def configure_logging(level: str | int | None = None) -> logging.Handler:
    """Attach a stream handler to the package logger.

    Applications call this once; the library itself only installs a
    NullHandler.
    """
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger = logging.getLogger("geo_overlay")
    for h in list(logger.handlers):
        if getattr(h, "_geo_overlay_handler", False):
            logger.removeHandler(h)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._geo_overlay_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler
