"""Tests for environment settings and logging setup."""

from __future__ import annotations

import logging
import pathlib

import pydantic
import pytest

from geo_overlay import settings as settings_module
from geo_overlay.settings import OverlaySettings, configure_logging, get_settings


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch):
    """Run each test away from any local .env file and with a fresh cache."""
    monkeypatch.chdir(tmp_path)
    for name in ("MAPBOX_MAPS_KEY", "CESIUM_ION_KEY", "POLL_INTERVAL_S", "READY_TIMEOUT_S", "LOG_LEVEL"):
        monkeypatch.delenv(f"GEO_OVERLAY_{name}", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def package_logger():
    logger = logging.getLogger("geo_overlay")
    level = logger.level
    yield logger
    for h in list(logger.handlers):
        if getattr(h, "_geo_overlay_handler", False):
            logger.removeHandler(h)
    logger.setLevel(level)


def test_defaults() -> None:
    """Test the gate timings and empty credentials by default."""
    s = OverlaySettings()
    assert s.poll_interval_s == 0.1
    assert s.ready_timeout_s == 20.0
    assert s.mapbox_maps_key == ""
    assert s.log_level == "INFO"


def test_environment_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that GEO_OVERLAY_* variables override the defaults."""
    monkeypatch.setenv("GEO_OVERLAY_READY_TIMEOUT_S", "5")
    monkeypatch.setenv("GEO_OVERLAY_MAPBOX_MAPS_KEY", "pk.test")
    s = OverlaySettings()
    assert s.ready_timeout_s == 5.0
    assert s.mapbox_maps_key == "pk.test"


def test_dotenv_file(tmp_path: pathlib.Path) -> None:
    """Test that a .env file in the working directory is read."""
    (tmp_path / ".env").write_text("GEO_OVERLAY_CESIUM_ION_KEY=ion-from-file\n", encoding="utf-8")
    assert OverlaySettings().cesium_ion_key == "ion-from-file"


def test_rejects_non_positive_interval() -> None:
    """Test that the poll interval must be positive."""
    with pytest.raises(pydantic.ValidationError):
        OverlaySettings(poll_interval_s=0)


def test_get_settings_is_cached() -> None:
    """Test that get_settings returns the same instance until cleared."""
    assert get_settings() is get_settings()


def test_configure_logging_installs_one_handler(package_logger: logging.Logger) -> None:
    """Test that repeated calls replace the handler instead of stacking."""
    first = configure_logging("debug")
    second = configure_logging("debug")
    tagged = [h for h in package_logger.handlers if getattr(h, "_geo_overlay_handler", False)]
    assert tagged == [second]
    assert first not in package_logger.handlers
    assert package_logger.level == logging.DEBUG
    assert second.formatter._fmt == settings_module.LOG_FORMAT


def test_configure_logging_unknown_level(package_logger: logging.Logger) -> None:
    """Test that an unknown level name falls back to INFO."""
    configure_logging("chatty")
    assert package_logger.level == logging.INFO


def test_configure_logging_uses_settings_level(monkeypatch: pytest.MonkeyPatch,
                                               package_logger: logging.Logger) -> None:
    """Test that the level defaults to the configured log_level."""
    monkeypatch.setenv("GEO_OVERLAY_LOG_LEVEL", "WARNING")
    configure_logging()
    assert package_logger.level == logging.WARNING
