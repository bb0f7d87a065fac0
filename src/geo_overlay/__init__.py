"""
geo_overlay: marker overlays and viewport setup for streamed 3D scenes.

- model: data model and the JSON configuration loader
- geo: geographic -> scene-local coordinate conversion (pyproj)
- overlay: markers, the per-frame marker decorator, tile sources
- viewport: setup orchestration, scene-ready gate, click dispatch
"""
import logging

from geo_overlay.errors import (
    AttachmentFailure,
    ConfigError,
    MarkerDefinitionError,
    OverlayError,
    SceneTimeout,
    TeardownRace,
    TransformFailure,
)
from geo_overlay.geo.transform import CoordinateTransformService, ProjectorGeolocationService
from geo_overlay.model.models import SceneReadinessState, ViewportConfig
from geo_overlay.overlay.markers import Marker, MarkerRegistry
from geo_overlay.viewport.click import ClickDispatch, ContentPanelState
from geo_overlay.viewport.orchestrator import SetupReport, ViewConfigurationOrchestrator
from geo_overlay.viewport.ready_gate import SceneReadyGate

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AttachmentFailure",
    "ConfigError",
    "MarkerDefinitionError",
    "OverlayError",
    "SceneTimeout",
    "TeardownRace",
    "TransformFailure",
    "CoordinateTransformService",
    "ProjectorGeolocationService",
    "SceneReadinessState",
    "ViewportConfig",
    "Marker",
    "MarkerRegistry",
    "ClickDispatch",
    "ContentPanelState",
    "SetupReport",
    "ViewConfigurationOrchestrator",
    "SceneReadyGate",
]
