"""Error taxonomy for overlay setup.

Everything except ``ConfigError`` is recoverable: it is caught where it
occurs, logged, and recorded on the setup report.
"""
from __future__ import annotations
from typing import Optional


class OverlayError(Exception):
    """Base class for all overlay errors."""


class ConfigError(OverlayError):
    """Configuration document is malformed or fails schema validation."""


class TransformFailure(OverlayError):
    """Geographic -> spatial conversion was rejected or unavailable."""

    def __init__(self, message: str, coordinate=None):
        super().__init__(message)
        self.coordinate = coordinate


class MarkerDefinitionError(OverlayError):
    """A marker definition cannot be turned into a marker (unknown kind, ...)."""

    def __init__(self, message: str, marker_id: Optional[str] = None):
        super().__init__(message)
        self.marker_id = marker_id


class AttachmentFailure(OverlayError):
    """Map layer or reality model attachment failed."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target


class SceneTimeout(OverlayError):
    """Readiness predicate was never satisfied within the ceiling."""

    def __init__(self, timeout: float):
        super().__init__(f"scene not fully streamed after {timeout:.1f}s")
        self.timeout = timeout


class TeardownRace(OverlayError):
    """An async result arrived after the viewport was torn down."""


__all__ = [
    "OverlayError",
    "ConfigError",
    "TransformFailure",
    "MarkerDefinitionError",
    "AttachmentFailure",
    "SceneTimeout",
    "TeardownRace",
]
