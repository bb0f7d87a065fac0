"""One setup pass over a freshly attached viewport.

Steps run in order and each is fault-isolated:

1. background map settings
2. remote imagery layer (optional)
3. geo-anchored reality model (optional; its extents are kept for framing)
4. markers: create (transform per geographic definition) and register
5. camera: explicit pose, centroid of markers + offset, or fit-to-content
   once the scene-ready gate resolves

A failing step is logged and recorded on the ``SetupReport``; the remaining
steps still run. Results arriving after the viewport was detached or
re-attached are dropped.
"""
from __future__ import annotations
import asyncio
import functools
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from geo_overlay.errors import (
    AttachmentFailure,
    OverlayError,
    SceneTimeout,
    TeardownRace,
)
from geo_overlay.geo.transform import CoordinateTransformService
from geo_overlay.model.models import (
    AABB3D,
    CameraPose,
    CentroidCameraPlacement,
    MarkerDef,
    MarkerKindStyle,
    Point3D,
    SceneReadinessState,
    ViewportConfig,
)
from geo_overlay.overlay.decorator import OverlayHandle
from geo_overlay.overlay.markers import Marker, MarkerRegistry
from geo_overlay.settings import OverlaySettings, get_settings
from .base import AttachmentService, Viewport
from .click import ClickDispatch, UiStateSink
from .ready_gate import POLL_INTERVAL_S, READY_TIMEOUT_S, SceneReadyGate

logger = logging.getLogger(__name__)


def centroid(points: Sequence[Point3D]) -> Point3D:
    """Mean position; exact sums so the result ignores input order."""
    if not points:
        raise ValueError("centroid of no points")
    n = len(points)
    return Point3D(
        math.fsum(p.x for p in points) / n,
        math.fsum(p.y for p in points) / n,
        math.fsum(p.z for p in points) / n,
    )


@dataclass
class SetupReport:
    background_map: bool = False
    map_layer: Optional[bool] = None  # None: not requested
    reality_model: Optional[bool] = None
    reality_model_extents: Optional[AABB3D] = None
    markers: Tuple[Marker, ...] = ()
    readiness: Optional[SceneReadinessState] = None
    camera: Optional[str] = None  # "pose" | "centroid" | "fit"
    failures: List[OverlayError] = field(default_factory=list)
    completed: bool = False


@dataclass
class _Session:
    viewport: Viewport
    generation: int = 0
    closed: bool = False
    handle: Optional[OverlayHandle] = None
    task: Optional[asyncio.Task] = None
    report: Optional[SetupReport] = None
    # attachments of a pass that ended without a handle to own them
    cleanups: List[Callable[[], None]] = field(default_factory=list)
    gate: Optional[SceneReadyGate] = None

    def release(self) -> None:
        """Undo everything the last pass left on the viewport."""
        if self.gate is not None:
            self.gate.cancel()
            self.gate = None
        if self.handle is not None:
            self.handle.teardown()
            self.handle = None
        _unwind(self.cleanups)


def _unwind(cleanups: List[Callable[[], None]]) -> None:
    while cleanups:
        fn = cleanups.pop()
        try:
            fn()
        except Exception:
            logger.exception("attachment cleanup failed")


class ViewConfigurationOrchestrator:
    def __init__(
        self,
        transform_service: CoordinateTransformService,
        attachments: AttachmentService,
        click_dispatch: ClickDispatch,
        *,
        poll_interval: float = POLL_INTERVAL_S,
        ready_timeout: float = READY_TIMEOUT_S,
        styles: Dict[str, MarkerKindStyle] | None = None,
    ):
        self.attachments = attachments
        self.click_dispatch = click_dispatch
        self.poll_interval = poll_interval
        self.ready_timeout = ready_timeout
        self.registry = MarkerRegistry(transform_service, click_dispatch, styles)
        self._sessions: Dict[int, _Session] = {}

    @classmethod
    def from_settings(
        cls,
        transform_service: CoordinateTransformService,
        attachments: AttachmentService,
        sink: UiStateSink,
        settings: OverlaySettings | None = None,
    ) -> "ViewConfigurationOrchestrator":
        settings = settings or get_settings()
        return cls(
            transform_service,
            attachments,
            ClickDispatch(sink),
            poll_interval=settings.poll_interval_s,
            ready_timeout=settings.ready_timeout_s,
        )

    # --- sessions ------------------------------------------------------

    def _session(self, viewport: Viewport) -> _Session:
        session = self._sessions.get(id(viewport))
        if session is None:
            session = _Session(viewport)
            self._sessions[id(viewport)] = session
        return session

    def handle_for(self, viewport: Viewport) -> Optional[OverlayHandle]:
        session = self._sessions.get(id(viewport))
        return session.handle if session else None

    def last_report(self, viewport: Viewport) -> Optional[SetupReport]:
        session = self._sessions.get(id(viewport))
        return session.report if session else None

    # --- lifecycle -----------------------------------------------------

    def attach(self, viewport: Viewport, config: ViewportConfig,
               marker_defs: Sequence[MarkerDef] = ()) -> asyncio.Task:
        """Viewport-attach event: schedule a setup pass on the running loop.

        A pending pass for the same viewport (re-attach) is cancelled first.
        """
        session = self._session(viewport)
        if session.task is not None and not session.task.done():
            logger.debug("re-attach: cancelling pending setup")
            session.task.cancel()
        session.task = asyncio.ensure_future(self.configure(viewport, config, marker_defs))
        return session.task

    async def detach(self, viewport: Viewport) -> None:
        """Viewport teardown: drop pending setup and everything it attached."""
        session = self._sessions.pop(id(viewport), None)
        if session is None:
            return
        session.closed = True
        session.generation += 1
        if session.gate is not None:
            session.gate.cancel()
        task, session.task = session.task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        session.release()
        logger.info("viewport detached")

    def teardown(self, handle: OverlayHandle) -> None:
        handle.teardown()
        for session in self._sessions.values():
            if session.handle is handle:
                session.handle = None

    # --- setup pass ----------------------------------------------------

    async def configure(self, viewport: Viewport, config: ViewportConfig,
                        marker_defs: Sequence[MarkerDef] = ()) -> Optional[OverlayHandle]:
        """Run one setup pass; returns the new overlay handle.

        Returns None when the pass was superseded by a detach or re-attach,
        or when the markers could not be registered at all.
        """
        session = self._session(viewport)
        session.generation += 1
        generation = session.generation
        report = SetupReport()
        session.report = report
        session.release()

        def ensure_current() -> None:
            if session.closed or session.generation != generation:
                raise TeardownRace("viewport was torn down during setup")

        logger.info("configuring viewport: %d marker definitions", len(marker_defs))
        handle: Optional[OverlayHandle] = None
        # undo actions for this pass's attachments until a handle owns them
        cleanups: List[Callable[[], None]] = []
        try:
            self._apply_background_map(viewport, config, report)
            await self._attach_map_layer(viewport, config, report, cleanups)
            ensure_current()
            await self._attach_reality_model(viewport, config, report, cleanups)
            ensure_current()
            handle = await self._build_markers(viewport, marker_defs, report)
            ensure_current()
            if handle is not None:
                for fn in cleanups:
                    handle.add_cleanup(fn)
                cleanups.clear()
                session.handle = handle
            else:
                session.cleanups = cleanups
            await self._frame_camera(viewport, config, report, handle, session)
            ensure_current()
        except TeardownRace as exc:
            logger.debug("discarding setup result: %s", exc)
            self._abandon(session, handle, cleanups)
            return None
        except asyncio.CancelledError:
            self._abandon(session, handle, cleanups)
            raise

        report.completed = True
        logger.info(
            "viewport configured: %d markers, camera=%s, %d recoverable failures",
            len(report.markers), report.camera, len(report.failures),
        )
        return session.handle

    @staticmethod
    def _abandon(session: _Session, handle: Optional[OverlayHandle],
                 cleanups: List[Callable[[], None]]) -> None:
        if handle is not None:
            handle.teardown()
            if session.handle is handle:
                session.handle = None
        _unwind(cleanups)

    def _record(self, report: SetupReport, err: OverlayError) -> None:
        logger.warning("%s", err)
        report.failures.append(err)

    def _apply_background_map(self, viewport: Viewport, config: ViewportConfig,
                              report: SetupReport) -> None:
        try:
            viewport.set_background_map(config.background_map)
        except Exception as exc:
            err = AttachmentFailure(f"background map {config.background_map.provider!r}: {exc}",
                                    "background_map")
            err.__cause__ = exc
            self._record(report, err)
            return
        report.background_map = True

    async def _attach_map_layer(self, viewport: Viewport, config: ViewportConfig,
                                report: SetupReport, cleanups: List[Callable[[], None]]) -> None:
        layer = config.map_layer
        if layer is None:
            return
        try:
            await self.attachments.attach_map_layer(viewport, layer)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            err = exc if isinstance(exc, AttachmentFailure) else AttachmentFailure(
                f"map layer {layer.name!r}: {exc}", layer.name)
            if err is not exc:
                err.__cause__ = exc
            report.map_layer = False
            self._record(report, err)
            return
        report.map_layer = True
        cleanups.append(functools.partial(self.attachments.detach_map_layer, viewport, layer))

    async def _attach_reality_model(self, viewport: Viewport, config: ViewportConfig,
                                    report: SetupReport, cleanups: List[Callable[[], None]]) -> None:
        anchor = config.reality_model
        if anchor is None:
            return
        target = anchor.name or anchor.url
        try:
            extents = await self.attachments.attach_reality_model(viewport, anchor)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            err = exc if isinstance(exc, AttachmentFailure) else AttachmentFailure(
                f"reality model {target!r}: {exc}", target)
            if err is not exc:
                err.__cause__ = exc
            report.reality_model = False
            self._record(report, err)
            return
        report.reality_model = True
        report.reality_model_extents = extents
        cleanups.append(functools.partial(self.attachments.detach_reality_model, viewport, anchor))

    async def _build_markers(self, viewport: Viewport, marker_defs: Sequence[MarkerDef],
                             report: SetupReport) -> Optional[OverlayHandle]:
        failures: List[OverlayError] = []
        markers = await self.registry.create(marker_defs, failures)
        report.failures.extend(failures)
        try:
            handle = self.registry.register(viewport, markers)
        except Exception as exc:
            err = OverlayError(f"marker registration failed: {exc}")
            err.__cause__ = exc
            self._record(report, err)
            return None
        report.markers = handle.markers
        return handle

    async def _frame_camera(self, viewport: Viewport, config: ViewportConfig,
                            report: SetupReport, handle: Optional[OverlayHandle],
                            session: _Session) -> None:
        camera = config.camera
        try:
            if isinstance(camera, CameraPose):
                viewport.look_at(camera)
                report.camera = "pose"
                return
            if isinstance(camera, CentroidCameraPlacement):
                if report.markers:
                    c = centroid([m.world_position for m in report.markers])
                    viewport.look_at(CameraPose(eye=c + camera.offset, target=c, up=camera.up))
                    report.camera = "centroid"
                    return
                logger.info("no markers for centroid placement; fitting view instead")
            await self._fit_when_ready(viewport, report, handle, session)
        except (asyncio.CancelledError, TeardownRace):
            raise
        except Exception as exc:
            err = OverlayError(f"camera framing failed: {exc}")
            err.__cause__ = exc
            self._record(report, err)

    async def _fit_when_ready(self, viewport: Viewport, report: SetupReport,
                              handle: Optional[OverlayHandle], session: _Session) -> None:
        gate = SceneReadyGate(viewport.is_fully_streamed, self.poll_interval, self.ready_timeout)
        # the session sees the live gate even when no handle was registered
        session.gate = gate
        if handle is not None:
            handle.add_cleanup(gate.cancel)
        try:
            state = await gate.wait()
        except asyncio.CancelledError:
            if gate.cancelled:
                raise TeardownRace("scene-ready wait cancelled by teardown") from None
            raise
        finally:
            if session.gate is gate:
                session.gate = None
        report.readiness = state
        if state is SceneReadinessState.TIMED_OUT:
            self._record(report, SceneTimeout(self.ready_timeout))
        viewport.fit_view(report.reality_model_extents)
        report.camera = "fit"
