"""Marker click -> application UI state.

The UI layer (panels, video players, ...) lives outside this package; it is
reached through a ``UiStateSink``. ``ContentPanelState`` is a minimal sink
holding "which content is shown", with listeners for the UI to redraw.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Callable, List, Optional, Protocol

if TYPE_CHECKING:
    from geo_overlay.overlay.markers import Marker

logger = logging.getLogger(__name__)

Listener = Callable[["ContentPanelState"], None]


class UiStateSink(Protocol):
    def show_content(self, marker_id: str, content_ref: Optional[str]) -> None: ...

    def dismiss(self) -> None: ...


class ContentPanelState:
    def __init__(self) -> None:
        self.visible = False
        self.marker_id: Optional[str] = None
        self.content_ref: Optional[str] = None
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def show_content(self, marker_id: str, content_ref: Optional[str]) -> None:
        if self.visible and self.marker_id == marker_id and self.content_ref == content_ref:
            return
        self.visible = True
        self.marker_id = marker_id
        self.content_ref = content_ref
        self._notify()

    def dismiss(self) -> None:
        if not self.visible:
            return
        self.visible = False
        self.marker_id = None
        self.content_ref = None
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)


class ClickDispatch:
    """The single click action bound to every marker.

    Create one per application (the orchestrator does) so re-registered
    markers keep pointing at the same callable.
    """

    def __init__(self, sink: UiStateSink):
        self.sink = sink
        self.dispatched = 0

    def __call__(self, marker: "Marker") -> None:
        self.dispatched += 1
        logger.debug("marker %s clicked (%s)", marker.id, marker.kind)
        self.sink.show_content(marker.id, marker.content_ref)
