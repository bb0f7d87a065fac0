from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Callable, List, Protocol, Sequence, Tuple

if TYPE_CHECKING:
    from .markers import Marker

logger = logging.getLogger(__name__)


class RenderContext(Protocol):
    def draw_marker(self, marker: "Marker") -> None: ...


class Decorator(Protocol):
    """Anything the host render loop calls once per frame."""
    def decorate(self, context: RenderContext) -> None: ...


class MarkerDecorator:
    """One decorator for every active marker, whatever its kind.

    The marker list is a snapshot taken at construction; ``decorate`` only
    reads it, in insertion order.
    """

    def __init__(self, markers: Sequence["Marker"]):
        self._markers: Tuple["Marker", ...] = tuple(markers)

    @property
    def markers(self) -> Tuple["Marker", ...]:
        return self._markers

    def __len__(self) -> int:
        return len(self._markers)

    def decorate(self, context: RenderContext) -> None:
        for marker in self._markers:
            marker.add_decoration(context)


class OverlayHandle:
    """Owns a registered decorator; pass it back to teardown()."""

    def __init__(self, viewport, decorator: MarkerDecorator):
        self.viewport = viewport
        self.decorator = decorator
        self._cleanups: List[Callable[[], None]] = []
        self._torn_down = False

    @property
    def markers(self) -> Tuple["Marker", ...]:
        return self.decorator.markers

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def add_cleanup(self, fn: Callable[[], None]) -> None:
        if self._torn_down:
            fn()
            return
        self._cleanups.append(fn)

    def teardown(self) -> None:
        """Unregister the decorator and run cleanups; idempotent."""
        if self._torn_down:
            return
        self._torn_down = True
        self.viewport.drop_decorator(self.decorator)
        while self._cleanups:
            fn = self._cleanups.pop()
            try:
                fn()
            except Exception:
                logger.exception("overlay cleanup failed")
        logger.debug("overlay torn down (%d markers)", len(self.decorator))


__all__ = ["RenderContext", "Decorator", "MarkerDecorator", "OverlayHandle"]
