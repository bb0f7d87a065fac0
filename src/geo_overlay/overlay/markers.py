from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from geo_overlay.errors import MarkerDefinitionError, OverlayError, TransformFailure
from geo_overlay.geo.transform import CoordinateTransformService
from geo_overlay.model.models import (
    MARKER_KIND_STYLES,
    GeoPlacement,
    MarkerDef,
    MarkerKindStyle,
    Point3D,
    Vec2,
)
from .decorator import MarkerDecorator, OverlayHandle

logger = logging.getLogger(__name__)

ClickAction = Callable[["Marker"], None]


class MouseButton(IntEnum):
    PRIMARY = 0
    MIDDLE = 1
    SECONDARY = 2


@dataclass(frozen=True)
class ButtonEvent:
    button: MouseButton
    view_point: Tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True, eq=False)
class Marker:
    id: str
    kind: str
    world_position: Point3D
    icon_ref: str
    label: str
    title: str
    size: Vec2
    label_offset: Vec2
    click_action: ClickAction
    content_ref: Optional[str] = None

    @classmethod
    def build(cls, md: MarkerDef, position: Point3D, style: MarkerKindStyle,
              click_action: ClickAction) -> "Marker":
        return cls(
            id=md.id,
            kind=md.kind,
            world_position=position,
            icon_ref=style.icon_asset,
            label=md.label,
            title=f"{style.label_prefix}: {md.label}",
            size=style.size,
            label_offset=style.label_offset,
            click_action=click_action,
            content_ref=md.content_ref,
        )

    def add_decoration(self, context) -> None:
        context.draw_marker(self)

    def on_mouse_button(self, event: ButtonEvent) -> bool:
        """Primary button fires the click action and consumes the event."""
        if event.button == MouseButton.PRIMARY:
            self.click_action(self)
            return True
        return False


class MarkerRegistry:
    """Turns marker definitions into markers and registers them on a viewport."""

    def __init__(
        self,
        transform_service: CoordinateTransformService,
        click_action: ClickAction,
        styles: Mapping[str, MarkerKindStyle] | None = None,
    ):
        self.transform_service = transform_service
        self.click_action = click_action
        self.styles: Dict[str, MarkerKindStyle] = dict(MARKER_KIND_STYLES if styles is None else styles)

    async def create(self, marker_defs: Sequence[MarkerDef],
                     failures: List[OverlayError] | None = None) -> List[Marker]:
        """Build markers in definition order, skipping the ones that fail.

        Geographic definitions are transformed concurrently; local ones are
        passed through unchanged.
        """
        defs = list(marker_defs)
        geo_defs = [md for md in defs
                    if isinstance(md.placement, GeoPlacement) and md.kind in self.styles]
        transformed = await self.transform_service.transform_many(
            md.placement.coordinate for md in geo_defs
        )
        positions = {id(md): res for md, res in zip(geo_defs, transformed)}

        markers: List[Marker] = []
        for md in defs:
            style = self.styles.get(md.kind)
            if style is None:
                err = MarkerDefinitionError(f"unknown marker kind {md.kind!r}", md.id)
                logger.warning("skipping marker %s: %s", md.id, err)
                if failures is not None:
                    failures.append(err)
                continue
            if md.is_geographic:
                res = positions[id(md)]
                if isinstance(res, TransformFailure):
                    logger.warning("skipping marker %s: %s", md.id, res)
                    if failures is not None:
                        failures.append(res)
                    continue
                position = res
            else:
                position = md.placement.position
            markers.append(Marker.build(md, position, style, self.click_action))
        logger.debug("created %d/%d markers", len(markers), len(defs))
        return markers

    def register(self, viewport, markers: Sequence[Marker]) -> OverlayHandle:
        decorator = MarkerDecorator(markers)
        viewport.add_decorator(decorator)
        return OverlayHandle(viewport, decorator)


__all__ = ["ClickAction", "MouseButton", "ButtonEvent", "Marker", "MarkerRegistry"]
