# renderer.py
from __future__ import annotations
from typing import TYPE_CHECKING, Dict

from matplotlib.axes import Axes

if TYPE_CHECKING:
    from .markers import Marker

KIND_FACE_COLORS: Dict[str, str] = {
    "camera": "yellow",
    "sensor": "deepskyblue",
    "instrument": "orange",
}


class PlotRenderContext:
    """Top-down render context over a matplotlib Axes (x=E, y=N)."""

    def __init__(self, ax: Axes, *, show_labels: bool = True):
        self.ax = ax
        self.show_labels = show_labels

    def draw_marker(self, marker: "Marker") -> None:
        p = marker.world_position
        # marker size is in screen px; matplotlib wants points
        ax = self.ax
        ax.plot(p.x, p.y, marker="o", markersize=max(4.0, marker.size[0] / 6.0),
                mec="black", mfc=KIND_FACE_COLORS.get(marker.kind, "white"),
                linestyle="none", zorder=6, gid=marker.id)
        if self.show_labels and marker.title:
            ax.annotate(marker.title, (p.x, p.y),
                        xytext=marker.label_offset, textcoords="offset points",
                        fontsize=10, ha="center",
                        bbox=dict(boxstyle="round,pad=0.25",
                                  fc="white", ec="gray", alpha=0.85),
                        zorder=7)
