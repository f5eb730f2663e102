"""
Adapter between the engine and whatever draws its results.

The bridge turns tessellated segments, zones and scenes into plain render
commands / dicts and hands them to a 2D DrawingSurface or a 3D Viewport3D.
It makes no decisions of its own. MatplotlibSurface is the bundled 2D
surface used for PNG previews.
"""

from __future__ import annotations

import io
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Protocol, Sequence, Union

from matplotlib.collections import LineCollection
from matplotlib.figure import Figure
from matplotlib.patches import Rectangle

from .scene import SceneGraph
from .zones import Zone, zone_color

logger = logging.getLogger(__name__)

# (keyword, color, line width); first match on the upper-cased layer name wins
LAYER_STYLES = (
    ("WALL", "#FFFFFF", 2.0),
    ("DOOR", "#00FF00", 1.0),
    ("WINDOW", "#00BFFF", 1.0),
    ("FURNITURE", "#FFD700", 1.0),
    ("TEXT", "#FFFF00", 1.0),
    ("DIM", "#FF00FF", 0.5),
)
DEFAULT_LAYER_STYLE = ("#CCCCCC", 1.0)

BACKGROUND = "#111827"

DEFAULT_CAMERA = {"position": (15.0, 15.0, 15.0), "target": (0.0, 0.0, 0.0), "fov": 50.0}
DEFAULT_LIGHTING = (
    {"type": "ambient", "color": "#FFFFFF", "intensity": 0.6},
    {"type": "directional", "color": "#FFFFFF", "intensity": 0.8, "position": (10.0, 20.0, 10.0)},
)


def layer_style(layer: str) -> tuple[str, float]:
    name = (layer or "").upper()
    for keyword, color, width in LAYER_STYLES:
        if keyword in name:
            return color, width
    return DEFAULT_LAYER_STYLE


@dataclass(frozen=True)
class RenderCommand:
    kind: str  # clear | lines | rect | label | drop_target | notice
    params: dict = field(default_factory=dict)


class DrawingSurface(Protocol):
    def draw(self, commands: Sequence[RenderCommand]) -> None: ...


class Viewport3D(Protocol):
    def show(self, payload: dict) -> None: ...


def scene_to_dict(scene: SceneGraph) -> dict:
    """JSON-ready representation of a scene graph."""
    return asdict(scene)


Segments = Union[Sequence[float], Iterable[tuple[str, Sequence[float]]]]


def _by_layer(segments: Segments) -> list[tuple[str, Sequence[float]]]:
    items = list(segments or ())
    if items and isinstance(items[0], (int, float)):
        return [("0", items)]
    return items


class RenderBridge:
    def __init__(
        self,
        surface: Optional[DrawingSurface] = None,
        viewport: Optional[Viewport3D] = None,
        canvas_width: float = 800.0,
        canvas_height: float = 500.0,
    ):
        self.surface = surface
        self.viewport = viewport
        self.canvas_width = canvas_width
        self.canvas_height = canvas_height

    def backdrop_commands(
        self,
        segments: Segments,
        zones: Iterable[Zone] = (),
        selected_zone_id: Optional[str] = None,
    ) -> list[RenderCommand]:
        """
        Commands for the 2D editing surface: CAD backdrop lines styled by
        layer, zone rectangles and labels, and the device drop target.
        Segments must already be in canvas space.
        """
        commands = [
            RenderCommand("clear", {"width": self.canvas_width, "height": self.canvas_height, "background": BACKGROUND})
        ]
        for layer, flat in _by_layer(segments):
            if not flat:
                continue
            color, width = layer_style(layer)
            commands.append(
                RenderCommand("lines", {"layer": layer, "segments": list(flat), "color": color, "width": width})
            )
        for zone in zones:
            selected = zone.id == selected_zone_id
            commands.append(
                RenderCommand(
                    "rect",
                    {
                        "zone_id": zone.id,
                        "x": zone.min_x,
                        "y": zone.min_y,
                        "w": zone.max_x - zone.min_x,
                        "h": zone.max_y - zone.min_y,
                        "fill": zone_color(zone.type),
                        "alpha": 0.6 if selected else 0.35,
                        "selected": selected,
                    },
                )
            )
            cx, cy = zone.centroid
            commands.append(RenderCommand("label", {"zone_id": zone.id, "x": cx, "y": cy, "text": zone.name or zone.id}))
        commands.append(
            RenderCommand("drop_target", {"x": 0.0, "y": 0.0, "w": self.canvas_width, "h": self.canvas_height})
        )
        return commands

    def push_backdrop(
        self,
        segments: Segments,
        zones: Iterable[Zone] = (),
        selected_zone_id: Optional[str] = None,
    ) -> list[RenderCommand]:
        commands = self.backdrop_commands(segments, zones, selected_zone_id)
        if self.surface is not None:
            self.surface.draw(commands)
        return commands

    def push_scene(self, scene: SceneGraph) -> dict:
        payload = scene_to_dict(scene)
        elevation = scene.floor_slabs[0].elevation if scene.floor_slabs else 0.0
        camera = dict(DEFAULT_CAMERA)
        camera["target"] = (0.0, elevation, 0.0)
        payload["camera"] = camera
        payload["lighting"] = [dict(light) for light in DEFAULT_LIGHTING]
        if self.viewport is not None:
            self.viewport.show(payload)
        return payload

    def push_notice(self, message: str, level: str = "warning") -> RenderCommand:
        command = RenderCommand("notice", {"message": message, "level": level})
        if self.surface is not None:
            self.surface.draw([command])
        return command


class MatplotlibSurface:
    """
    Renders 2D commands to PNG with matplotlib.

    A ``clear`` command starts a new frame; anything else is appended.
    Notices are drawn as a banner along the top edge.
    """

    def __init__(self, figsize: tuple[float, float] = (8.0, 5.0), dpi: int = 100):
        self.figsize = figsize
        self.dpi = dpi
        self.commands: list[RenderCommand] = []
        self.notices: list[str] = []

    def draw(self, commands: Sequence[RenderCommand]) -> None:
        for command in commands:
            if command.kind == "clear":
                self.commands = []
            if command.kind == "notice":
                self.notices.append(command.params.get("message", ""))
            else:
                self.commands.append(command)

    def _figure(self) -> Figure:
        size = {"width": 800.0, "height": 500.0, "background": BACKGROUND}
        for command in self.commands:
            if command.kind == "clear":
                size.update(command.params)

        fig = Figure(figsize=self.figsize)
        ax = fig.add_subplot(111)
        fig.patch.set_facecolor(size["background"])
        ax.set_facecolor(size["background"])
        ax.set_xlim(0, size["width"])
        ax.set_ylim(size["height"], 0)  # canvas Y grows downward
        ax.set_aspect("equal", adjustable="box")
        ax.axis("off")

        for command in self.commands:
            p = command.params
            if command.kind == "lines":
                flat = p["segments"]
                pairs = [
                    [(flat[i], flat[i + 1]), (flat[i + 2], flat[i + 3])]
                    for i in range(0, len(flat) - 3, 4)
                ]
                ax.add_collection(LineCollection(pairs, colors=p["color"], linewidths=p["width"], zorder=1))
            elif command.kind == "rect":
                ax.add_patch(
                    Rectangle(
                        (p["x"], p["y"]),
                        p["w"],
                        p["h"],
                        facecolor=p["fill"],
                        alpha=p["alpha"],
                        edgecolor="#F9FAFB" if p.get("selected") else p["fill"],
                        linewidth=2.0 if p.get("selected") else 1.0,
                        zorder=2,
                    )
                )
            elif command.kind == "label":
                ax.text(p["x"], p["y"], p["text"], ha="center", va="center", fontsize=8, color="#111827", zorder=3)

        if self.notices:
            ax.text(
                0.5,
                0.98,
                "\n".join(self.notices),
                transform=ax.transAxes,
                ha="center",
                va="top",
                fontsize=9,
                color="#92400E",
                bbox=dict(facecolor="#FEF3C7", edgecolor="#F59E0B", boxstyle="round,pad=0.3"),
                zorder=10,
            )
        return fig

    def render_png(self) -> bytes:
        """PNG bytes of the current frame, or a placeholder if drawing fails."""
        try:
            fig = self._figure()
            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=self.dpi, facecolor=fig.get_facecolor())
            return buf.getvalue()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to render floor plan preview")
            return placeholder_png()

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.render_png())


def placeholder_png(message: str = "Preview not available") -> bytes:
    fig = Figure(figsize=(8.0, 5.0))
    ax = fig.add_subplot(111)
    ax.text(0.5, 0.5, message, ha="center", va="center", fontsize=11, weight="bold")
    ax.axis("off")
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=100, facecolor="#ffffff")
    return buf.getvalue()


def render_preview(
    segments: Segments,
    zones: Iterable[Zone] = (),
    notices: Iterable[str] = (),
    canvas_width: float = 800.0,
    canvas_height: float = 500.0,
) -> bytes:
    """One-shot PNG preview of a floor: backdrop, zones and notices."""
    surface = MatplotlibSurface()
    bridge = RenderBridge(surface=surface, canvas_width=canvas_width, canvas_height=canvas_height)
    bridge.push_backdrop(segments, zones)
    for message in notices:
        bridge.push_notice(message)
    return surface.render_png()
