"""
Named coordinate transforms.

Three coordinate systems are in play:

- document space: raw CAD units, Y up
- canvas space: the fixed 2D editing surface (default 800x500 px), Y down
- scene space: the fixed 3D footprint (default 20x15 units) on the XZ
  plane, centred on the origin

Each hop has its own type so a canvas point is never fed to a
document-space transform by accident.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence


@dataclass(frozen=True)
class NormalizationTransform:
    """Document space -> canvas space, uniform scale."""
    scale: float
    center_x: float
    center_y: float
    target_w: float
    target_h: float

    def apply(self, x: float, y: float) -> tuple[float, float]:
        cx = self.target_w / 2.0 + (x - self.center_x) * self.scale
        # Canvas Y grows downward
        cy = self.target_h / 2.0 - (y - self.center_y) * self.scale
        return (cx, cy)

    def apply_segments(self, flat: Sequence[float]) -> list[float]:
        out: list[float] = []
        for i in range(0, len(flat) - 1, 2):
            out.extend(self.apply(flat[i], flat[i + 1]))
        return out


@dataclass(frozen=True)
class CanvasToScene:
    """Canvas space -> scene space, independent X and Z factors."""
    scale_x: float
    scale_z: float
    scene_width: float
    scene_depth: float

    @classmethod
    def for_footprints(
        cls,
        canvas_width: float = 800.0,
        canvas_height: float = 500.0,
        scene_width: float = 20.0,
        scene_depth: float = 15.0,
    ) -> "CanvasToScene":
        if canvas_width <= 0 or canvas_height <= 0:
            raise ValueError("canvas footprint must be positive")
        return cls(
            scale_x=scene_width / canvas_width,
            scale_z=scene_depth / canvas_height,
            scene_width=scene_width,
            scene_depth=scene_depth,
        )

    def apply(self, x: float, y: float) -> tuple[float, float]:
        """Map a canvas point to scene (x, z)."""
        return (
            x * self.scale_x - self.scene_width / 2.0,
            y * self.scale_z - self.scene_depth / 2.0,
        )

    def apply_segments(self, flat: Sequence[float]) -> list[float]:
        out: list[float] = []
        for i in range(0, len(flat) - 1, 2):
            out.extend(self.apply(flat[i], flat[i + 1]))
        return out


@dataclass(frozen=True)
class DocumentToScene:
    """Composition used only for the CAD outline overlay in 3D."""
    to_canvas: NormalizationTransform
    to_scene: CanvasToScene

    def apply(self, x: float, y: float) -> tuple[float, float]:
        return self.to_scene.apply(*self.to_canvas.apply(x, y))

    def apply_segments(self, flat: Sequence[float]) -> list[float]:
        return self.to_scene.apply_segments(self.to_canvas.apply_segments(flat))
