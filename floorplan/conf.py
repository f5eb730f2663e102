"""
Settings for the floor-plan engine.

Defaults can be overridden with a ``FLOORPLAN`` dict in Django settings,
e.g.::

    FLOORPLAN = {"CANVAS_WIDTH": 1024, "ARC_SEGMENTS": 64}

The DWG converter command is read from the ``DWG_CONVERTER_CMD`` environment
variable unless ``FLOORPLAN["DWG_CONVERTER_CMD"]`` is set.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Optional


@dataclass(frozen=True)
class FloorPlanSettings:
    canvas_width: float = 800.0
    canvas_height: float = 500.0
    scene_width: float = 20.0
    scene_depth: float = 15.0
    floor_height: float = 3.0
    wall_height: float = 2.5
    wall_thickness: float = 0.1
    perimeter_padding: float = 10.0  # canvas units
    arc_segments: int = 32
    adjacency_epsilon: float = 0.1
    max_upload_bytes: int = 50 * 1024 * 1024
    dwg_converter_cmd: Optional[str] = None
    dwg_converter_timeout: float = 120.0


DEFAULTS = FloorPlanSettings()


def get_settings() -> FloorPlanSettings:
    """Resolve settings from Django (when configured) and the environment."""
    overrides: dict = {}

    from django.conf import settings as django_settings

    if django_settings.configured:
        user = getattr(django_settings, "FLOORPLAN", None) or {}
        known = {f.name for f in fields(FloorPlanSettings)}
        for key, value in user.items():
            name = key.lower()
            if name in known:
                overrides[name] = value

    if "dwg_converter_cmd" not in overrides:
        overrides["dwg_converter_cmd"] = os.getenv("DWG_CONVERTER_CMD") or None

    return replace(DEFAULTS, **overrides)
