"""
Zone and device-position model for one editing session.

Zones are user-drawn rectangles in canvas space. Device positions are points
in canvas space, at most one per device. Which devices belong to a zone is
never stored: it is answered by bounding-box containment against the current
positions, so resizing a zone can silently detach a device from it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Callable, Iterable, Optional

from shapely.geometry import MultiPoint, Point, box
from shapely.ops import unary_union

from .entities import point_or_none
from .errors import ZoneReferenceError

logger = logging.getLogger(__name__)

ZONE_TYPES = ("Room", "Office", "Lobby", "Corridor", "Storage")
DEFAULT_FLOOR = "Ground"

ZONE_COLORS = {
    "Room": "#93C5FD",
    "Office": "#FCD34D",
    "Lobby": "#86EFAC",
    "Corridor": "#C4B5FD",
    "Storage": "#FCA5A5",
}
DEFAULT_ZONE_COLOR = "#E5E7EB"


def zone_color(zone_type: str) -> str:
    return ZONE_COLORS.get(zone_type, DEFAULT_ZONE_COLOR)


@dataclass(frozen=True)
class Zone:
    """Rectangular region on a floor, in canvas coordinates."""
    id: str
    name: str = ""
    type: str = "Room"
    x: float = 0.0
    y: float = 0.0
    w: float = 0.0
    h: float = 0.0
    floor: str = DEFAULT_FLOOR
    is_defined: bool = True
    description: str = ""
    capacity: Optional[int] = None
    status: str = "active"

    @property
    def min_x(self) -> float:
        return min(self.x, self.x + self.w)

    @property
    def max_x(self) -> float:
        return max(self.x, self.x + self.w)

    @property
    def min_y(self) -> float:
        return min(self.y, self.y + self.h)

    @property
    def max_y(self) -> float:
        return max(self.y, self.y + self.h)

    @property
    def centroid(self) -> tuple[float, float]:
        return ((self.min_x + self.max_x) / 2.0, (self.min_y + self.max_y) / 2.0)

    def as_box(self):
        return box(self.min_x, self.min_y, self.max_x, self.max_y)

    def contains(self, x: float, y: float) -> bool:
        """Inclusive bounding-box containment."""
        return self.as_box().covers(Point(x, y))

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Zone":
        """Build a Zone from exported state, tolerating camelCase keys."""
        if not data.get("id"):
            raise ValueError("zone record has no id")
        values = dict(data)
        if "isDefined" in values:
            values.setdefault("is_defined", values.pop("isDefined"))
        if "width" in values:
            values.setdefault("w", values.pop("width"))
        if "height" in values:
            values.setdefault("h", values.pop("height"))
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in values.items() if k in known}
        for key in ("x", "y", "w", "h"):
            if key in values:
                values[key] = float(values[key])
        values["id"] = str(values["id"])
        return cls(**values)


@dataclass(frozen=True)
class Device:
    """Catalog record owned by the device inventory; read-only here."""
    id: str
    name: str
    type: str = ""
    status: str = ""


@dataclass(frozen=True)
class DevicePosition:
    device_id: str
    floor: str
    x: float
    y: float
    zone_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "floor": self.floor, "zone_id": self.zone_id}


@dataclass(frozen=True)
class UploadedFile:
    floor: str
    file_ref: str
    status: str

    def to_dict(self) -> dict:
        return asdict(self)


_ZONE_PATCH_FIELDS = {f.name for f in fields(Zone)} - {"id"}

Listener = Callable[[set], None]


class ZoneModel:
    """
    Owns zones, device positions and uploaded-file records for a session.

    Mutations on unknown ids are logged no-ops so stale references from
    rapid interactive edits never raise. Listeners are called with the set
    of floors a mutation touched.
    """

    def __init__(self):
        self._zones: dict[str, Zone] = {}
        self._positions: dict[str, DevicePosition] = {}
        self.uploaded_files: list[UploadedFile] = []
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, *floors: str) -> None:
        touched = {f for f in floors if f is not None}
        for listener in list(self._listeners):
            listener(touched)

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------
    @property
    def zones(self) -> list[Zone]:
        return list(self._zones.values())

    def zones_on_floor(self, floor: str) -> list[Zone]:
        return [z for z in self._zones.values() if z.floor == floor]

    @property
    def floors(self) -> list[str]:
        seen: dict[str, None] = {}
        for zone in self._zones.values():
            seen.setdefault(zone.floor)
        for position in self._positions.values():
            seen.setdefault(position.floor)
        return list(seen)

    def get_zone(self, zone_id: str) -> Zone:
        try:
            return self._zones[zone_id]
        except KeyError:
            raise ZoneReferenceError(f"Unknown zone: {zone_id}") from None

    def find_zone(self, zone_id: str) -> Optional[Zone]:
        return self._zones.get(zone_id)

    def add_zone(self, zone: Zone) -> Zone:
        if zone.id in self._zones:
            raise ValueError(f"Zone id already in use: {zone.id}")
        self._zones[zone.id] = zone
        self._notify(zone.floor)
        return zone

    def update_zone(self, zone_id: str, **patch: Any) -> Optional[Zone]:
        """Merge ``patch`` into a zone. Unknown ids and fields are ignored."""
        current = self._zones.get(zone_id)
        if current is None:
            logger.debug("update_zone: unknown zone %s ignored", zone_id)
            return None
        unknown = set(patch) - _ZONE_PATCH_FIELDS
        if unknown:
            logger.debug("update_zone: ignoring fields %s", sorted(unknown))
        changes = {k: v for k, v in patch.items() if k in _ZONE_PATCH_FIELDS}
        updated = replace(current, **changes)
        self._zones[zone_id] = updated
        self._notify(current.floor, updated.floor)
        return updated

    def remove_zone(self, zone_id: str) -> bool:
        zone = self._zones.pop(zone_id, None)
        if zone is None:
            logger.debug("remove_zone: unknown zone %s ignored", zone_id)
            return False
        self._notify(zone.floor)
        return True

    def zone_at(self, x: float, y: float, floor: str) -> Optional[Zone]:
        """Topmost (most recently drawn) zone containing the point."""
        for zone in reversed(self.zones_on_floor(floor)):
            if zone.contains(x, y):
                return zone
        return None

    def union_bounds(self, floor: str) -> Optional[tuple[float, float, float, float]]:
        """(min_x, min_y, max_x, max_y) of all zones on the floor."""
        zones = self.zones_on_floor(floor)
        if not zones:
            return None
        return union_bounds(zones)

    # ------------------------------------------------------------------
    # Device positions
    # ------------------------------------------------------------------
    @property
    def device_positions(self) -> dict[str, DevicePosition]:
        return dict(self._positions)

    def device_position(self, device_id: str) -> Optional[DevicePosition]:
        return self._positions.get(device_id)

    def positions_on_floor(self, floor: str) -> list[DevicePosition]:
        return [p for p in self._positions.values() if p.floor == floor]

    def assign_device(
        self,
        device_id: str,
        zone_id: str,
        point: Optional[tuple[float, float]] = None,
    ) -> Optional[DevicePosition]:
        """
        Place a device in a zone, at ``point`` or the zone centroid.

        Creates or overwrites the device's single position. Unknown zone ids
        are a no-op.
        """
        zone = self._zones.get(zone_id)
        if zone is None:
            logger.debug("assign_device: unknown zone %s ignored", zone_id)
            return None
        x, y = point if point is not None else zone.centroid
        return self._place(DevicePosition(str(device_id), zone.floor, float(x), float(y), zone.id))

    def move_device(self, device_id: str, x: float, y: float, floor: str) -> DevicePosition:
        target = self.zone_at(x, y, floor)
        return self._place(
            DevicePosition(str(device_id), floor, float(x), float(y), target.id if target else None)
        )

    def _place(self, position: DevicePosition) -> DevicePosition:
        previous = self._positions.get(position.device_id)
        self._positions[position.device_id] = position
        self._notify(position.floor, previous.floor if previous else None)
        return position

    def remove_device_position(self, device_id: str) -> bool:
        previous = self._positions.pop(device_id, None)
        if previous is None:
            return False
        self._notify(previous.floor)
        return True

    def clear_device_positions(self, floor: Optional[str] = None) -> int:
        """Drop every position, or only those on ``floor``. Returns the count."""
        doomed = [
            device_id for device_id, p in self._positions.items()
            if floor is None or p.floor == floor
        ]
        floors = {self._positions[d].floor for d in doomed}
        for device_id in doomed:
            del self._positions[device_id]
        if doomed:
            self._notify(*floors)
        return len(doomed)

    def devices_for_zone(self, zone_id: str) -> list[str]:
        """Device ids whose current position falls inside the zone."""
        zone = self._zones.get(zone_id)
        if zone is None:
            return []
        return [
            p.device_id for p in self._positions.values()
            if p.floor == zone.floor and zone.contains(p.x, p.y)
        ]

    # ------------------------------------------------------------------
    # Uploaded files
    # ------------------------------------------------------------------
    def record_upload(self, floor: str, file_ref: str, status: str) -> UploadedFile:
        """Record the current upload for a floor, replacing any earlier one."""
        record = UploadedFile(floor, file_ref, status)
        self.uploaded_files = [u for u in self.uploaded_files if u.floor != floor]
        self.uploaded_files.append(record)
        return record

    def upload_for_floor(self, floor: str) -> Optional[UploadedFile]:
        for upload in self.uploaded_files:
            if upload.floor == floor:
                return upload
        return None

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------
    def export_state(self) -> dict:
        return {
            "zones": [zone.to_dict() for zone in self._zones.values()],
            "device_positions": {
                device_id: p.to_dict() for device_id, p in self._positions.items()
            },
            "uploaded_files": [u.to_dict() for u in self.uploaded_files],
        }

    @classmethod
    def from_state(cls, state: dict) -> "ZoneModel":
        """
        Rebuild a model from exported state.

        Accepts both the snake_case export and the camelCase keys written by
        the older editor (``devicePositions``, ``uploadedFiles``, ``zoneId``).
        """
        model = cls()
        for item in state.get("zones") or ():
            zone = Zone.from_dict(item)
            if zone.id in model._zones:
                logger.warning("Duplicate zone id %s in imported state, keeping the first", zone.id)
                continue
            model._zones[zone.id] = zone

        positions = state.get("device_positions")
        if positions is None:
            positions = state.get("devicePositions") or {}
        for device_id, item in positions.items():
            try:
                x, y = float(item["x"]), float(item["y"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping device position %s with invalid coordinates", device_id)
                continue
            model._positions[str(device_id)] = DevicePosition(
                str(device_id),
                str(item.get("floor") or DEFAULT_FLOOR),
                x,
                y,
                item.get("zone_id", item.get("zoneId")),
            )

        uploads = state.get("uploaded_files")
        if uploads is None:
            uploads = state.get("uploadedFiles") or []
        for item in uploads:
            model.uploaded_files.append(
                UploadedFile(
                    str(item.get("floor") or DEFAULT_FLOOR),
                    str(item.get("file_ref", item.get("fileRef")) or ""),
                    str(item.get("status") or ""),
                )
            )
        return model


def union_bounds(zones: Iterable[Zone]) -> Optional[tuple[float, float, float, float]]:
    shapes = [zone.as_box() for zone in zones]
    if not shapes:
        return None
    return tuple(unary_union(shapes).bounds)


def zone_from_selection(
    points: Iterable[Any],
    zone_id: Optional[str] = None,
    name: Optional[str] = None,
    zone_type: str = "Room",
    floor: str = DEFAULT_FLOOR,
    min_size: float = 1.0,
    **extra: Any,
) -> Zone:
    """
    Build a zone from the points of a drawn selection (drag corners or a
    lasso). The zone is the selection's bounding rectangle.

    Raises:
        ValueError: fewer than two usable points, or a selection smaller
            than ``min_size`` in either direction.
    """
    resolved = [p for p in (point_or_none(item) for item in points) if p is not None]
    if len(resolved) < 2:
        raise ValueError("a zone selection needs at least two points")
    min_x, min_y, max_x, max_y = MultiPoint([p.as_tuple() for p in resolved]).bounds
    if max_x - min_x < min_size or max_y - min_y < min_size:
        raise ValueError("selection is too small to form a zone")

    zone_id = zone_id or f"zone-{uuid.uuid4().hex[:8]}"
    return Zone(
        id=zone_id,
        name=name or zone_id,
        type=zone_type,
        x=min_x,
        y=min_y,
        w=max_x - min_x,
        h=max_y - min_y,
        floor=floor,
        **extra,
    )
