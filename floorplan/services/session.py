"""
Editing-session facade.

Wires ingestion, the zone model, scene reconstruction and the render bridge
together for one user session. Parsing runs on a background executor;
results are only applied on the session thread in :meth:`FloorPlanSession.tick`,
so the model has a single writer and needs no locks.

Typical use::

    session = FloorPlanSession(floors=["Ground", "1st"])
    session.submit_file("Ground", data, filename="Ground_floor.dxf")
    session.add_zone(Zone(id="a", x=0, y=0, w=100, h=100))
    scenes = session.tick()   # once per rendering tick
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Optional

from .bounds import compute_bounds, normalize
from .cad_ingest import CadIngestor, detect_floor_from_filename
from .entities import CadDocument
from .errors import FloorPlanError, UnsupportedFormat
from .render_bridge import RenderBridge
from .scene import SceneGraph, SceneOptions, SceneReconstructor
from .scheduling import GenerationTracker, RebuildCoalescer
from .structure import suggest_zones
from .tessellation import tessellate_entities
from .zones import DEFAULT_FLOOR, Zone, ZoneModel

logger = logging.getLogger(__name__)

MIN_ZOOM = 50
MAX_ZOOM = 200

STATUS_PARSING = "PARSING"
STATUS_PARSED = "PARSED"
STATUS_FAILED = "FAILED"
STATUS_UNSUPPORTED = "UNSUPPORTED"
STATUS_CANCELLED = "CANCELLED"


def clamp_zoom(zoom: float) -> int:
    return int(max(MIN_ZOOM, min(MAX_ZOOM, zoom)))


@dataclass(frozen=True)
class SessionContext:
    """Ambient UI state, passed explicitly instead of read from a store."""
    selected_floor: str = DEFAULT_FLOOR
    zoom_level: int = 100
    selected_zone_id: Optional[str] = None

    def with_zoom(self, zoom: float) -> "SessionContext":
        return replace(self, zoom_level=clamp_zoom(zoom))


@dataclass(frozen=True)
class Notice:
    floor: str
    message: str
    level: str = "warning"


class FloorPlanSession:
    def __init__(
        self,
        model: Optional[ZoneModel] = None,
        ingestor: Optional[CadIngestor] = None,
        reconstructor: Optional[SceneReconstructor] = None,
        bridge: Optional[RenderBridge] = None,
        executor: Optional[Executor] = None,
        floors: Optional[list[str]] = None,
        context: Optional[SessionContext] = None,
    ):
        self.model = model or ZoneModel()
        self.ingestor = ingestor or CadIngestor()
        self.reconstructor = reconstructor or SceneReconstructor(SceneOptions.from_settings())
        self.bridge = bridge or RenderBridge(
            canvas_width=self.reconstructor.options.canvas_width,
            canvas_height=self.reconstructor.options.canvas_height,
        )
        self.context = context or SessionContext(selected_floor=(floors or [DEFAULT_FLOOR])[0])
        self.floors: list[str] = list(floors or [DEFAULT_FLOOR])

        self.documents: dict[str, CadDocument] = {}
        self.scenes: dict[str, SceneGraph] = {}
        self.notices: list[Notice] = []

        # One worker: the ingestor's cache and state are not shared across threads
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="floorplan-parse")
        self._parse_tokens = GenerationTracker()
        self._pending: dict[str, tuple[int, Future]] = {}

        self.coalescer: RebuildCoalescer[SceneGraph] = RebuildCoalescer(self._rebuild_floor)
        self._unsubscribe = self.model.subscribe(self._on_model_change)
        for floor in self.model.floors:
            self._register_floor(floor)
            self.coalescer.mark_dirty(floor)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def close(self) -> None:
        self._unsubscribe()
        for _token, future in self._pending.values():
            future.cancel()
        self._pending.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=False)

    def __enter__(self) -> "FloorPlanSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @classmethod
    def from_state(cls, state: dict, **kwargs) -> "FloorPlanSession":
        """Restore a session from exported state. Adjacency is recomputed."""
        return cls(model=ZoneModel.from_state(state), **kwargs)

    def export_state(self) -> dict:
        return self.model.export_state()

    # ------------------------------------------------------------------
    # Floors and context
    # ------------------------------------------------------------------
    def _register_floor(self, floor: str) -> None:
        if floor not in self.floors:
            self.floors.append(floor)

    def floor_index(self, floor: str) -> int:
        self._register_floor(floor)
        return self.floors.index(floor)

    def select_floor(self, floor: str) -> None:
        """
        Navigate to ``floor``. Parses still running for other floors are
        superseded and their results will be discarded.
        """
        self._register_floor(floor)
        for other in list(self._pending):
            if other != floor:
                self._cancel_parse(other)
        self.context = replace(self.context, selected_floor=floor, selected_zone_id=None)
        self.coalescer.mark_dirty(floor)

    def set_zoom(self, zoom: float) -> int:
        self.context = self.context.with_zoom(zoom)
        return self.context.zoom_level

    def select_zone(self, zone_id: Optional[str]) -> None:
        if zone_id is not None and self.model.find_zone(zone_id) is None:
            zone_id = None
        self.context = replace(self.context, selected_zone_id=zone_id)
        self.coalescer.mark_dirty(self.context.selected_floor)

    # ------------------------------------------------------------------
    # Zone / device editing, forwarded to the model
    # ------------------------------------------------------------------
    def add_zone(self, zone: Zone) -> Zone:
        self._register_floor(zone.floor)
        return self.model.add_zone(zone)

    def update_zone(self, zone_id: str, **patch) -> Optional[Zone]:
        return self.model.update_zone(zone_id, **patch)

    def remove_zone(self, zone_id: str) -> bool:
        if self.context.selected_zone_id == zone_id:
            self.context = replace(self.context, selected_zone_id=None)
        return self.model.remove_zone(zone_id)

    def assign_device(self, device_id: str, zone_id: str, point=None):
        return self.model.assign_device(device_id, zone_id, point)

    def move_device(self, device_id: str, x: float, y: float, floor: Optional[str] = None):
        return self.model.move_device(device_id, x, y, floor or self.context.selected_floor)

    def _on_model_change(self, floors: set) -> None:
        for floor in floors:
            self._register_floor(floor)
            self.coalescer.mark_dirty(floor)

    # ------------------------------------------------------------------
    # CAD files
    # ------------------------------------------------------------------
    def submit_file(
        self,
        floor: Optional[str],
        data: bytes,
        filename: Optional[str] = None,
        format_tag: Optional[str] = None,
    ) -> Future:
        """
        Start parsing a drawing for ``floor`` in the background. When
        ``floor`` is None it is guessed from the file name. Replacing the
        file of a floor supersedes any parse still running for it.
        """
        floor = floor or (filename and detect_floor_from_filename(filename)) or self.context.selected_floor
        self._register_floor(floor)
        token = self._parse_tokens.next(floor)
        previous = self._pending.pop(floor, None)
        if previous is not None:
            previous[1].cancel()

        self.model.record_upload(floor, filename or "", STATUS_PARSING)
        future = self._executor.submit(self.ingestor.ingest, data, format_tag, filename)
        self._pending[floor] = (token, future)
        logger.info("Parsing %s for floor %s (generation %d)", filename or "drawing", floor, token)
        return future

    def _cancel_parse(self, floor: str) -> None:
        _token, future = self._pending.pop(floor)
        future.cancel()
        self._parse_tokens.next(floor)
        upload = self.model.upload_for_floor(floor)
        self.model.record_upload(floor, upload.file_ref if upload else "", STATUS_CANCELLED)
        logger.info("Parse for floor %s superseded", floor)

    def remove_file(self, floor: str) -> None:
        if floor in self._pending:
            self._cancel_parse(floor)
        else:
            self._parse_tokens.next(floor)
        self.documents.pop(floor, None)
        self.model.uploaded_files = [u for u in self.model.uploaded_files if u.floor != floor]
        self.coalescer.mark_dirty(floor)

    def wait_for_parses(self, timeout: Optional[float] = None) -> None:
        """Block until running parses finish (tests and batch jobs)."""
        wait([future for _token, future in self._pending.values()], timeout=timeout)

    def _collect_parses(self) -> None:
        for floor, (token, future) in list(self._pending.items()):
            if not future.done():
                continue
            del self._pending[floor]
            if not self._parse_tokens.is_current(floor, token):
                logger.info("Discarding superseded parse for floor %s", floor)
                continue
            self._apply_parse(floor, future)

    def _apply_parse(self, floor: str, future: Future) -> None:
        upload = self.model.upload_for_floor(floor)
        file_ref = upload.file_ref if upload else ""
        try:
            document = future.result()
        except FloorPlanError as exc:
            status = STATUS_UNSUPPORTED if isinstance(exc, UnsupportedFormat) else STATUS_FAILED
            self._fail_parse(floor, file_ref, status, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("Parse for floor %s failed unexpectedly", floor)
            self._fail_parse(floor, file_ref, STATUS_FAILED, f"could not be read ({exc!r})")
        else:
            self.documents[floor] = document
            self.model.record_upload(floor, file_ref, STATUS_PARSED)
        self.coalescer.mark_dirty(floor)

    def _fail_parse(self, floor: str, file_ref: str, status: str, reason: str) -> None:
        self.documents.pop(floor, None)
        self.model.record_upload(floor, file_ref, status)
        self.notify(floor, f"{file_ref or 'Drawing'}: {reason}")

    def notify(self, floor: str, message: str, level: str = "warning") -> Notice:
        notice = Notice(floor, message, level)
        self.notices.append(notice)
        self.bridge.push_notice(message, level)
        return notice

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def backdrop_segments(self, floor: str) -> list[tuple[str, list[float]]]:
        """Canvas-space backdrop segments per layer; empty without a drawing."""
        document = self.documents.get(floor)
        if document is None or not document.entities:
            return []
        options = self.reconstructor.options
        transform = normalize(compute_bounds(document.entities), options.canvas_width, options.canvas_height)
        return [
            (layer, transform.apply_segments(flat))
            for layer, flat in tessellate_entities(document.entities, segments=options.arc_segments)
        ]

    def suggest_zones(self, floor: str) -> list[Zone]:
        """
        Rooms inferred from the floor's drawing as unconfirmed zones. Nothing
        is added to the model; accept a suggestion with :meth:`add_zone`.
        """
        document = self.documents.get(floor)
        if document is None:
            return []
        options = self.reconstructor.options
        return suggest_zones(document, floor, options.canvas_width, options.canvas_height)

    def _rebuild_floor(self, floor: str) -> SceneGraph:
        return self.reconstructor.build(
            self.floor_index(floor),
            self.model.zones_on_floor(floor),
            self.model.positions_on_floor(floor),
            outline=self.documents.get(floor),
        )

    def scene_for(self, floor: str) -> SceneGraph:
        """Build the scene for a floor immediately, outside the tick cycle."""
        scene = self._rebuild_floor(floor)
        self.scenes[floor] = scene
        return scene

    def tick(self) -> dict[str, SceneGraph]:
        """
        Apply finished parses and run one coalesced rebuild per dirty floor.
        The selected floor is pushed to the render bridge.
        """
        self._collect_parses()
        rebuilt = self.coalescer.flush()
        self.scenes.update(rebuilt)

        floor = self.context.selected_floor
        if floor in rebuilt:
            self.bridge.push_backdrop(
                self.backdrop_segments(floor),
                self.model.zones_on_floor(floor),
                self.context.selected_zone_id,
            )
            self.bridge.push_scene(rebuilt[floor])
        return rebuilt
