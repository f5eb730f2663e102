import logging
from pathlib import Path
from typing import Optional

from django.core.files.base import ContentFile

from ..conf import get_settings
from ..models import FloorPlanUpload, IngestResult
from .bounds import compute_bounds, normalize
from .cad_ingest import CadIngestor
from .conversion import CONVERTER_HINT
from .entities import CadDocument
from .errors import ParseError, UnsupportedFormat
from .render_bridge import render_preview
from .structure import analyze_structure, suggest_zones
from .tessellation import tessellate_entities

logger = logging.getLogger(__name__)


def build_backdrop(document: CadDocument, canvas_width: float = 800.0, canvas_height: float = 500.0) -> dict:
    """
    Normalized backdrop geometry for the 2D editor: bounds, the document ->
    canvas transform and canvas-space segments grouped by layer.
    """
    settings = get_settings()
    bounds = compute_bounds(document.entities)
    transform = normalize(bounds, canvas_width, canvas_height)
    layers: dict[str, list[float]] = {}
    for layer, flat in tessellate_entities(document.entities, segments=settings.arc_segments):
        layers.setdefault(layer, []).extend(transform.apply_segments(flat))
    return {
        "bounds": bounds.as_dict(),
        "transform": {
            "scale": transform.scale,
            "center_x": transform.center_x,
            "center_y": transform.center_y,
            "target_w": transform.target_w,
            "target_h": transform.target_h,
        },
        "layers": [{"layer": layer, "segments": flat} for layer, flat in layers.items()],
    }


def process_upload(
    upload: FloorPlanUpload,
    result: IngestResult,
    ingestor: Optional[CadIngestor] = None,
) -> IngestResult:
    """
    Ingest an uploaded drawing and store the outcome on ``result``.

    File-level failures never raise: they become an UNSUPPORTED or FAILED
    status with a log explaining what went wrong, so zone editing can go on
    without an outline.

    Args:
        upload: Uploaded floor plan
        result: IngestResult model instance
        ingestor: Ingestor to use (a fresh one by default)

    Returns:
        Updated IngestResult instance
    """

    result.status = IngestResult.STATUS_RUNNING
    result.log = "Starting ingestion...\n"
    result.save(update_fields=["status", "log"])

    settings = get_settings()
    ingestor = ingestor or CadIngestor()
    filename = Path(upload.original_file.name).name

    try:
        with upload.original_file.open("rb") as fh:
            data = fh.read()
        document = ingestor.ingest(data, filename=filename)
    except UnsupportedFormat as exc:
        result.status = IngestResult.STATUS_UNSUPPORTED
        result.log = (
            "Ingestion failed: drawing format could not be processed.\n"
            f"{exc}\n"
        )
        if CONVERTER_HINT not in str(exc):
            result.log += "Hint: " + CONVERTER_HINT
        result.save()
        return result
    except ParseError as exc:
        result.status = IngestResult.STATUS_FAILED
        result.log = f"Ingestion failed: {exc}"
        result.save()
        return result
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error while ingesting upload %s", upload.pk)
        result.status = IngestResult.STATUS_FAILED
        result.log = f"Ingestion failed: unexpected error: {exc!r}"
        result.save()
        return result

    backdrop = build_backdrop(document, settings.canvas_width, settings.canvas_height)
    png = render_preview(
        [(item["layer"], item["segments"]) for item in backdrop["layers"]],
        canvas_width=settings.canvas_width,
        canvas_height=settings.canvas_height,
    )
    result.preview_image.save(f"floorplan_{upload.pk}_preview.png", ContentFile(png), save=False)

    skipped_types: dict[str, int] = {}
    for item in document.skipped:
        skipped_types[item.entity_type] = skipped_types.get(item.entity_type, 0) + 1

    structure = analyze_structure(document)
    backdrop["suggested_zones"] = [
        zone.to_dict()
        for zone in suggest_zones(
            document, upload.floor, settings.canvas_width, settings.canvas_height, structure=structure
        )
    ]

    bounds = backdrop["bounds"]
    log_lines = [
        "Ingestion completed successfully.",
        "",
        "=== Drawing ===",
        f"Format: {document.source_format.upper()}",
        f"Floor: {upload.floor}",
        f"Units: {document.units}",
        f"Layers: {len(document.layers)}",
        "",
        "=== Entities ===",
        f"Entities accepted: {len(document.entities)}",
        f"Entities dropped: {len(document.skipped)}",
    ]
    for entity_type, count in sorted(skipped_types.items()):
        log_lines.append(f"  {entity_type}: {count}")
    log_lines += [
        "",
        "=== Bounds ===",
        f"X: {bounds['min_x']:.2f} .. {bounds['max_x']:.2f}",
        f"Y: {bounds['min_y']:.2f} .. {bounds['max_y']:.2f}",
        f"Scale to canvas: {backdrop['transform']['scale']:.6f}",
        "",
        "=== Structure ===",
        f"Walls: {len(structure.walls)}",
        f"Doors: {len(structure.doors)}",
        f"Windows: {len(structure.windows)}",
        f"Rooms detected: {len(structure.rooms)}",
    ]

    result.status = IngestResult.STATUS_PARSED
    result.entity_count = len(document.entities)
    result.skipped_count = len(document.skipped)
    result.units = document.units
    result.geometry = backdrop
    result.log = "\n".join(log_lines)
    result.save()
    logger.info("Processed upload %s: %d entities", upload.pk, result.entity_count)
    return result


def load_document(upload: FloorPlanUpload, ingestor: Optional[CadIngestor] = None) -> Optional[CadDocument]:
    """Re-read an upload for the 3D outline; None when it cannot be parsed."""
    ingestor = ingestor or CadIngestor()
    try:
        with upload.original_file.open("rb") as fh:
            return ingestor.ingest(fh.read(), filename=Path(upload.original_file.name).name)
    except (ParseError, UnsupportedFormat, OSError) as exc:
        logger.warning("Outline unavailable for upload %s: %s", upload.pk, exc)
        return None
