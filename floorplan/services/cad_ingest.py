"""
CAD ingestion: raw drawing bytes -> CadDocument.

Text DXF is read with ezdxf, falling back to a plain group-code reader when
ezdxf rejects the file (slightly malformed DXF is common in uploads). Binary
DWG goes through the external converter first. Whatever the reader, raw
entities cross the coercion boundary in ``entities.coerce_entities`` exactly
once; anything that does not fit is recorded and dropped.
"""

from __future__ import annotations

import hashlib
import io
import logging
import re
from collections import OrderedDict
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

import ezdxf
from ezdxf import recover
from ezdxf.lldxf.const import DXFStructureError

from ..conf import get_settings
from .conversion import DwgConverter
from .entities import CadDocument, coerce_entities
from .errors import FloorPlanError, ParseError, UnsupportedFormat

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("dxf", "dwg")

UNITS_MAP = {
    0: "unitless",
    1: "inches",
    2: "feet",
    4: "millimeters",
    5: "centimeters",
    6: "meters",
}


class IngestState(Enum):
    """Ingestor lifecycle."""
    IDLE = "IDLE"
    PARSING = "PARSING"
    PARSED = "PARSED"
    FAILED = "FAILED"


# ----------------------------------------------------------------------
# Format detection
# ----------------------------------------------------------------------
def _looks_like_dxf_text(data: bytes) -> bool:
    head = data[: 1024 * 1024]
    return b"SECTION" in head and b"ENTITIES" in head


def detect_format(
    data: bytes,
    format_tag: Optional[str] = None,
    filename: Optional[str] = None,
) -> str:
    """
    Decide between "dxf" and "dwg".

    Priority: explicit tag, then file suffix, then content sniffing. A
    ".dwg" upload that is really DXF text is treated as DXF.
    """
    fmt = None
    if format_tag:
        fmt = format_tag.lower().lstrip(".")
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormat(f"Unsupported drawing format: {format_tag}")
    elif filename:
        suffix = Path(filename).suffix.lower().lstrip(".")
        if suffix in SUPPORTED_FORMATS:
            fmt = suffix

    if fmt is None:
        if data[:4] == b"AC10":
            fmt = "dwg"
        elif _looks_like_dxf_text(data):
            fmt = "dxf"
        else:
            raise UnsupportedFormat("Unrecognized drawing format (expected DXF or DWG)")

    if fmt == "dwg" and data[:4] != b"AC10" and _looks_like_dxf_text(data):
        return "dxf"
    return fmt


_WORD_FLOORS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5}


def _ordinal(n: int) -> str:
    if 10 <= n % 100 <= 20:
        return f"{n}th"
    return f"{n}{ {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th') }"


def detect_floor_from_filename(filename: str) -> Optional[str]:
    """
    Guess the floor label from an upload name.

    "Ground_floor.dwg" -> "Ground", "First_floor.dwg" -> "1st",
    "level-3.dxf" -> "3rd". Returns None when nothing matches.
    """
    stem = Path(filename).stem.lower()
    tokens = [t for t in re.split(r"[\s_\-.]+", stem) if t]

    if "ground" in tokens or "gf" in tokens:
        return "Ground"
    if "basement" in tokens:
        return "Basement"

    for i, token in enumerate(tokens):
        if token in _WORD_FLOORS:
            return _ordinal(_WORD_FLOORS[token])
        match = re.fullmatch(r"(?:l|lvl|level|floor)?(\d+)(?:st|nd|rd|th)?(?:f|fl|floor)?", token)
        if not match:
            continue
        labelled = token != match.group(1) or (
            i > 0 and tokens[i - 1] in ("floor", "level", "lvl")
        ) or (i + 1 < len(tokens) and tokens[i + 1] in ("floor", "fl"))
        if labelled:
            return _ordinal(int(match.group(1)))
    return None


# ----------------------------------------------------------------------
# Group-code reader
# ----------------------------------------------------------------------
class _EntityRecord:
    """Accumulates group codes for one entity in the ENTITIES section."""

    def __init__(self, dxftype: str):
        self.dxftype = dxftype
        self.layer: Optional[str] = None
        self.points: dict[str, list[tuple[float, float]]] = {"10": [], "11": []}
        self.pending: dict[str, Optional[float]] = {"10": None, "11": None}
        self.flags = 0
        self.values: dict[str, float] = {}

    def feed(self, code: str, value: str) -> None:
        if code == "8":
            self.layer = value
            return
        try:
            if code in ("10", "11"):
                self.pending[code] = float(value)
            elif code in ("20", "21"):
                x_code = "10" if code == "20" else "11"
                x = self.pending[x_code]
                if x is not None:
                    self.points[x_code].append((x, float(value)))
                    self.pending[x_code] = None
            elif code == "70":
                self.flags = int(value)
            elif code in ("40", "50", "51"):
                self.values[code] = float(value)
        except ValueError:
            pass

    def to_raw(self) -> dict[str, Any]:
        raw: dict[str, Any] = {"type": self.dxftype, "layer": self.layer or "0"}
        p10, p11 = self.points["10"], self.points["11"]
        if self.dxftype == "LINE":
            raw["start"] = p10[0] if p10 else None
            raw["end"] = p11[0] if p11 else None
        elif self.dxftype in ("LWPOLYLINE", "POLYLINE"):
            raw["vertices"] = list(p10)
            raw["closed"] = bool(self.flags & 1)
        elif self.dxftype in ("ARC", "CIRCLE"):
            raw["center"] = p10[0] if p10 else None
            raw["radius"] = self.values.get("40")
            if self.dxftype == "ARC":
                raw["start_angle"] = self.values.get("50")
                raw["end_angle"] = self.values.get("51")
        elif self.dxftype == "SPLINE":
            raw["control_points"] = list(p10)
            raw["fit_points"] = list(p11)
        return raw


def _pairs(text: str):
    lines = text.splitlines()
    for i in range(0, len(lines) - 1, 2):
        yield lines[i].strip(), lines[i + 1].strip()


def has_entities_section(text: str) -> bool:
    previous = None
    for code, value in _pairs(text):
        if code == "2" and value == "ENTITIES" and previous == ("0", "SECTION"):
            return True
        previous = (code, value)
    return False


def read_dxf_text(text: str) -> tuple[list[dict], str, list[str]]:
    """
    Read DXF text with a plain group-code scanner.

    Returns (raw_entities, units, layer_names).
    """
    raw_entities: list[dict] = []
    layers: list[str] = []
    units = "unitless"

    section: Optional[str] = None
    expect_section_name = False
    header_var: Optional[str] = None
    in_layer_record = False
    current: Optional[_EntityRecord] = None
    polyline: Optional[_EntityRecord] = None
    found_entities = False

    def finish(record: Optional[_EntityRecord]) -> None:
        nonlocal polyline
        if record is None:
            return
        if record.dxftype == "VERTEX":
            if polyline is not None and record.points["10"]:
                polyline.points["10"].append(record.points["10"][0])
            return
        if record.dxftype == "POLYLINE":
            # Vertices follow as VERTEX entities until SEQEND; the header's
            # own 10/20 point is an elevation placeholder, not a vertex
            record.points["10"] = []
            polyline = record
            return
        if record.dxftype == "SEQEND":
            if polyline is not None:
                raw_entities.append(polyline.to_raw())
                polyline = None
            return
        raw_entities.append(record.to_raw())

    for code, value in _pairs(text):
        if code == "0" and value == "SECTION":
            expect_section_name = True
            continue
        if expect_section_name and code == "2":
            section = value
            expect_section_name = False
            found_entities = found_entities or section == "ENTITIES"
            continue
        if code == "0" and value == "ENDSEC":
            if section == "ENTITIES":
                finish(current)
                current = None
            section = None
            continue

        if section == "HEADER":
            if code == "9":
                header_var = value
            elif header_var == "$INSUNITS" and code == "70":
                try:
                    units = UNITS_MAP.get(int(value), "unitless")
                except ValueError:
                    pass
        elif section == "TABLES":
            if code == "0":
                in_layer_record = value == "LAYER"
            elif code == "2" and in_layer_record:
                layers.append(value)
                in_layer_record = False
        elif section == "ENTITIES":
            if code == "0":
                finish(current)
                current = _EntityRecord(value.upper())
            elif current is not None:
                current.feed(code, value)

    if not found_entities:
        raise ParseError("No ENTITIES section found in drawing")
    if polyline is not None:
        raw_entities.append(polyline.to_raw())
    return raw_entities, units, layers


# ----------------------------------------------------------------------
# ezdxf reader
# ----------------------------------------------------------------------
def _ezdxf_raw(entity) -> dict[str, Any]:
    dxftype = entity.dxftype()
    raw: dict[str, Any] = {"type": dxftype, "layer": entity.dxf.get("layer", "0")}
    if dxftype == "LINE":
        raw["start"] = entity.dxf.start
        raw["end"] = entity.dxf.end
    elif dxftype == "LWPOLYLINE":
        raw["vertices"] = list(entity.get_points("xy"))
        raw["closed"] = entity.closed
    elif dxftype == "POLYLINE":
        raw["vertices"] = list(entity.points())
        raw["closed"] = entity.is_closed
    elif dxftype in ("ARC", "CIRCLE"):
        raw["center"] = entity.dxf.center
        raw["radius"] = entity.dxf.radius
        if dxftype == "ARC":
            raw["start_angle"] = entity.dxf.start_angle
            raw["end_angle"] = entity.dxf.end_angle
    elif dxftype == "SPLINE":
        raw["control_points"] = list(entity.control_points)
        raw["fit_points"] = list(entity.fit_points)
    return raw


def read_dxf_ezdxf(text: str) -> tuple[list[dict], str, list[str]]:
    """Read DXF text with ezdxf, recovering from structure errors."""
    try:
        doc = ezdxf.read(io.StringIO(text))
    except DXFStructureError:
        doc, auditor = recover.read(io.BytesIO(text.encode("utf-8", errors="ignore")))
        if auditor.has_errors:
            logger.warning("Recovered DXF with %d unfixed errors", len(auditor.errors))

    insunits = doc.header.get("$INSUNITS", 0)
    units = UNITS_MAP.get(insunits, "unitless")
    layers = [layer.dxf.name for layer in doc.layers]
    raw_entities = [_ezdxf_raw(entity) for entity in doc.modelspace()]
    return raw_entities, units, layers


def parse_dxf(text: str, source_format: str = "dxf", use_ezdxf: bool = True) -> CadDocument:
    """Parse DXF text into a CadDocument."""
    if not has_entities_section(text):
        raise ParseError("No ENTITIES section found in drawing")

    result = None
    if use_ezdxf:
        try:
            result = read_dxf_ezdxf(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("ezdxf could not read drawing (%s), falling back to text parsing", exc)
    if result is None:
        result = read_dxf_text(text)

    raw_entities, units, layers = result
    entities, skipped = coerce_entities(raw_entities)
    for item in skipped:
        logger.debug("Dropped entity #%d %s: %s", item.index, item.entity_type, item.reason)
    if skipped:
        logger.info("Parsed %d entities, dropped %d", len(entities), len(skipped))

    return CadDocument(
        entities=tuple(entities),
        skipped=tuple(skipped),
        source_format=source_format,
        units=units,
        layers=tuple(layers),
    )


# ----------------------------------------------------------------------
# Ingestor
# ----------------------------------------------------------------------
class CadIngestor:
    """
    Decodes uploaded drawings into CadDocuments.

    Parsing identical bytes twice returns the same document (memoized by
    content digest and format).
    """

    CACHE_SIZE = 16

    def __init__(
        self,
        converter: Optional[DwgConverter] = None,
        max_bytes: Optional[int] = None,
        use_ezdxf: bool = True,
    ):
        settings = get_settings()
        self.converter = converter or DwgConverter(
            settings.dwg_converter_cmd, timeout=settings.dwg_converter_timeout
        )
        self.max_bytes = max_bytes if max_bytes is not None else settings.max_upload_bytes
        self.use_ezdxf = use_ezdxf
        self.state = IngestState.IDLE
        self.last_error: Optional[FloorPlanError] = None
        self._cache: OrderedDict[tuple[str, str], CadDocument] = OrderedDict()

    def ingest(
        self,
        data: Union[bytes, str],
        format_tag: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> CadDocument:
        """
        Decode a drawing.

        Raises:
            ParseError: malformed or oversized content, or any unexpected
                reader failure.
            UnsupportedFormat: unknown format, or DWG with no converter.
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        self.state = IngestState.PARSING
        self.last_error = None
        try:
            document = self._ingest(data, format_tag, filename)
        except FloorPlanError as exc:
            self.state = IngestState.FAILED
            self.last_error = exc
            logger.warning("Could not ingest %s: %s", filename or "drawing", exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected error while ingesting %s", filename or "drawing")
            error = ParseError(f"Unexpected error while reading drawing: {exc!r}")
            self.state = IngestState.FAILED
            self.last_error = error
            raise error from exc
        self.state = IngestState.PARSED
        return document

    def _ingest(self, data: bytes, format_tag: Optional[str], filename: Optional[str]) -> CadDocument:
        if len(data) > self.max_bytes:
            raise ParseError(
                f"Drawing is {len(data)} bytes, larger than the {self.max_bytes} byte limit"
            )
        if not data.strip():
            raise ParseError("Drawing is empty")

        fmt = detect_format(data, format_tag=format_tag, filename=filename)
        key = (hashlib.sha256(data).hexdigest(), fmt)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        if fmt == "dwg":
            text = self.converter.convert(data, name=filename or "drawing.dwg")
        else:
            text = data.decode("utf-8", errors="ignore")

        document = parse_dxf(text, source_format=fmt, use_ezdxf=self.use_ezdxf)
        logger.info(
            "Ingested %s: %d entities (%s)", filename or fmt.upper(), len(document.entities), document.units
        )

        self._cache[key] = document
        while len(self._cache) > self.CACHE_SIZE:
            self._cache.popitem(last=False)
        return document
