"""
Test fixtures for floor-plan engine tests.

Provides a hand-written DXF payload for the group-code reader, an
ezdxf-built drawing for the full ingestion path, and zone layouts.
"""

import io

import ezdxf


# Hand-written DXF: header, two layers, and one entity of each kind plus a
# TEXT entity (unsupported) and an all-zero LINE (degenerate).
DXF_TEXT_FIXTURE = b"""0
SECTION
2
HEADER
9
$INSUNITS
70
6
0
ENDSEC
0
SECTION
2
TABLES
0
TABLE
2
LAYER
0
LAYER
2
WALLS
0
LAYER
2
DOORS
0
ENDTAB
0
ENDSEC
0
SECTION
2
ENTITIES
0
LINE
8
WALLS
10
0.0
20
0.0
11
100.0
21
0.0
0
LWPOLYLINE
8
WALLS
90
4
70
1
10
0.0
20
0.0
10
100.0
20
0.0
10
100.0
20
50.0
10
0.0
20
50.0
0
CIRCLE
8
DOORS
10
50.0
20
25.0
40
5.0
0
ARC
8
DOORS
10
20.0
20
20.0
40
10.0
50
0.0
51
90.0
0
POLYLINE
8
WALLS
66
1
10
0.0
20
0.0
70
0
0
VERTEX
8
WALLS
10
10.0
20
10.0
0
VERTEX
8
WALLS
10
30.0
20
10.0
0
VERTEX
8
WALLS
10
30.0
20
40.0
0
SEQEND
0
SPLINE
8
0
10
0.0
20
0.0
10
10.0
20
20.0
10
20.0
20
0.0
0
TEXT
8
0
10
5.0
20
5.0
1
Hello
0
LINE
8
0
10
0.0
20
0.0
11
0.0
21
0.0
0
ENDSEC
0
EOF
"""

# Same structure but without an ENTITIES section.
DXF_NO_ENTITIES = b"""0
SECTION
2
HEADER
9
$INSUNITS
70
4
0
ENDSEC
0
EOF
"""

# Signature of a binary DWG (AutoCAD 2018) followed by junk.
DWG_BYTES = b"AC1032" + bytes(range(256)) * 4


def make_dxf(insunits: int = 4) -> bytes:
    """
    Build a DXF with ezdxf: a wall line, a closed room outline, a column
    circle, a door swing arc and a label (TEXT, dropped at ingestion).

    Extents: x 0..1000, y 0..600.
    """
    doc = ezdxf.new("R2010")
    doc.header["$INSUNITS"] = insunits
    doc.layers.add("WALLS")
    doc.layers.add("DOORS")
    msp = doc.modelspace()
    msp.add_line((0, 0), (1000, 0), dxfattribs={"layer": "WALLS"})
    msp.add_lwpolyline(
        [(0, 0), (1000, 0), (1000, 600), (0, 600)],
        close=True,
        dxfattribs={"layer": "WALLS"},
    )
    msp.add_circle((500, 300), 50)
    msp.add_arc((200, 200), 100, 0, 90, dxfattribs={"layer": "DOORS"})
    msp.add_text("Lobby")
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue().encode("utf-8")


FIT_SPLINE_POINTS = [(0, 0), (100, 50), (200, 0), (300, 50)]


def make_fit_spline_dxf() -> bytes:
    """A single SPLINE defined by fit points only, as drawn interactively."""
    doc = ezdxf.new("R2010")
    doc.modelspace().add_spline(fit_points=FIT_SPLINE_POINTS, dxfattribs={"layer": "WALLS"})
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue().encode("utf-8")


def make_rooms_dxf() -> bytes:
    """
    Three rooms in a 100x40 outline, split by walls at x=10 and x=30:
    a 10x40 bathroom, a 20x40 bedroom with a door swing on its south wall
    and a 70x40 living room with two windows on its north wall.
    """
    doc = ezdxf.new("R2010")
    for name in ("WALLS", "DOORS", "WINDOWS"):
        doc.layers.add(name)
    msp = doc.modelspace()
    msp.add_lwpolyline(
        [(0, 0), (100, 0), (100, 40), (0, 40)],
        close=True,
        dxfattribs={"layer": "WALLS"},
    )
    msp.add_line((10, 0), (10, 40), dxfattribs={"layer": "WALLS"})
    msp.add_line((30, 0), (30, 40), dxfattribs={"layer": "WALLS"})
    msp.add_arc((20, 0), 8, 0, 90, dxfattribs={"layer": "DOORS"})
    msp.add_line((40, 40), (50, 40), dxfattribs={"layer": "WINDOWS"})
    msp.add_line((70, 40), (80, 40), dxfattribs={"layer": "WINDOWS"})
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue().encode("utf-8")


# Two side-by-side rooms sharing one edge.
PAIR_LAYOUT = [
    {"id": "A", "name": "Room A", "x": 0, "y": 0, "w": 100, "h": 100},
    {"id": "B", "name": "Room B", "x": 100, "y": 0, "w": 100, "h": 100},
]

# A 2x2 block plus a detached room and a corridor touching only a corner.
BLOCK_LAYOUT = [
    {"id": "nw", "x": 0, "y": 0, "w": 100, "h": 80, "type": "Office"},
    {"id": "ne", "x": 100, "y": 0, "w": 120, "h": 80, "type": "Office"},
    {"id": "sw", "x": 0, "y": 80, "w": 100, "h": 60, "type": "Storage"},
    {"id": "se", "x": 100, "y": 80, "w": 120, "h": 60, "type": "Lobby"},
    {"id": "island", "x": 400, "y": 300, "w": 50, "h": 50},
    {"id": "corner", "x": 220, "y": 140, "w": 40, "h": 40, "type": "Corridor"},
]
