"""
Random zone layout generators for property-style tests.
"""

import random

from floorplan.services.zones import Zone


def grid_layout(seed: int, floor: str = "Ground") -> list[Zone]:
    """
    Non-overlapping rectangles on a jagged grid with random holes. Cells
    of one row share edges; some cells are dropped so edges go missing.
    """
    rng = random.Random(seed)
    cols = [rng.randint(20, 120) for _ in range(rng.randint(1, 5))]
    rows = [rng.randint(20, 120) for _ in range(rng.randint(1, 4))]
    zones = []
    y = 0
    for r, height in enumerate(rows):
        x = 0
        for c, width in enumerate(cols):
            if rng.random() > 0.25:
                zones.append(Zone(id=f"z{seed}-{r}-{c}", x=x, y=y, w=width, h=height, floor=floor))
            x += width
        y += height
    rng.shuffle(zones)
    return zones


def scattered_layout(seed: int, floor: str = "Ground") -> list[Zone]:
    """
    Rectangles dropped into separate cells of a coarse grid, sometimes
    snapped to a cell edge so that neighbors touch partially.
    """
    rng = random.Random(seed)
    zones = []
    cell = 100
    for i in range(rng.randint(2, 10)):
        cx, cy = (i % 4) * cell, (i // 4) * cell
        if rng.random() < 0.5:
            x, w = cx, cell
        else:
            x = cx + rng.randint(0, 40)
            w = rng.randint(10, cell - (x - cx))
        y = cy + rng.randint(0, 40)
        h = rng.randint(10, cell - (y - cy))
        zones.append(Zone(id=f"s{seed}-{i}", x=x, y=y, w=w, h=h, floor=floor))
    return zones
