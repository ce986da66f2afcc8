from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

from .models import Position

# note footprint offsets: ~280 wide, ~250 tall
HALF_WIDTH = 140
CENTER_LIFT = 100
ANCHOR_LIFT = 20

# batch grid
START_X = 50
START_Y = 80
CELL_WIDTH = 300
CELL_HEIGHT = 320
CANVAS_MARGIN = 100


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int


@dataclass(frozen=True)
class GridSlot:
    col: int
    row: int
    position: Position


def pin_position(
    viewport: Viewport, anchor: Optional[tuple[float, float]] = None
) -> Position:
    """Where a single note lands when pinned, centered unless dropped at an anchor."""
    if anchor is not None:
        sx, sy = anchor
        return Position(x=sx - HALF_WIDTH, y=sy - ANCHOR_LIFT)
    return Position(
        x=viewport.width / 2 - HALF_WIDTH,
        y=viewport.height / 2 - CENTER_LIFT,
    )


def column_count(canvas_width: int) -> int:
    return max(1, (canvas_width - CANVAS_MARGIN) // CELL_WIDTH)


def batch_slots(count: int, canvas_width: int) -> list[GridSlot]:
    """
    Grid slots for `count` notes pinned together.

    Slots fill row by row. Each slot gets a small deterministic wobble
    (sin of the column, cos of the row) so the grid looks hand-placed
    while staying reproducible.
    """
    cols = column_count(canvas_width)
    slots = []
    for k in range(count):
        col = k % cols
        row = k // cols
        x = START_X + col * CELL_WIDTH
        y = START_Y + row * CELL_HEIGHT
        wobble_y = math.sin(col) * 30
        wobble_x = math.cos(row) * 10
        slots.append(GridSlot(col=col, row=row, position=Position(x=x + wobble_x, y=y + wobble_y)))
    return slots
