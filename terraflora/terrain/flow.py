"""Flow accumulation — where surface water converges on the terrain.

Derived once from an ElevationField:

1. D8 flow direction: every cell drains into the one neighbour with the
   steepest strictly-downhill drop.  Cells without such a neighbour are
   local sinks.
2. Cells are visited from highest to lowest.  Each starts with an
   accumulation of 1 and hands its total to its flow target, so a
   cell's value is final before it is passed on.
3. ``log`` compresses the otherwise exponential range; the result is
   normalised by the global maximum.
4. Three passes of a 3x3 weighted blur (centre 4, edge 2, diagonal 1)
   widen single-cell drainage lines.
5. The blurred field is re-normalised to [0, 1].
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from terraflora.terrain.heightmap import ElevationField

# (d_col, d_row) in scan order; ties keep the first strictly-best drop
D8_OFFSETS: tuple[tuple[int, int], ...] = (
    (-1, -1),
    (0, -1),
    (1, -1),
    (-1, 0),
    (1, 0),
    (-1, 1),
    (0, 1),
    (1, 1),
)

NO_TARGET = -1  # sink marker inside flow-target arrays

_BLUR_PASSES = 3
_BLUR_KERNEL = (
    (1.0, 2.0, 1.0),
    (2.0, 4.0, 2.0),
    (1.0, 2.0, 1.0),
)


@dataclass(frozen=True, eq=False)
class FlowField:
    """Per-cell normalised flow accumulation.

    Attributes:
        cols: Grid columns (matches the elevation field).
        rows: Grid rows.
        cell_size: World units per cell.
        origin_x: World x of column 0.
        origin_y: World y of row 0.
        values: ``(rows, cols)`` scores in [0, 1]; 0 = ridge or peak,
            1 = deepest convergence.
        raw_accumulation: ``(rows, cols)`` upstream cell counts before
            the log/normalise/blur steps.  Every entry is >= 1.
    """

    cols: int
    rows: int
    cell_size: float
    origin_x: float
    origin_y: float
    values: NDArray[np.float64]
    raw_accumulation: NDArray[np.float64]


def d8_flow_targets(elevation: ElevationField) -> NDArray[np.int64]:
    """Compute the steepest-descent neighbour of every cell.

    Args:
        elevation: The terrain.

    Returns:
        Flat ``int64`` array of length ``cell_count``.  Entry ``i`` holds
        the flat index of cell ``i``'s downhill neighbour, or
        ``NO_TARGET`` for a local sink.
    """
    rows, cols = elevation.rows, elevation.cols
    heights = elevation.heights
    # Off-grid neighbours are +inf so they never win
    padded = np.pad(heights, 1, constant_values=np.inf)
    flat_index = np.arange(rows * cols, dtype=np.int64).reshape(rows, cols)

    best_drop = np.zeros((rows, cols), dtype=np.float64)
    best_target = np.full((rows, cols), NO_TARGET, dtype=np.int64)

    for dc, dr in D8_OFFSETS:
        neighbour = padded[1 + dr : 1 + dr + rows, 1 + dc : 1 + dc + cols]
        drop = heights - neighbour
        better = drop > best_drop
        best_drop = np.where(better, drop, best_drop)
        best_target = np.where(better, flat_index + dr * cols + dc, best_target)

    return best_target.ravel()


def downhill_neighbour(targets: NDArray[np.int64], index: int) -> int | None:
    """Return the flow target of a flat cell index, or None for a sink."""
    target = int(targets[index])
    return None if target == NO_TARGET else target


def accumulate(
    heights: NDArray[np.float64],
    targets: NDArray[np.int64],
) -> NDArray[np.float64]:
    """Route one unit of flow per cell downhill and sum it.

    Args:
        heights: ``(rows, cols)`` terrain heights.
        targets: Flat flow targets from :func:`d8_flow_targets`.

    Returns:
        Flat accumulation array; every entry is >= 1.
    """
    flat_heights = heights.ravel()
    accumulation = np.ones(flat_heights.size, dtype=np.float64)
    # Highest first; a cell only ever drains into a strictly lower one
    order = np.argsort(-flat_heights, kind="stable")

    for idx in order:
        target = targets[idx]
        if target != NO_TARGET:
            accumulation[target] += accumulation[idx]
    return accumulation


def weighted_blur(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Apply one pass of the 3x3 (4/2/1) blur.

    Weights are renormalised at the grid border so edge cells average
    only over neighbours that exist.

    Args:
        values: ``(rows, cols)`` input field.

    Returns:
        A new blurred array of the same shape.
    """
    rows, cols = values.shape
    padded = np.pad(values, 1)
    present = np.pad(np.ones_like(values), 1)

    total = np.zeros_like(values)
    weight = np.zeros_like(values)
    for dr in range(3):
        for dc in range(3):
            w = _BLUR_KERNEL[dr][dc]
            total += w * padded[dr : dr + rows, dc : dc + cols]
            weight += w * present[dr : dr + rows, dc : dc + cols]
    return total / weight


def compute_flow_field(elevation: ElevationField) -> FlowField:
    """Derive the normalised flow-accumulation field of a terrain.

    Args:
        elevation: The terrain.

    Returns:
        A FlowField on the same grid.
    """
    rows, cols = elevation.rows, elevation.cols
    targets = d8_flow_targets(elevation)
    raw = accumulate(elevation.heights, targets).reshape(rows, cols)

    logged = np.log(raw)
    max_log = float(logged.max())
    if max_log > 0:
        logged /= max_log

    blurred = logged
    for _ in range(_BLUR_PASSES):
        blurred = weighted_blur(blurred)

    lo = float(blurred.min())
    span = float(blurred.max()) - lo
    if span == 0:
        span = 1.0
    values = (blurred - lo) / span

    values.flags.writeable = False
    raw.flags.writeable = False
    return FlowField(
        cols=cols,
        rows=rows,
        cell_size=elevation.cell_size,
        origin_x=elevation.origin_x,
        origin_y=elevation.origin_y,
        values=values,
        raw_accumulation=raw,
    )


def flow_accumulation_at(flow: FlowField, x: float, y: float) -> float:
    """Return the flow score of the cell containing a world point.

    Out-of-bounds positions return 0.
    """
    col = math.floor((x - flow.origin_x) / flow.cell_size)
    row = math.floor((y - flow.origin_y) / flow.cell_size)
    if col < 0 or col >= flow.cols or row < 0 or row >= flow.rows:
        return 0.0
    return float(flow.values[row, col])
