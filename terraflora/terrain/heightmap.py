"""Elevation field — the static terrain surface of the world.

The field is generated once from three OpenSimplex layers (large hills,
medium bumps, fine detail) and never mutated afterwards.  Grid point
``(col, row)`` sits at ``origin + (col, row) * cell_size`` so the field
shares its layout with the soil grid, the flow field and the depression
map.

Height queries between grid points use the same two-triangle split as
the ground mesh (diagonal from ``(col, row + 1)`` to ``(col + 1, row)``)
so that anything placed at ``height_at`` sits flush on rendered terrain.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from terraflora.terrain.noise import grid_axes, layer_seeds, layered_noise

logger = structlog.get_logger(__name__)

# Large hills, medium bumps, fine detail
_OCTAVE_SCALES = (0.0012, 0.005, 0.018)
_OCTAVE_WEIGHTS = (0.6, 0.3, 0.1)


@dataclass(frozen=True, eq=False)
class ElevationField:
    """Immutable grid of terrain heights.

    Attributes:
        cols: Number of grid columns.
        rows: Number of grid rows.
        cell_size: World units between adjacent grid points.
        origin_x: World x of column 0.
        origin_y: World y of row 0.
        heights: ``(rows, cols)`` array of heights in world units.
        min_height: Lowest value in ``heights``.
        max_height: Highest value in ``heights``.
    """

    cols: int
    rows: int
    cell_size: float
    origin_x: float
    origin_y: float
    heights: NDArray[np.float64]
    min_height: float
    max_height: float

    @classmethod
    def from_array(
        cls,
        heights: NDArray[np.float64] | list[list[float]],
        *,
        cell_size: float = 1.0,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
    ) -> ElevationField:
        """Wrap an existing ``(rows, cols)`` height array.

        Args:
            heights: Height values, row-major.
            cell_size: World units per cell.
            origin_x: World x of column 0.
            origin_y: World y of row 0.

        Returns:
            A read-only ElevationField over a copy of ``heights``.
        """
        data = np.array(heights, dtype=np.float64)
        assert data.ndim == 2, "heights must be a 2D array"
        data.flags.writeable = False
        rows, cols = data.shape
        return cls(
            cols=cols,
            rows=rows,
            cell_size=float(cell_size),
            origin_x=float(origin_x),
            origin_y=float(origin_y),
            heights=data,
            min_height=float(data.min()),
            max_height=float(data.max()),
        )

    @property
    def cell_count(self) -> int:
        """Total number of grid cells."""
        return self.cols * self.rows

    @property
    def cell_area(self) -> float:
        """World-space area of one cell."""
        return self.cell_size * self.cell_size

    def cell_of(self, x: float, y: float) -> tuple[int, int]:
        """Return the (unclamped) ``(col, row)`` containing a world point."""
        col = math.floor((x - self.origin_x) / self.cell_size)
        row = math.floor((y - self.origin_y) / self.cell_size)
        return col, row

    def is_border(self, col: int, row: int) -> bool:
        """Return True if ``(col, row)`` lies on the outer ring of the grid."""
        return col == 0 or row == 0 or col == self.cols - 1 or row == self.rows - 1


def generate_terrain(
    origin_x: float,
    origin_y: float,
    width: float,
    height: float,
    cell_size: float,
    max_elevation: float,
    seed: int,
) -> ElevationField:
    """Generate a deterministic elevation field from layered noise.

    The three layers are summed (weights 0.6 / 0.3 / 0.1), remapped from
    [-1, 1] to [0, 1] and scaled by ``max_elevation``.  The same seed and
    bounds always yield a bit-identical field.

    Args:
        origin_x: World x of the top-left grid point.
        origin_y: World y of the top-left grid point.
        width: World-space width to cover.
        height: World-space height to cover.
        cell_size: World units per grid cell.
        max_elevation: Height of a point where all layers peak.
        seed: Master seed for the noise layers.

    Returns:
        The generated ElevationField.
    """
    cols = math.ceil(width / cell_size)
    rows = math.ceil(height / cell_size)
    xs, ys = grid_axes(origin_x, origin_y, cols, rows, cell_size)

    seeds = layer_seeds(seed, len(_OCTAVE_SCALES))
    raw = layered_noise(xs, ys, seeds, _OCTAVE_SCALES, _OCTAVE_WEIGHTS)
    heights = (raw + 1.0) * 0.5 * max_elevation
    assert not np.isnan(heights).any(), "terrain noise produced NaN"

    field = ElevationField.from_array(
        heights,
        cell_size=cell_size,
        origin_x=origin_x,
        origin_y=origin_y,
    )
    logger.info(
        "terrain_generated",
        cols=cols,
        rows=rows,
        seed=seed,
        min_height=round(field.min_height, 2),
        max_height=round(field.max_height, 2),
    )
    return field


def height_at(field: ElevationField, x: float, y: float) -> float:
    """Return the interpolated terrain height at a world position.

    Triangle 1 (``tx + ty <= 1``) uses corners h00, h01, h10; triangle 2
    uses h01, h11, h10.  Points outside the interpolable area clamp to
    the nearest grid point.

    Args:
        field: The elevation field.
        x: World x.
        y: World y.

    Returns:
        Height in world units.
    """
    fx = (x - field.origin_x) / field.cell_size
    fy = (y - field.origin_y) / field.cell_size
    col = math.floor(fx)
    row = math.floor(fy)
    h = field.heights

    if col < 0 or col >= field.cols - 1 or row < 0 or row >= field.rows - 1:
        c = max(0, min(field.cols - 1, col))
        r = max(0, min(field.rows - 1, row))
        return float(h[r, c])

    tx = fx - col
    ty = fy - row
    h00 = h[row, col]
    h10 = h[row, col + 1]
    h01 = h[row + 1, col]
    h11 = h[row + 1, col + 1]

    if tx + ty <= 1.0:
        return float(h00 * (1.0 - tx - ty) + h01 * ty + h10 * tx)
    return float(h01 * (1.0 - tx) + h11 * (tx + ty - 1.0) + h10 * (1.0 - ty))


def normalized_height_at(field: ElevationField, x: float, y: float) -> float:
    """Return the height at a world position rescaled to [0, 1].

    A perfectly flat field yields 0 everywhere.
    """
    span = field.max_height - field.min_height
    if span <= 0:
        return 0.0
    return (height_at(field, x, y) - field.min_height) / span


def normalized_heights(field: ElevationField) -> NDArray[np.float64]:
    """Return the whole grid rescaled to [0, 1] (zeros for a flat field)."""
    span = field.max_height - field.min_height
    if span <= 0:
        return np.zeros_like(field.heights)
    return (field.heights - field.min_height) / span
