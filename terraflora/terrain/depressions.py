"""Depression map — closed basins that can hold lakes.

Every cell's D8 flow chain ends in a sink.  Sinks on the grid border are
edge drains (water leaves the modelled area); interior sinks become
basins.  For each basin we precompute:

- the spill point: the lowest saddle on its rim, taken over every
  boundary pair (cell in basin, cell outside) as ``max(hA, hB)``, and
  which basin (or the map edge) lies beyond it;
- a volume table over the floodable cells (strictly below the spill
  elevation) sorted by height.  As the surface rises from ``e[k-1]`` to
  ``e[k]`` exactly ``k`` cells are already under water and each gains
  the same depth, so ``cum[k] = cum[k-1] + k * (e[k] - e[k-1]) * area``.

At runtime only ``Basin.water_volume`` changes; the flat surface
elevation is recovered from it by binary search in the table.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.typing import NDArray

from terraflora.terrain.flow import D8_OFFSETS, NO_TARGET, d8_flow_targets
from terraflora.terrain.heightmap import ElevationField

logger = structlog.get_logger(__name__)

_NO_BASIN = -1
_IN_PROGRESS = -2


@dataclass(eq=False)
class Basin:
    """One closed interior drainage basin.

    Attributes:
        basin_id: Index in ``DepressionMap.basins``.
        sink_index: Flat index of the basin's lowest cell.
        spill_elevation: Rim height at which the basin overflows.
        spill_target: Basin receiving the overflow, or None when it
            spills off the map.
        cell_count: Number of cells draining into this basin.
        sorted_elevations: Floodable cell heights ascending, with the
            spill elevation appended as the last entry.
        cumulative_volumes: Water volume needed to raise the surface to
            each entry of ``sorted_elevations``.
        water_volume: Current stored volume.  May temporarily exceed
            ``capacity``; the excess is overflow for the caller to route.
    """

    basin_id: int
    sink_index: int
    spill_elevation: float
    spill_target: int | None
    cell_count: int
    sorted_elevations: NDArray[np.float64]
    cumulative_volumes: NDArray[np.float64]
    water_volume: float = 0.0

    @property
    def capacity(self) -> float:
        """Volume at which the surface reaches the spill elevation."""
        if self.cumulative_volumes.size == 0:
            return 0.0
        return float(self.cumulative_volumes[-1])

    @property
    def floodable_count(self) -> int:
        """Number of cells strictly below the spill elevation."""
        return max(0, self.sorted_elevations.size - 1)

    @property
    def overflow(self) -> float:
        """Stored volume above capacity (0 when not overflowing)."""
        return max(0.0, self.water_volume - self.capacity)

    def wet_cell_count(self, surface: float | None) -> int:
        """Count floodable cells lying strictly below a water surface."""
        if surface is None:
            return 0
        floodable = self.sorted_elevations[: self.floodable_count]
        return int(np.searchsorted(floodable, surface, side="left"))


@dataclass(eq=False)
class DepressionMap:
    """Basin membership for every cell plus the basins themselves.

    Attributes:
        cols: Grid columns.
        rows: Grid rows.
        cell_basin: Flat ``int64`` array; basin id per cell, -1 for cells
            that drain off the map.
        basins: All basins indexed by id.
    """

    cols: int
    rows: int
    cell_basin: NDArray[np.int64]
    basins: list[Basin] = field(default_factory=list)

    def basin_of(self, index: int) -> Basin | None:
        """Return the basin containing a flat cell index, if any."""
        basin_id = int(self.cell_basin[index])
        return None if basin_id == _NO_BASIN else self.basins[basin_id]


def _label_sinks(targets: NDArray[np.int64]) -> NDArray[np.int64]:
    """Map every cell to the terminal sink of its flow chain.

    Each chain is walked once; cells already labelled short-circuit the
    walk so the whole pass is linear in the cell count.
    """
    count = targets.size
    sink_of = np.full(count, _NO_BASIN, dtype=np.int64)

    for start in range(count):
        if sink_of[start] >= 0:
            continue
        chain: list[int] = []
        cur = start
        while sink_of[cur] == _NO_BASIN:
            chain.append(cur)
            sink_of[cur] = _IN_PROGRESS
            nxt = targets[cur]
            if nxt == NO_TARGET:
                break
            cur = int(nxt)
        # Either an already-labelled cell or the sink itself
        sink = int(sink_of[cur]) if sink_of[cur] >= 0 else cur
        sink_of[chain] = sink

    return sink_of


def volume_table(
    floodable_heights: NDArray[np.float64] | list[float],
    spill_elevation: float,
    cell_area: float,
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Build the sorted-elevation / cumulative-volume table of a basin.

    Args:
        floodable_heights: Heights of cells below the spill elevation.
        spill_elevation: Rim height, appended as the final entry.
        cell_area: World area of one cell.

    Returns:
        ``(sorted_elevations, cumulative_volumes)``, both of length
        ``len(floodable_heights) + 1``.
    """
    elevations = np.append(np.sort(np.asarray(floodable_heights, dtype=np.float64)), spill_elevation)
    steps = np.diff(elevations) * np.arange(1, elevations.size) * cell_area
    volumes = np.concatenate(([0.0], np.cumsum(steps)))
    return elevations, volumes


def _find_spill(
    cells: list[int],
    basin_id: int,
    heights: NDArray[np.float64],
    cell_basin: NDArray[np.int64],
    cols: int,
    rows: int,
) -> tuple[float, int | None]:
    """Return the lowest rim saddle of a basin and what lies beyond it."""
    spill = np.inf
    target: int | None = None

    for ci in cells:
        row, col = divmod(ci, cols)
        h = heights[ci]
        for dc, dr in D8_OFFSETS:
            nr, nc = row + dr, col + dc
            if nr < 0 or nr >= rows or nc < 0 or nc >= cols:
                # The cell itself is the saddle towards the map edge
                if h < spill:
                    spill, target = h, None
                continue
            ni = nr * cols + nc
            other = int(cell_basin[ni])
            if other == basin_id:
                continue
            saddle = max(h, heights[ni])
            if saddle < spill:
                spill = saddle
                target = None if other == _NO_BASIN else other

    return float(spill), target


def build_depression_map(elevation: ElevationField) -> DepressionMap:
    """Partition a terrain into interior basins with volume tables.

    Args:
        elevation: The terrain.

    Returns:
        The DepressionMap for ``elevation``.
    """
    rows, cols = elevation.rows, elevation.cols
    count = rows * cols
    heights = elevation.heights.ravel()
    targets = d8_flow_targets(elevation)
    sink_of = _label_sinks(targets)

    # Interior sinks become basins, numbered in scan order
    sink_to_basin: dict[int, int] = {}
    for idx in np.flatnonzero(targets == NO_TARGET):
        row, col = divmod(int(idx), cols)
        if not elevation.is_border(col, row):
            sink_to_basin[int(idx)] = len(sink_to_basin)

    cell_basin = np.full(count, _NO_BASIN, dtype=np.int64)
    members: list[list[int]] = [[] for _ in sink_to_basin]
    for idx in range(count):
        basin_id = sink_to_basin.get(int(sink_of[idx]))
        if basin_id is not None:
            cell_basin[idx] = basin_id
            members[basin_id].append(idx)

    basins: list[Basin] = []
    for basin_id, cells in enumerate(members):
        sink_index = min(cells, key=lambda i: heights[i])
        spill, target = _find_spill(cells, basin_id, heights, cell_basin, cols, rows)
        if np.isinf(spill):
            spill = float(heights[sink_index]) + 1.0

        cell_heights = heights[cells]
        elevations, volumes = volume_table(
            cell_heights[cell_heights < spill],
            spill,
            elevation.cell_area,
        )
        basins.append(
            Basin(
                basin_id=basin_id,
                sink_index=sink_index,
                spill_elevation=spill,
                spill_target=target,
                cell_count=len(cells),
                sorted_elevations=elevations,
                cumulative_volumes=volumes,
            ),
        )

    logger.info(
        "depressions_found",
        basins=len(basins),
        cols=cols,
        rows=rows,
        total_capacity=round(sum(b.capacity for b in basins), 1),
    )
    return DepressionMap(cols=cols, rows=rows, cell_basin=cell_basin, basins=basins)


def water_surface_elevation(basin: Basin, volume: float | None = None) -> float | None:
    """Return the flat water surface elevation for a stored volume.

    Volumes at or above capacity are clamped to capacity and yield the
    spill elevation; routing the excess is the caller's job.

    Args:
        basin: The basin.
        volume: Volume to look up; defaults to ``basin.water_volume``.

    Returns:
        The surface elevation, or None when the basin holds no water.
    """
    vol = basin.water_volume if volume is None else volume
    elevations = basin.sorted_elevations
    volumes = basin.cumulative_volumes
    if vol <= 0 or elevations.size == 0:
        return None

    vol = min(vol, basin.capacity)
    # First entry whose cumulative volume reaches vol
    hi = bisect.bisect_left(volumes, vol)
    if hi == 0:
        return float(elevations[0])
    if volumes[hi] == vol:
        return float(elevations[hi])

    prev_vol = volumes[hi - 1]
    next_vol = volumes[hi]
    prev_elev = elevations[hi - 1]
    if next_vol <= prev_vol:
        return float(prev_elev)

    t = (vol - prev_vol) / (next_vol - prev_vol)
    return float(prev_elev + t * (elevations[hi] - prev_elev))


def basin_at(
    depressions: DepressionMap,
    elevation: ElevationField,
    x: float,
    y: float,
) -> Basin | None:
    """Return the basin containing a world point, or None.

    Points outside the grid or in cells that drain off the map have no
    basin.
    """
    col, row = elevation.cell_of(x, y)
    if col < 0 or col >= depressions.cols or row < 0 or row >= depressions.rows:
        return None
    return depressions.basin_of(row * depressions.cols + col)
