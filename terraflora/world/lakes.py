"""Surface water — rain fills basins, lakes evaporate and overflow.

Each basin stores a single volume.  Per tick:

1. Rain adds volume proportional to the basin's catchment area.
2. Evaporation removes volume proportional to the wet surface.
3. Overflow cascades to the spill target for a bounded number of
   passes; water spilling off the map is lost.
4. The flat surface elevation of each basin is turned into a per-cell
   water level ``min(1, depth / max_lake_depth)``.
"""

from __future__ import annotations

import numpy as np

from terraflora.simulation.config import HydrologyConfig
from terraflora.terrain.depressions import DepressionMap, water_surface_elevation
from terraflora.terrain.heightmap import ElevationField
from terraflora.world.soil import SoilGrid


def cascade_overflow(depressions: DepressionMap, passes: int) -> float:
    """Move water above capacity to each basin's spill target.

    Args:
        depressions: The basins.
        passes: Maximum number of sweeps over all basins.

    Returns:
        Volume that left the map.
    """
    lost = 0.0
    basins = depressions.basins
    for _ in range(passes):
        moved = False
        for basin in basins:
            excess = basin.overflow
            if excess <= 0:
                continue
            basin.water_volume = basin.capacity
            if basin.spill_target is None:
                lost += excess
            else:
                basins[basin.spill_target].water_volume += excess
            moved = True
        if not moved:
            break
    return lost


def update_surface_water(
    depressions: DepressionMap,
    soil: SoilGrid,
    elevation: ElevationField,
    rain_intensity: float,
    dt: float,
    config: HydrologyConfig | None = None,
) -> None:
    """Advance basin volumes by ``dt`` and rewrite the soil water layer.

    Args:
        depressions: Basins of ``elevation``.
        soil: Soil grid on the same grid; its ``water_level`` is rewritten.
        elevation: The terrain.
        rain_intensity: Current rain intensity (0.0-1.0).
        dt: Sim-seconds elapsed.
        config: Hydrology rates.
    """
    cfg = config or HydrologyConfig()
    if not cfg.lakes_enabled:
        soil.water_level.fill(0.0)
        return

    assert elevation.heights.shape == soil.water_level.shape, "terrain grid does not match soil grid"
    cell_area = elevation.cell_area

    if rain_intensity > 0:
        for basin in depressions.basins:
            basin.water_volume += cfg.rain_depth_rate * rain_intensity * basin.cell_count * cell_area * dt

    for basin in depressions.basins:
        if basin.water_volume <= 0:
            continue
        wet = basin.wet_cell_count(water_surface_elevation(basin))
        surface_area = max(1, wet) * cell_area
        basin.water_volume = max(0.0, basin.water_volume - cfg.evaporation_depth_rate * surface_area * dt)

    cascade_overflow(depressions, cfg.overflow_passes)

    # NaN marks basins without water so their cells stay dry
    surfaces = np.full(len(depressions.basins), np.nan)
    for basin in depressions.basins:
        level = water_surface_elevation(basin)
        if level is not None:
            surfaces[basin.basin_id] = level
    cell_basin = depressions.cell_basin.reshape(soil.water_level.shape)
    in_basin = cell_basin >= 0
    surface = np.full(soil.water_level.shape, np.nan)
    surface[in_basin] = surfaces[cell_basin[in_basin]]

    depth = surface - elevation.heights
    wet_cells = np.nan_to_num(depth, nan=0.0) > 0
    soil.water_level.fill(0.0)
    soil.water_level[wet_cells] = np.minimum(1.0, depth[wet_cells] / cfg.max_lake_depth)
