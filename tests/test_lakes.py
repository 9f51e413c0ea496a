"""Tests for terraflora.world.lakes — basin filling and overflow."""

import numpy as np
import pytest

from terraflora.simulation.config import HydrologyConfig
from terraflora.terrain.depressions import build_depression_map
from terraflora.terrain.heightmap import ElevationField
from terraflora.world.lakes import cascade_overflow, update_surface_water
from terraflora.world.soil import SoilGrid

_RAIN_ONLY = HydrologyConfig(rain_depth_rate=0.01, evaporation_depth_rate=0.0)


class TestUpdateSurfaceWater:
    """Tests for the per-tick water balance."""

    def test_rain_fills_the_bowl(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        soil = SoilGrid.uniform(5, 5)
        update_surface_water(depressions, soil, bowl, 1.0, 10.0, _RAIN_ONLY)

        basin = depressions.basins[0]
        assert basin.water_volume == pytest.approx(2.5)
        # Surface at 3.5: the centre cell (height 1) is 2.5 deep
        assert soil.water_level[2, 2] == pytest.approx(2.5 / 20.0)
        assert soil.water_level.sum() == pytest.approx(soil.water_level[2, 2])

    def test_evaporation_drains(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        depressions.basins[0].water_volume = 2.0
        soil = SoilGrid.uniform(5, 5)
        config = HydrologyConfig(evaporation_depth_rate=0.01)
        update_surface_water(depressions, soil, bowl, 0.0, 10.0, config)
        assert depressions.basins[0].water_volume == pytest.approx(1.9)

    def test_evaporation_never_negative(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        depressions.basins[0].water_volume = 0.01
        soil = SoilGrid.uniform(5, 5)
        update_surface_water(depressions, soil, bowl, 0.0, 1000.0, HydrologyConfig(evaporation_depth_rate=1.0))
        assert depressions.basins[0].water_volume == 0.0
        assert not soil.water_level.any()

    def test_full_bowl_spills_off_map(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        basin = depressions.basins[0]
        basin.water_volume = basin.capacity + 30.0
        soil = SoilGrid.uniform(5, 5)
        update_surface_water(depressions, soil, bowl, 0.0, 1.0, HydrologyConfig(evaporation_depth_rate=0.0))
        assert basin.water_volume == pytest.approx(basin.capacity)
        # Surface at the rim: 9 deep at the centre, 5 deep in the ring
        assert soil.water_level[2, 2] == pytest.approx(9.0 / 20.0)
        assert soil.water_level[1, 1] == pytest.approx(5.0 / 20.0)
        assert soil.water_level[0, 0] == 0.0

    def test_lakes_disabled(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        soil = SoilGrid.uniform(5, 5)
        soil.water_level[:] = 0.4
        update_surface_water(depressions, soil, bowl, 1.0, 10.0, HydrologyConfig(lakes_enabled=False))
        assert not soil.water_level.any()
        assert depressions.basins[0].water_volume == 0.0

    def test_water_level_in_range(self, bowl: ElevationField) -> None:
        depressions = build_depression_map(bowl)
        soil = SoilGrid.uniform(5, 5)
        for _ in range(50):
            update_surface_water(depressions, soil, bowl, 1.0, 100.0, HydrologyConfig(max_lake_depth=2.0))
        assert soil.water_level.min() >= 0.0
        assert soil.water_level.max() == 1.0


class TestCascadeOverflow:
    """Tests for routing overflow between chained basins."""

    def test_overflow_moves_downstream(self, twin_bowls: ElevationField) -> None:
        depressions = build_depression_map(twin_bowls)
        left, right = depressions.basins
        right.water_volume = right.capacity + 7.0
        lost = cascade_overflow(depressions, 5)
        assert right.water_volume == pytest.approx(right.capacity)
        assert left.water_volume == pytest.approx(7.0)
        assert lost == 0.0

    def test_chain_spills_off_map(self, twin_bowls: ElevationField) -> None:
        depressions = build_depression_map(twin_bowls)
        left, right = depressions.basins
        right.water_volume = right.capacity + 20.0
        lost = cascade_overflow(depressions, 5)
        assert left.water_volume == pytest.approx(left.capacity)
        assert lost == pytest.approx(20.0 - left.capacity)

    def test_pass_limit(self, twin_bowls: ElevationField) -> None:
        depressions = build_depression_map(twin_bowls)
        left, right = depressions.basins
        right.water_volume = right.capacity + 20.0
        # One pass moves the excess into the left basin but no further
        assert cascade_overflow(depressions, 1) == 0.0
        assert left.water_volume == pytest.approx(20.0)

    def test_total_water_conserved(self, twin_bowls: ElevationField) -> None:
        depressions = build_depression_map(twin_bowls)
        for basin, volume in zip(depressions.basins, (30.0, 25.0), strict=True):
            basin.water_volume = volume
        before = sum(b.water_volume for b in depressions.basins)
        lost = cascade_overflow(depressions, 5)
        after = sum(b.water_volume for b in depressions.basins)
        assert after + lost == pytest.approx(before)
        assert np.all([b.water_volume <= b.capacity + 1e-9 for b in depressions.basins])
