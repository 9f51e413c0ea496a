"""Shared fixtures for the Terraflora test suite."""

from __future__ import annotations

import numpy as np
import pytest
from numpy.random import Generator

from terraflora.flora.species import SpeciesRegistry
from terraflora.simulation.config import PopulationConfig, SimulationConfig, TerrainConfig
from terraflora.terrain.depressions import build_depression_map
from terraflora.terrain.heightmap import ElevationField
from terraflora.world.soil import SoilGrid
from terraflora.world.world import World

# 5x5 bowl: border 10, ring 5, centre 1.  Every cell drains to the centre.
BOWL = [
    [10, 10, 10, 10, 10],
    [10, 5, 5, 5, 10],
    [10, 5, 1, 5, 10],
    [10, 5, 5, 5, 10],
    [10, 10, 10, 10, 10],
]

# Two bowls separated by a ridge at column 3.  The left bowl spills off
# the map through the low border cell (row 2, col 0) at height 5; the
# right bowl spills over the ridge into the left one at height 6.
TWIN_BOWLS = [
    [10, 10, 10, 10, 10, 10, 10],
    [10, 4, 3, 6, 3, 4, 10],
    [5, 3, 1, 6, 2, 3, 10],
    [10, 4, 3, 6, 3, 4, 10],
    [10, 10, 10, 10, 10, 10, 10],
]


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def bowl() -> ElevationField:
    """A 5x5 single-basin terrain with unit cells."""
    return ElevationField.from_array(BOWL)


@pytest.fixture
def twin_bowls() -> ElevationField:
    """A 7x5 terrain holding two chained basins."""
    return ElevationField.from_array(TWIN_BOWLS)


@pytest.fixture
def registry() -> SpeciesRegistry:
    """The built-in species catalogue."""
    return SpeciesRegistry.default()


@pytest.fixture
def fertile_soil() -> SoilGrid:
    """A 100x100 grid of 10-unit loam cells with moderate values."""
    return SoilGrid.uniform(
        100,
        100,
        cell_size=10.0,
        humidity=0.6,
        minerals=0.5,
        organic_matter=0.5,
        sun_exposure=0.8,
    )


@pytest.fixture
def flat_world(fertile_soil: SoilGrid) -> World:
    """A terrain-less 1000x1000 world over ``fertile_soil``."""
    return World.from_soil(fertile_soil)


@pytest.fixture
def small_config() -> SimulationConfig:
    """A 20x20-cell world with a handful of oaks (no YAML file needed)."""
    return SimulationConfig(
        seed=777,
        terrain=TerrainConfig(origin_x=0.0, origin_y=0.0, width=640.0, height=640.0),
        populations=[
            PopulationConfig("oak", 8, growth_range=(0.2, 0.9)),
            PopulationConfig("wheat", 8, growth_range=(0.0, 0.5)),
        ],
    )


@pytest.fixture
def basin_world() -> World:
    """TWIN_BOWLS at 100-unit cells over moist soil, with its basins."""
    elevation = ElevationField.from_array(TWIN_BOWLS, cell_size=100.0)
    soil = SoilGrid.uniform(7, 5, cell_size=100.0, humidity=0.6)
    return World.from_soil(
        soil,
        elevation=elevation,
        depressions=build_depression_map(elevation),
    )
