"""World — the spatial container for the simulation.

The World bundles the static terrain derivatives (elevation, flow,
depressions), the dynamic soil grid, the environment and the flora
entities.  Plants and fruits live in separate lists; new entities take
their ids from the world's shared counter.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

import structlog

from terraflora.flora.plant import Fruit, Plant
from terraflora.simulation.config import TerrainConfig
from terraflora.terrain.depressions import DepressionMap, basin_at, build_depression_map
from terraflora.terrain.flow import FlowField, compute_flow_field
from terraflora.terrain.heightmap import ElevationField, generate_terrain
from terraflora.world.environment import Environment
from terraflora.world.soil import SoilGrid, create_soil_grid

logger = structlog.get_logger(__name__)


@dataclass(eq=False)
class World:
    """All spatial simulation state.

    Attributes:
        min_x: Western world bound.
        min_y: Northern world bound.
        max_x: Eastern world bound.
        max_y: Southern world bound.
        soil: Dynamic soil grid.
        elevation: Terrain, or None for flat scenario worlds.
        flow: Flow field derived from ``elevation``.
        depressions: Basins derived from ``elevation``.
        environment: Calendar and weather.
        plants: Every plant, alive or fading.
        fruits: Every dropped fruit.
        lakes_enabled: Whether standing water is modelled.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float
    soil: SoilGrid
    elevation: ElevationField | None = None
    flow: FlowField | None = None
    depressions: DepressionMap | None = None
    environment: Environment = field(default_factory=Environment)
    plants: list[Plant] = field(default_factory=list)
    fruits: list[Fruit] = field(default_factory=list)
    lakes_enabled: bool = True
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1), repr=False)

    @classmethod
    def generate(
        cls,
        terrain: TerrainConfig,
        seed: int,
        *,
        environment: Environment | None = None,
        lakes_enabled: bool = True,
    ) -> World:
        """Generate terrain, flow, depressions and soil for a new world.

        Args:
            terrain: World extent and terrain parameters.
            seed: Master seed; terrain uses ``seed + terrain.seed_offset``.
            environment: Initial environment (defaults to a fresh one).
            lakes_enabled: Whether standing water is modelled.

        Returns:
            A world without any plants.
        """
        elevation = generate_terrain(
            terrain.origin_x,
            terrain.origin_y,
            terrain.width,
            terrain.height,
            terrain.cell_size,
            terrain.max_elevation,
            seed + terrain.seed_offset,
        )
        soil = create_soil_grid(
            terrain.origin_x,
            terrain.origin_y,
            terrain.width,
            terrain.height,
            terrain.cell_size,
            seed,
            elevation,
        )
        return cls(
            min_x=terrain.origin_x,
            min_y=terrain.origin_y,
            max_x=terrain.origin_x + terrain.width,
            max_y=terrain.origin_y + terrain.height,
            soil=soil,
            elevation=elevation,
            flow=compute_flow_field(elevation),
            depressions=build_depression_map(elevation),
            environment=environment or Environment(),
            lakes_enabled=lakes_enabled,
        )

    @classmethod
    def from_soil(cls, soil: SoilGrid, **kwargs) -> World:
        """Wrap an existing soil grid, using its extent as the world bounds."""
        return cls(
            min_x=soil.origin_x,
            min_y=soil.origin_y,
            max_x=soil.origin_x + soil.cols * soil.cell_size,
            max_y=soil.origin_y + soil.rows * soil.cell_size,
            soil=soil,
            **kwargs,
        )

    def is_in_bounds(self, x: float, y: float) -> bool:
        """Return True if ``(x, y)`` lies inside the world (edges included)."""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y

    def next_id(self) -> int:
        """Return a fresh entity id."""
        return next(self._ids)

    def add_plant(self, plant: Plant) -> None:
        self.plants.append(plant)

    def living_plants(self) -> list[Plant]:
        """Return plants whose health is above zero."""
        return [p for p in self.plants if p.is_alive]

    def is_lake_bed(self, x: float, y: float) -> bool:
        """Return True if ``(x, y)`` lies in a basin cell below its spill level.

        Such cells flood once the basin fills, whatever the current water
        layer says.  Worlds without terrain have no lake beds.
        """
        if self.elevation is None or self.depressions is None:
            return False
        basin = basin_at(self.depressions, self.elevation, x, y)
        if basin is None:
            return False
        col, row = self.elevation.cell_of(x, y)
        return bool(self.elevation.heights[row, col] < basin.spill_elevation)
