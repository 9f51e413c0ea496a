"""SimulationEngine — the main tick loop.

Owns all top-level simulation state and advances it in the canonical
tick order:

1. Update environment (clock, weather, rain intensity)
2. Update surface water (basin volumes, per-cell water level)
3. Cycle the soil (mineralisation, rain, evaporation, drainage)
4. Advance flora (growth, competition, reproduction, decomposition)
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import structlog
from numpy.random import Generator

from terraflora.flora.lifecycle import FloraEngine, FloraTickStats
from terraflora.flora.seeding import generate_forests, seed_species
from terraflora.flora.species import SpeciesRegistry
from terraflora.simulation.config import SimulationConfig
from terraflora.world.environment import Environment
from terraflora.world.lakes import update_surface_water
from terraflora.world.world import World

logger = structlog.get_logger(__name__)


@dataclass
class SimulationEngine:
    """Drives the simulation forward tick by tick.

    Attributes:
        config: Loaded simulation configuration.
        registry: Plant species catalogue.
        world: Terrain, soil, environment and flora.
        flora: The flora lifecycle engine.
        rng: Master seeded random generator.
        tick: Current tick count.
        populate: Whether to place the configured populations and
            forests when the world is built.
    """

    config: SimulationConfig
    registry: SpeciesRegistry | None = None
    populate: bool = True
    world: World = field(init=False)
    flora: FloraEngine = field(init=False)
    rng: Generator = field(init=False)
    tick: int = 0

    def __post_init__(self) -> None:
        """Build world, species registry, flora engine and RNG from config."""
        self.rng = np.random.default_rng(self.config.seed)
        if self.registry is None:
            self.registry = SpeciesRegistry.from_yaml(self.config.species_file)

        self.world = World.generate(
            self.config.terrain,
            self.config.seed,
            environment=Environment.create(self.rng, self.config.start_hour),
            lakes_enabled=self.config.hydrology.lakes_enabled,
        )
        self.flora = FloraEngine(
            registry=self.registry,
            config=self.config.flora,
            rng=self.rng,
        )
        if self.populate:
            self._populate()

    def _populate(self) -> None:
        for population in self.config.populations:
            seed_species(self.world, self.registry, population, self.rng)
        for forest in self.config.forests:
            generate_forests(self.world, self.registry, forest, self.rng)
        logger.info("world_populated", plants=len(self.world.plants))

    @property
    def environment(self) -> Environment:
        """Shortcut to the world's environment."""
        return self.world.environment

    def step(self, dt: float = 1.0) -> FloraTickStats:
        """Advance the simulation by one tick of ``dt`` sim-seconds.

        Follows the canonical tick order:
        1. Environment
        2. Surface water
        3. Soil cycle
        4. Flora

        Returns:
            Flora event counts for this tick.
        """
        world = self.world

        # 1. Update environment
        world.environment.update(dt, self.rng)

        # 2. Surface water
        if world.depressions is not None and world.elevation is not None:
            update_surface_water(
                world.depressions,
                world.soil,
                world.elevation,
                world.environment.rain_intensity,
                dt,
                self.config.hydrology,
            )

        # 3. Soil cycle
        world.soil.cycle(
            dt,
            world.environment,
            flow=world.flow,
            elevation=world.elevation,
            config=self.config.soil,
        )

        # 4. Flora
        stats = self.flora.advance(world, dt)

        self.tick += 1
        return stats

    def run(self, ticks: int, dt: float = 1.0) -> None:
        """Run the simulation for a fixed number of ticks.

        Args:
            ticks: Number of ticks to advance.
            dt: Sim-seconds per tick.
        """
        for _ in range(ticks):
            self.step(dt)
