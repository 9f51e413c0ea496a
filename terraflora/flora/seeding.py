"""Initial plant placement — scattered populations and dense forests.

Both placers draw positions from the injected random generator and
reject spots whose soil or water does not suit the plants, so a run
with the same seed always starts from the same population.
"""

from __future__ import annotations

import math

import structlog
from numpy.random import Generator

from terraflora.flora.plant import Plant, compute_stage
from terraflora.flora.species import SpeciesRegistry
from terraflora.simulation.config import ForestConfig, PopulationConfig
from terraflora.world.environment import SECONDS_PER_DAY
from terraflora.world.soil import SoilProperty
from terraflora.world.world import World

logger = structlog.get_logger(__name__)

_ATTEMPTS_PER_PLANT = 10
_FOREST_CENTER_ATTEMPTS = 50
_FOREST_EDGE = 50.0


def _random_point(world: World, rng: Generator, margin: float) -> tuple[float, float]:
    x = float(rng.uniform(world.min_x + margin, world.max_x - margin))
    y = float(rng.uniform(world.min_y + margin, world.max_y - margin))
    return x, y


def seed_species(
    world: World,
    registry: SpeciesRegistry,
    population: PopulationConfig,
    rng: Generator,
    *,
    margin: float = 100.0,
) -> int:
    """Scatter plants of one species where soil humidity fits.

    Up to ten candidate spots per requested plant are tried; spots
    outside ``population.humidity_range`` are rejected.

    Args:
        world: World to populate.
        registry: Species catalogue.
        population: Species, count, humidity and growth ranges.
        rng: Seeded random generator.
        margin: Distance kept from the world edge.

    Returns:
        Number of plants placed.

    Raises:
        KeyError: If the species is not registered.
    """
    registry.require(population.species)
    lo_h, hi_h = population.humidity_range
    lo_g, hi_g = population.growth_range

    placed = 0
    attempts = 0
    while placed < population.count and attempts < population.count * _ATTEMPTS_PER_PLANT:
        attempts += 1
        x, y = _random_point(world, rng, margin)
        if world.soil.cell_index(x, y) is None:
            continue
        humidity = world.soil.get_property(x, y, SoilProperty.HUMIDITY)
        if humidity < lo_h or humidity > hi_h:
            continue

        growth = float(rng.uniform(lo_g, hi_g))
        world.add_plant(
            Plant(
                plant_id=world.next_id(),
                species_id=population.species,
                x=x,
                y=y,
                growth=growth,
                age=growth * SECONDS_PER_DAY * 5,
                stage=compute_stage(growth, 100.0),
                seed_timer=float(rng.random()) * SECONDS_PER_DAY * 2,
                fruit_timer=float(rng.random()) * SECONDS_PER_DAY * 2,
            ),
        )
        placed += 1

    logger.info("species_seeded", species=population.species, placed=placed, requested=population.count)
    return placed


def _is_dry(world: World, x: float, y: float) -> bool:
    """Reject standing water and, with lakes on, cells that will flood."""
    if world.soil.water_level_at(x, y) > 0:
        return False
    return not (world.lakes_enabled and world.is_lake_bed(x, y))


def generate_forests(
    world: World,
    registry: SpeciesRegistry,
    forest: ForestConfig,
    rng: Generator,
    *,
    margin: float = 150.0,
) -> int:
    """Plant dense clusters of well-grown trees.

    Each cluster centre must be dry land with humidity of at least
    ``forest.min_humidity``; trees are spread uniformly by area around
    it and skip water, lake beds and the outer world edge.

    Args:
        world: World to populate.
        registry: Species catalogue.
        forest: Cluster family definition.
        rng: Seeded random generator.
        margin: Distance kept between cluster centres and the world edge.

    Returns:
        Number of trees placed.

    Raises:
        KeyError: If any of the species is not registered.
    """
    for species_id in forest.species:
        registry.require(species_id)

    placed = 0
    for _ in range(forest.count):
        center = None
        for _ in range(_FOREST_CENTER_ATTEMPTS):
            cx, cy = _random_point(world, rng, margin)
            if world.soil.cell_index(cx, cy) is None or not _is_dry(world, cx, cy):
                continue
            if world.soil.get_property(cx, cy, SoilProperty.HUMIDITY) < forest.min_humidity:
                continue
            center = (cx, cy)
            break
        if center is None:
            continue

        for _ in range(forest.trees_per_forest):
            angle = float(rng.random()) * 2.0 * math.pi
            dist = math.sqrt(float(rng.random())) * forest.radius
            tx = center[0] + math.cos(angle) * dist
            ty = center[1] + math.sin(angle) * dist
            if not (world.min_x + _FOREST_EDGE <= tx <= world.max_x - _FOREST_EDGE):
                continue
            if not (world.min_y + _FOREST_EDGE <= ty <= world.max_y - _FOREST_EDGE):
                continue
            if not _is_dry(world, tx, ty):
                continue

            species_id = forest.species[int(rng.integers(0, len(forest.species)))]
            growth = 0.7 + float(rng.random()) * 0.3
            world.add_plant(
                Plant(
                    plant_id=world.next_id(),
                    species_id=species_id,
                    x=tx,
                    y=ty,
                    growth=growth,
                    age=growth * SECONDS_PER_DAY * 8,
                    stage=compute_stage(growth, 100.0),
                    seed_timer=float(rng.random()) * SECONDS_PER_DAY * 2,
                    fruit_timer=float(rng.random()) * SECONDS_PER_DAY * 2,
                ),
            )
            placed += 1

    logger.info("forests_generated", species=forest.species, clusters=forest.count, trees=placed)
    return placed
