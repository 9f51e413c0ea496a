"""Flora lifecycle — growth, competition, reproduction and death of plants.

Each call to ``FloraEngine.advance`` runs one flora tick:

1. Rebuild the spatial index of living plants.
2. Every ``canopy_interval`` sim-seconds, recompute sun exposure from
   tree canopies.
3. For every plant of a registered species: age it, score the local
   soil, handle seed dormancy, drowning, health, growth with crowding
   and soil draw-down, leaf litter, seed dispersal, fruiting, stage
   and the post-death fade into decomposition.
4. Age fruits and rot the expired ones into the soil.

Soil fertility is the single scalar driving both health and growth, so
anything that changes the soil (draw-down, litter, canopy shade,
decomposition) feeds back into every plant nearby.
"""

from __future__ import annotations

import math
from collections.abc import Callable
from dataclasses import dataclass, field

import structlog
from numpy.random import Generator

from terraflora.flora.plant import GROWING_MAX_GROWTH, Fruit, GrowthStage, Plant, compute_stage
from terraflora.flora.spatial import SpatialIndex, build_spatial_index
from terraflora.flora.species import PlantSpecies, SpeciesRegistry
from terraflora.simulation.config import FloraConfig
from terraflora.world.environment import SECONDS_PER_DAY
from terraflora.world.soil import SoilGrid, SoilProperty, compute_fertility
from terraflora.world.world import World

logger = structlog.get_logger(__name__)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def disc_cells(soil: SoilGrid, x: float, y: float, radius: int) -> list[tuple[int, int, float]]:
    """Return in-grid cells within ``radius + 0.5`` cells of a world point.

    Args:
        soil: The grid.
        x: World x of the centre.
        y: World y of the centre.
        radius: Radius in cells.

    Returns:
        ``(row, col, distance)`` triples, distance in cells.
    """
    center_col = math.floor((x - soil.origin_x) / soil.cell_size)
    center_row = math.floor((y - soil.origin_y) / soil.cell_size)
    cells: list[tuple[int, int, float]] = []
    for dr in range(-radius, radius + 1):
        row = center_row + dr
        if row < 0 or row >= soil.rows:
            continue
        for dc in range(-radius, radius + 1):
            col = center_col + dc
            if col < 0 or col >= soil.cols:
                continue
            dist = math.sqrt(dc * dc + dr * dr)
            if dist <= radius + 0.5:
                cells.append((row, col, dist))
    return cells


@dataclass
class FloraTickStats:
    """What happened during one flora tick."""

    germinated: int = 0
    seeds_failed: int = 0
    seeds_dropped: int = 0
    fruits_dropped: int = 0
    fruits_rotted: int = 0
    matured: int = 0
    died: int = 0
    decomposed: int = 0


@dataclass
class FloraEngine:
    """Advances every plant and fruit of a world.

    Attributes:
        registry: Species definitions; plants of unknown species are
            left untouched.
        config: Growth and reproduction tuning.
        rng: Random source for dispersal angles and distances.
        ids: Entity id generator; defaults to ``World.next_id``.
        canopy_timer: Sim-seconds since the last canopy pass.
    """

    registry: SpeciesRegistry
    config: FloraConfig = field(default_factory=FloraConfig)
    rng: Generator | None = None
    ids: Callable[[], int] | None = None
    canopy_timer: float = 0.0

    def advance(self, world: World, dt: float) -> FloraTickStats:
        """Advance all flora by ``dt`` sim-seconds.

        Mutates plants and fruits in place, appends new seeds and
        fruits, and removes decomposed plants and rotten fruits.

        Args:
            world: The world to update.
            dt: Sim-seconds elapsed.

        Returns:
            Counts of the events of this tick.
        """
        cfg = self.config
        stats = FloraTickStats()
        index = build_spatial_index(world.plants, cfg.spatial_cell_size)

        self.canopy_timer += dt
        if self.canopy_timer >= cfg.canopy_interval:
            self.canopy_timer = 0.0
            self.update_canopy(world)

        removed: set[int] = set()
        # Entities created this tick join the list but wait for the next one
        for plant in list(world.plants):
            species = self.registry.get(plant.species_id)
            if species is None:
                continue
            if self._advance_plant(world, plant, species, index, dt, stats):
                removed.add(plant.plant_id)

        if removed:
            world.plants[:] = [p for p in world.plants if p.plant_id not in removed]

        self._age_fruits(world, dt, stats)
        return stats

    # -- per plant ---------------------------------------------------------

    def _advance_plant(
        self,
        world: World,
        plant: Plant,
        species: PlantSpecies,
        index: SpatialIndex,
        dt: float,
        stats: FloraTickStats,
    ) -> bool:
        """Run one tick for one plant; return True when it must be removed."""
        cfg = self.config
        soil = world.soil
        plant.age += dt

        sample = soil.sample_at(plant.x, plant.y)
        fertility = compute_fertility(
            sample,
            species.soil_needs,
            modifiers=species.soil_modifiers or None,
        )

        if plant.is_dormant:
            plant.dormancy_timer -= dt
            if fertility >= cfg.germination_min_fertility:
                plant.dormancy_timer = 0.0
                stats.germinated += 1
            elif plant.dormancy_timer <= 0:
                plant.health = 0.0
                plant.stage = GrowthStage.DEAD
                soil.add_property(plant.x, plant.y, SoilProperty.ORGANIC_MATTER, cfg.seed_death_organic)
                stats.seeds_failed += 1
                return True
            else:
                return False

        if world.lakes_enabled and plant.health > 0 and sample.water_level > cfg.drowning_depth:
            damage = cfg.health_stress_rate * 2.0 * sample.water_level * dt
            plant.health = max(0.0, plant.health - damage)

        self._update_health(plant, species, fertility, dt)

        prev_growth = plant.growth
        if plant.health > 0 and plant.growth < 1.0 and fertility >= cfg.fertility_comfort * 0.5:
            growth_fertility = min(1.0, fertility / cfg.growth_fertility_saturation)
            crowding = self.crowding_factor(plant, species, index)
            delta = species.growth_rate * growth_fertility * crowding * dt
            plant.growth = min(1.0, plant.growth + delta)
            self._consume_soil(soil, plant, species, delta, dt)

        if prev_growth < GROWING_MAX_GROWTH <= plant.growth:
            stats.matured += 1
            logger.debug(
                "plant_matured",
                plant_id=plant.plant_id,
                species=species.species_id,
                age_days=round(plant.age / SECONDS_PER_DAY, 1),
            )
        elif plant.health > 0 and plant.growth >= 1.0:
            # Also reached by a plant that tops out this tick; it pays the
            # growth draw-down above and the maintenance draw-down here.
            self._consume_soil(soil, plant, species, 0.0, dt)

        if plant.health > 0 and plant.growth > cfg.litter_min_growth:
            litter = cfg.litter_rate * (species.max_size / cfg.reference_size) * plant.growth
            soil.add_property(plant.x, plant.y, SoilProperty.ORGANIC_MATTER, litter * dt)
            soil.add_property(
                plant.x,
                plant.y,
                SoilProperty.MINERALS,
                litter * cfg.litter_mineral_fraction * dt,
            )

        if plant.health > 0:
            stats.seeds_dropped += self.disperse_seeds(world, plant, species, index, dt)
            stats.fruits_dropped += self.produce_fruits(world, plant, species, index, dt)

        was_dead = plant.stage is GrowthStage.DEAD
        # Stages only move forward; DEAD is the highest value
        plant.stage = max(plant.stage, compute_stage(plant.growth, plant.health))
        if plant.stage is GrowthStage.DEAD and not was_dead:
            stats.died += 1
            logger.debug(
                "plant_died",
                plant_id=plant.plant_id,
                species=species.species_id,
                age_days=round(plant.age / SECONDS_PER_DAY, 1),
                growth=round(plant.growth, 3),
                fertility=round(fertility, 3),
            )

        if plant.health <= 0:
            plant.stage = GrowthStage.DEAD
            plant.health -= cfg.death_fade_rate * dt
            if plant.health < cfg.decompose_health:
                self.decompose(soil, plant, species)
                stats.decomposed += 1
                return True
        return False

    def _update_health(
        self,
        plant: Plant,
        species: PlantSpecies,
        fertility: float,
        dt: float,
    ) -> None:
        """Regenerate above the comfort fertility, suffer below it."""
        if plant.health <= 0:
            return
        cfg = self.config
        comfort = cfg.fertility_comfort
        if fertility >= comfort:
            regen = (fertility - comfort) / (1.0 - comfort)
            plant.health = min(100.0, plant.health + cfg.health_regen_rate * regen * dt)
        else:
            stress = 1.0 - fertility / comfort
            damage = cfg.health_stress_rate * stress * (1.0 - species.resilience * 0.8) * dt
            plant.health = max(0.0, plant.health - damage)

    def crowding_factor(self, plant: Plant, species: PlantSpecies, index: SpatialIndex) -> float:
        """Return the growth multiplier from non-seedling neighbours.

        1.0 up to ``crowd_max_neighbors`` neighbours, falling linearly to
        0.0 at four times that count.
        """
        cfg = self.config
        radius = cfg.crowd_radius_base * (species.max_size / 10.0)
        neighbours = index.query(plant.x, plant.y, radius, exclude=plant)
        count = sum(1 for p in neighbours if p.growth >= cfg.crowd_min_growth)
        limit = cfg.crowd_max_neighbors
        if count <= limit:
            return 1.0
        return max(0.0, 1.0 - (count - limit) / (limit * 3))

    def _consume_soil(
        self,
        soil: SoilGrid,
        plant: Plant,
        species: PlantSpecies,
        growth_delta: float,
        dt: float,
    ) -> None:
        """Draw soil properties down in proportion to need weight and size."""
        cfg = self.config
        size_factor = 0.3 + plant.growth * 0.7
        for prop, need in species.soil_needs.items():
            if growth_delta > 0:
                drain = need.weight * (growth_delta * cfg.growth_drain_per_growth + cfg.growth_drain_rate * dt)
            else:
                drain = need.weight * cfg.growth_drain_rate * cfg.maintenance_fraction * dt
            if soil.get_property(plant.x, plant.y, prop) <= 0:
                continue
            soil.add_property(plant.x, plant.y, prop, -drain * size_factor)

    # -- reproduction ------------------------------------------------------

    def _random(self) -> float:
        assert self.rng is not None, "FloraEngine needs an rng to scatter seeds and fruits"
        return float(self.rng.random())

    def _scatter(self, x: float, y: float, radius: float) -> tuple[float, float]:
        """Pick a point uniformly by area within ``radius`` of ``(x, y)``."""
        angle = self._random() * 2.0 * math.pi
        dist = math.sqrt(self._random()) * radius
        return x + math.cos(angle) * dist, y + math.sin(angle) * dist

    def _can_drop(self, world: World, x: float, y: float) -> bool:
        if not world.is_in_bounds(x, y):
            return False
        return not (world.lakes_enabled and world.soil.water_level_at(x, y) > self.config.drowning_depth)

    def _new_id(self, world: World) -> int:
        return self.ids() if self.ids is not None else world.next_id()

    def disperse_seeds(
        self,
        world: World,
        plant: Plant,
        species: PlantSpecies,
        index: SpatialIndex,
        dt: float,
    ) -> int:
        """Scatter dormant seeds once the plant's seed timer runs out.

        Nothing is dropped when the area already holds ``density_cap``
        plants of the same species; the timer still resets.

        Returns:
            Number of seeds placed.
        """
        cfg = self.config
        spread = species.seed_spread
        if plant.growth < spread.min_growth or plant.health < cfg.seed_min_health:
            return 0

        plant.seed_timer -= dt
        if plant.seed_timer > 0:
            return 0
        plant.seed_timer = spread.interval_days * SECONDS_PER_DAY

        if index.count_species(species.species_id, plant.x, plant.y, spread.radius) >= cfg.density_cap:
            return 0

        placed = 0
        for _ in range(spread.seed_count):
            x, y = self._scatter(plant.x, plant.y, spread.radius)
            if not self._can_drop(world, x, y):
                continue
            world.plants.append(
                Plant(
                    plant_id=self._new_id(world),
                    species_id=species.species_id,
                    x=x,
                    y=y,
                    dormancy_timer=cfg.max_dormancy_days * SECONDS_PER_DAY,
                ),
            )
            placed += 1
        return placed

    def pollination_factor(self, plant: Plant, index: SpatialIndex) -> float:
        """Return the fruit bonus when a grown same-species neighbour is close."""
        cfg = self.config
        for other in index.query(plant.x, plant.y, cfg.pollination_radius, exclude=plant):
            if other.species_id == plant.species_id and other.growth >= cfg.pollination_min_growth:
                return cfg.pollination_bonus
        return 1.0

    def produce_fruits(
        self,
        world: World,
        plant: Plant,
        species: PlantSpecies,
        index: SpatialIndex,
        dt: float,
    ) -> int:
        """Drop fruits once the plant's fruit timer runs out.

        Returns:
            Number of fruits placed.
        """
        fruit = species.fruit
        if fruit is None:
            return 0
        cfg = self.config
        if plant.growth < fruit.min_growth or plant.health < cfg.fruit_min_health:
            return 0

        plant.fruit_timer -= dt
        if plant.fruit_timer > 0:
            return 0
        plant.fruit_timer = fruit.interval_days * SECONDS_PER_DAY

        health_factor = min(1.0, plant.health / cfg.fruit_health_reference)
        count = max(
            1,
            _round_half_up(fruit.fruits_per_cycle * health_factor * self.pollination_factor(plant, index)),
        )

        placed = 0
        for _ in range(count):
            x, y = self._scatter(plant.x, plant.y, fruit.drop_radius)
            if not self._can_drop(world, x, y):
                continue
            world.fruits.append(
                Fruit(
                    fruit_id=self._new_id(world),
                    species_id=species.species_id,
                    fruit_name=fruit.fruit_name,
                    x=x,
                    y=y,
                    nutrition=fruit.nutrition,
                    max_age=fruit.lifetime_days * SECONDS_PER_DAY,
                    parent_id=plant.plant_id,
                ),
            )
            placed += 1
        return placed

    # -- soil feedback -----------------------------------------------------

    def decompose(self, soil: SoilGrid, plant: Plant, species: PlantSpecies) -> None:
        """Return a dead plant's biomass to the soil around it.

        Organic matter and minerals are spread over a disc of cells,
        weighted towards the centre.
        """
        cfg = self.config
        biomass = plant.growth * (species.max_size / cfg.reference_size)
        radius = cfg.decompose_radius_cells
        cells = disc_cells(soil, plant.x, plant.y, radius)
        weights = [1.0 - dist / (radius + 1) for _, _, dist in cells]
        total = sum(weights)
        if total <= 0:
            return
        organic = cfg.decompose_organic * biomass
        minerals = cfg.decompose_minerals * biomass
        for (row, col, _), w in zip(cells, weights, strict=True):
            share = w / total
            soil.add_at(row, col, SoilProperty.ORGANIC_MATTER, organic * share)
            soil.add_at(row, col, SoilProperty.MINERALS, minerals * share)

    def update_canopy(self, world: World) -> None:
        """Reset sun exposure, then shade the ground under grown trees."""
        cfg = self.config
        soil = world.soil
        sun = soil.layers[SoilProperty.SUN_EXPOSURE]
        sun.fill(1.0)

        for plant in world.plants:
            if not plant.is_alive or plant.growth <= cfg.canopy_min_growth:
                continue
            species = self.registry.get(plant.species_id)
            if species is None or species.max_size < cfg.tree_min_size:
                continue
            size = species.max_size / cfg.reference_size * plant.growth
            radius = max(1, _round_half_up(cfg.canopy_max_radius_cells * size))
            shade = cfg.canopy_max_shade * size
            for row, col, dist in disc_cells(soil, plant.x, plant.y, radius):
                falloff = 1.0 - dist / (radius + 1)
                sun[row, col] = max(0.0, sun[row, col] - shade * falloff)

    def _age_fruits(self, world: World, dt: float, stats: FloraTickStats) -> None:
        """Age fruits; rotten ones become a little organic matter."""
        kept: list[Fruit] = []
        for fruit in world.fruits:
            fruit.age += dt
            if fruit.is_rotten:
                world.soil.add_property(
                    fruit.x,
                    fruit.y,
                    SoilProperty.ORGANIC_MATTER,
                    self.config.fruit_rot_organic * fruit.nutrition,
                )
                stats.fruits_rotted += 1
            else:
                kept.append(fruit)
        world.fruits[:] = kept
