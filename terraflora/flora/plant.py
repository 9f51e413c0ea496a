"""Plant and fruit entities.

Plants and fruits are kept in separate typed lists on the World.  Both
are plain mutable records; all behaviour lives in the flora engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class GrowthStage(IntEnum):
    """Discrete growth stage.

    Ordered so that a living plant's stage only ever increases; DEAD is
    last and reachable from any stage.
    """

    SEED = 0
    SPROUT = 1
    GROWING = 2
    MATURE = 3
    DEAD = 4


SEED_MAX_GROWTH = 0.02
SPROUT_MAX_GROWTH = 0.15
GROWING_MAX_GROWTH = 0.85


def compute_stage(growth: float, health: float) -> GrowthStage:
    """Map growth and health onto a GrowthStage."""
    if health <= 0:
        return GrowthStage.DEAD
    if growth < SEED_MAX_GROWTH:
        return GrowthStage.SEED
    if growth < SPROUT_MAX_GROWTH:
        return GrowthStage.SPROUT
    if growth < GROWING_MAX_GROWTH:
        return GrowthStage.GROWING
    return GrowthStage.MATURE


@dataclass(eq=False)
class Plant:
    """A single plant.

    Attributes:
        plant_id: Unique id.
        species_id: Key into the SpeciesRegistry.
        x: World x.
        y: World y.
        growth: Progress to full size (0.0-1.0).
        health: Hit points, at most 100.  Negative values count down the
            fade between death and decomposition.
        age: Sim-seconds since creation.
        stage: Current growth stage.
        seed_timer: Sim-seconds until the next seed dispersal attempt.
        fruit_timer: Sim-seconds until the next fruiting attempt.
        dormancy_timer: Sim-seconds a seed may still wait to germinate;
            0 once germinated.
        owner: Optional id of whoever planted it.
    """

    plant_id: int
    species_id: str
    x: float
    y: float
    growth: float = 0.0
    health: float = 100.0
    age: float = 0.0
    stage: GrowthStage = GrowthStage.SEED
    seed_timer: float = 0.0
    fruit_timer: float = 0.0
    dormancy_timer: float = 0.0
    owner: int | None = None

    @property
    def is_alive(self) -> bool:
        """Return True if health is above zero."""
        return self.health > 0

    @property
    def is_dormant(self) -> bool:
        """Return True for an ungerminated seed still waiting for soil."""
        return (
            self.stage is GrowthStage.SEED
            and self.growth < SEED_MAX_GROWTH
            and self.dormancy_timer > 0
        )


@dataclass(eq=False)
class Fruit:
    """A dropped fruit.

    Attributes:
        fruit_id: Unique id.
        species_id: Species of the parent plant.
        fruit_name: Display name.
        x: World x.
        y: World y.
        nutrition: Nutrition value when eaten.
        age: Sim-seconds since it dropped.
        max_age: Age at which it rots.
        parent_id: Id of the plant that produced it.
    """

    fruit_id: int
    species_id: str
    fruit_name: str
    x: float
    y: float
    nutrition: float
    age: float = 0.0
    max_age: float = 0.0
    parent_id: int | None = None

    @property
    def is_rotten(self) -> bool:
        return self.age >= self.max_age
