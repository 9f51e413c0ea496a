"""Species — static plant definitions and the registry that holds them.

A ``PlantSpecies`` is read-only at runtime.  Species are looked up by id
through a ``SpeciesRegistry`` owned by the simulation and handed to the
flora engine, so independent simulations never share species state.
The built-in catalogue lives in ``config/species.yaml``.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from terraflora.simulation.config import DEFAULT_SPECIES
from terraflora.world.environment import SECONDS_PER_DAY
from terraflora.world.soil import SoilNeed, SoilProperty, SoilType


@dataclass(frozen=True)
class SeedSpread:
    """Seed dispersal parameters.

    Attributes:
        min_growth: Growth needed before the plant produces seeds.
        seed_count: Seeds scattered per dispersal event.
        interval_days: Game days between dispersal events.
        radius: Maximum distance a seed lands from the parent.
    """

    min_growth: float
    seed_count: int
    interval_days: float
    radius: float


@dataclass(frozen=True)
class FruitProduction:
    """Fruit production parameters.

    Attributes:
        fruit_name: Display name of the fruit.
        fruit_color: Render colour.
        nutrition: Nutrition value when eaten (0.0-1.0).
        min_growth: Growth needed before the plant fruits.
        fruits_per_cycle: Fruits dropped per event at full health.
        interval_days: Game days between fruiting events.
        drop_radius: Maximum distance a fruit lands from the parent.
        lifetime_days: Game days before a dropped fruit rots.
    """

    fruit_name: str
    fruit_color: str
    nutrition: float
    min_growth: float
    fruits_per_cycle: int
    interval_days: float
    drop_radius: float
    lifetime_days: float


@dataclass(frozen=True)
class PlantSpecies:
    """A plant species definition.

    Attributes:
        species_id: Unique key, e.g. ``"oak"``.
        display_name: Human-readable name.
        soil_needs: Preferences per soil property; unlisted properties
            do not affect fertility.
        color: Render colour while young.
        mature_color: Render colour when fully grown.
        max_size: Render radius at full growth; also scales crowding,
            canopy, litter and decomposition.
        growth_days: Game days from seed to full growth in ideal soil.
        resilience: Resistance to poor soil (0.0-1.0).
        seed_spread: Seed dispersal parameters.
        fruit: Fruit production parameters, or None for fruitless species.
        soil_modifiers: Per-soil-type fertility multipliers overriding
            the soil type's base fertility.
    """

    species_id: str
    display_name: str
    soil_needs: dict[SoilProperty, SoilNeed]
    color: str
    mature_color: str
    max_size: float
    growth_days: float
    resilience: float
    seed_spread: SeedSpread
    fruit: FruitProduction | None = None
    soil_modifiers: dict[SoilType, float] = field(default_factory=dict)

    @property
    def growth_rate(self) -> float:
        """Growth per sim-second at full fertility with no crowding."""
        return 1.0 / (self.growth_days * SECONDS_PER_DAY)

    @classmethod
    def from_dict(cls, species_id: str, data: dict[str, Any]) -> PlantSpecies:
        """Build a species from one entry of the YAML catalogue."""
        needs = {
            SoilProperty(name): SoilNeed(
                ideal=float(need["ideal"]),
                tolerance=float(need["tolerance"]),
                weight=float(need["weight"]),
            )
            for name, need in data.get("soil_needs", {}).items()
        }
        fruit_data = data.get("fruit")
        fruit = None
        if fruit_data is not None:
            fruit = FruitProduction(
                fruit_name=fruit_data["fruit_name"],
                fruit_color=fruit_data.get("fruit_color", "#aa3333"),
                nutrition=float(fruit_data["nutrition"]),
                min_growth=float(fruit_data["min_growth"]),
                fruits_per_cycle=int(fruit_data["fruits_per_cycle"]),
                interval_days=float(fruit_data["interval_days"]),
                drop_radius=float(fruit_data["drop_radius"]),
                lifetime_days=float(fruit_data["lifetime_days"]),
            )
        seeds = data["seed_spread"]
        return cls(
            species_id=species_id,
            display_name=data.get("display_name", species_id),
            soil_needs=needs,
            color=data.get("color", "#4a7a3a"),
            mature_color=data.get("mature_color", data.get("color", "#2d5a1e")),
            max_size=float(data["max_size"]),
            growth_days=float(data["growth_days"]),
            resilience=float(data["resilience"]),
            seed_spread=SeedSpread(
                min_growth=float(seeds["min_growth"]),
                seed_count=int(seeds["seed_count"]),
                interval_days=float(seeds["interval_days"]),
                radius=float(seeds["radius"]),
            ),
            fruit=fruit,
            soil_modifiers={
                SoilType(name): float(value)
                for name, value in data.get("soil_modifiers", {}).items()
            },
        )


class SpeciesRegistry:
    """Id-keyed collection of plant species, in registration order."""

    def __init__(self, species: list[PlantSpecies] | None = None) -> None:
        self._species: dict[str, PlantSpecies] = {}
        for s in species or []:
            self.register(s)

    def register(self, species: PlantSpecies) -> None:
        """Add a species, replacing any previous one with the same id."""
        self._species[species.species_id] = species

    def get(self, species_id: str) -> PlantSpecies | None:
        """Return a species by id, or None if it is not registered."""
        return self._species.get(species_id)

    def require(self, species_id: str) -> PlantSpecies:
        """Return a species by id.

        Raises:
            KeyError: If the species is not registered.
        """
        try:
            return self._species[species_id]
        except KeyError:
            raise KeyError(f"unknown plant species: {species_id!r}") from None

    def all(self) -> list[PlantSpecies]:
        """Return every registered species."""
        return list(self._species.values())

    def __contains__(self, species_id: object) -> bool:
        return species_id in self._species

    def __iter__(self) -> Iterator[PlantSpecies]:
        return iter(self._species.values())

    def __len__(self) -> int:
        return len(self._species)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SpeciesRegistry:
        """Load a species catalogue.

        The file maps species ids to their definitions under a top-level
        ``species`` key.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        with Path(path).open("r") as f:
            data = yaml.safe_load(f) or {}
        return cls(
            [PlantSpecies.from_dict(sid, entry) for sid, entry in data.get("species", {}).items()],
        )

    @classmethod
    def default(cls) -> SpeciesRegistry:
        """Load the built-in catalogue."""
        return cls.from_yaml(DEFAULT_SPECIES)
