"""Tests for terraflora.flora.species — definitions and the registry."""

from pathlib import Path

import pytest

from terraflora.flora.species import SpeciesRegistry
from terraflora.world.environment import SECONDS_PER_DAY
from terraflora.world.soil import SoilProperty, SoilType

_MINIMAL = """
species:
  moss:
    display_name: Moss
    color: "#335533"
    soil_needs:
      humidity: {ideal: 0.8, tolerance: 0.2, weight: 1.0}
    max_size: 2
    growth_days: 3
    resilience: 0.4
    seed_spread: {min_growth: 0.5, seed_count: 2, interval_days: 1, radius: 10}
    soil_modifiers: {peat: 1.2}
    unknown_key: ignored
"""


class TestBuiltInCatalogue:
    """Tests for the bundled species.yaml."""

    def test_all_species_loaded(self, registry: SpeciesRegistry) -> None:
        assert len(registry) == 13
        for species_id in ("oak", "wheat", "reed", "apple", "cherry", "mushroom"):
            assert species_id in registry

    def test_oak(self, registry: SpeciesRegistry) -> None:
        oak = registry.require("oak")
        assert oak.max_size == 18
        assert oak.growth_days == 10
        assert oak.soil_needs[SoilProperty.HUMIDITY].ideal == 0.55
        assert oak.seed_spread.seed_count == 4
        assert oak.fruit is not None
        assert oak.fruit.lifetime_days == 8
        assert oak.growth_rate == pytest.approx(1.0 / (10 * SECONDS_PER_DAY))

    def test_partial_needs(self, registry: SpeciesRegistry) -> None:
        wildflower = registry.require("wildflower")
        assert set(wildflower.soil_needs) == {SoilProperty.HUMIDITY, SoilProperty.SUN_EXPOSURE}

    def test_fruitless_species(self, registry: SpeciesRegistry) -> None:
        assert registry.require("reed").fruit is None

    def test_soil_modifiers(self, registry: SpeciesRegistry) -> None:
        assert registry.require("pine").soil_modifiers[SoilType.SAND] == 0.9
        assert registry.require("oak").soil_modifiers == {}


class TestSpeciesRegistry:
    """Tests for registry lookups."""

    def test_unknown_species(self, registry: SpeciesRegistry) -> None:
        assert registry.get("triffid") is None
        with pytest.raises(KeyError):
            registry.require("triffid")

    def test_registration_order(self, registry: SpeciesRegistry) -> None:
        ids = [s.species_id for s in registry.all()]
        assert ids[0] == "oak"
        assert ids == [s.species_id for s in registry]

    def test_register_replaces(self, registry: SpeciesRegistry) -> None:
        oak = registry.require("oak")
        empty = SpeciesRegistry()
        empty.register(oak)
        empty.register(oak)
        assert len(empty) == 1
        assert empty.get("oak") is oak

    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "species.yaml"
        path.write_text(_MINIMAL)
        registry = SpeciesRegistry.from_yaml(path)
        moss = registry.require("moss")
        assert moss.display_name == "Moss"
        assert moss.fruit is None
        assert moss.soil_modifiers == {SoilType.PEAT: 1.2}
        assert moss.mature_color == moss.color

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SpeciesRegistry.from_yaml(tmp_path / "nope.yaml")
