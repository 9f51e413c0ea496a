"""Tests for terraflora.simulation — engine and config loading."""

from pathlib import Path

import numpy as np
import pytest

from terraflora.flora.species import SpeciesRegistry
from terraflora.simulation.config import (
    DEFAULT_CONFIG,
    DEFAULT_SPECIES,
    HydrologyConfig,
    SimulationConfig,
)
from terraflora.simulation.engine import SimulationEngine
from terraflora.world.soil import SoilProperty


class TestSimulationConfig:
    """Tests for YAML config loading."""

    def test_defaults(self) -> None:
        cfg = SimulationConfig()
        assert cfg.seed == 42
        assert cfg.terrain.cell_size == 32.0
        assert cfg.terrain.seed_offset == 35
        assert cfg.hydrology.lakes_enabled
        assert cfg.species_file == DEFAULT_SPECIES

    def test_from_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "test.yaml"
        yaml_file.write_text(
            "seed: 99\n"
            "species_file: my_species.yaml\n"
            "terrain:\n"
            "  width: 320\n"
            "  bogus: 1\n"
            "flora:\n"
            "  density_cap: 3\n"
            "populations:\n"
            "  - {species: oak, count: 4, humidity_range: [0.2, 0.9]}\n",
        )
        cfg = SimulationConfig.from_yaml(yaml_file)
        assert cfg.seed == 99
        assert cfg.species_file == tmp_path / "my_species.yaml"
        assert cfg.terrain.width == 320
        assert cfg.terrain.height == 2400.0
        assert cfg.flora.density_cap == 3
        assert cfg.populations[0].humidity_range == (0.2, 0.9)
        assert cfg.populations[0].growth_range == (0.0, 1.0)
        assert cfg.forests == []

    def test_empty_yaml(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "empty.yaml"
        yaml_file.write_text("")
        cfg = SimulationConfig.from_yaml(yaml_file)
        assert cfg.seed == 42
        assert cfg.populations == []

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SimulationConfig.from_yaml(tmp_path / "missing.yaml")

    def test_bundled_default(self) -> None:
        cfg = SimulationConfig.from_yaml(DEFAULT_CONFIG)
        assert cfg.species_file == DEFAULT_SPECIES
        assert len(cfg.populations) == 13
        assert len(cfg.forests) == 5
        registry = SpeciesRegistry.from_yaml(cfg.species_file)
        for population in cfg.populations:
            assert population.species in registry
        for forest in cfg.forests:
            assert all(s in registry for s in forest.species)


class TestSimulationEngine:
    """Tests for the tick loop."""

    def test_engine_initialises(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        assert engine.tick == 0
        assert engine.world.soil.layers[SoilProperty.HUMIDITY].shape == (20, 20)
        assert engine.world.elevation is not None
        assert len(engine.world.plants) == 16
        assert engine.environment.hour == pytest.approx(8.0)

    def test_populate_off(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config, populate=False)
        assert engine.world.plants == []

    def test_step_advances_clock(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        start = engine.environment.time
        engine.step(2.0)
        assert engine.tick == 1
        assert engine.environment.time == pytest.approx(start + 2.0)

    def test_run_multiple_ticks(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        engine.run(ticks=10)
        assert engine.tick == 10

    def test_soil_stays_clamped(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        engine.run(ticks=200, dt=10.0)
        for layer in engine.world.soil.layers.values():
            assert layer.min() >= 0.0
            assert layer.max() <= 1.0
        assert engine.world.soil.water_level.min() >= 0.0
        assert engine.world.soil.water_level.max() <= 1.0

    def test_lakes_disabled(self, small_config: SimulationConfig) -> None:
        small_config.hydrology = HydrologyConfig(lakes_enabled=False)
        engine = SimulationEngine(config=small_config)
        engine.environment.rain_intensity = 1.0
        engine.run(ticks=20, dt=10.0)
        assert not engine.world.soil.water_level.any()

    def test_determinism(self, small_config: SimulationConfig) -> None:
        """Same seed must produce identical state after N ticks."""
        engine_a = SimulationEngine(config=small_config)
        engine_a.run(ticks=50, dt=5.0)

        engine_b = SimulationEngine(config=small_config)
        engine_b.run(ticks=50, dt=5.0)

        assert [(p.x, p.y, p.growth, p.health) for p in engine_a.world.plants] == [
            (p.x, p.y, p.growth, p.health) for p in engine_b.world.plants
        ]
        for prop in SoilProperty:
            assert np.array_equal(
                engine_a.world.soil.layers[prop],
                engine_b.world.soil.layers[prop],
            )
        assert engine_a.environment.weather == engine_b.environment.weather
