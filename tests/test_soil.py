"""Tests for terraflora.world.soil."""

import numpy as np
import pytest

from terraflora.terrain.flow import compute_flow_field
from terraflora.terrain.heightmap import ElevationField
from terraflora.world.environment import Environment, Weather
from terraflora.world.soil import (
    SOIL_TYPE_CODES,
    SoilGrid,
    SoilNeed,
    SoilProperty,
    SoilSample,
    SoilType,
    classify_soil,
    compute_fertility,
    create_soil_grid,
)

_HUMIDITY_NEED = {SoilProperty.HUMIDITY: SoilNeed(ideal=0.5, tolerance=0.2, weight=1.0)}


class TestComputeFertility:
    """Tests for the per-sample fertility score."""

    def test_ideal_soil_scores_one(self) -> None:
        assert compute_fertility(SoilSample(humidity=0.5), _HUMIDITY_NEED) == 1.0

    def test_linear_falloff(self) -> None:
        assert compute_fertility(SoilSample(humidity=0.6), _HUMIDITY_NEED) == pytest.approx(0.5)
        assert compute_fertility(SoilSample(humidity=0.7), _HUMIDITY_NEED) == pytest.approx(0.0)
        assert compute_fertility(SoilSample(humidity=0.0), _HUMIDITY_NEED) == 0.0

    def test_weighted_mean(self) -> None:
        needs = {
            SoilProperty.HUMIDITY: SoilNeed(0.5, 0.2, 3.0),
            SoilProperty.MINERALS: SoilNeed(0.5, 0.2, 1.0),
        }
        sample = SoilSample(humidity=0.5, minerals=0.0)
        assert compute_fertility(sample, needs) == pytest.approx(0.75)

    def test_no_needs_scores_zero(self) -> None:
        assert compute_fertility(SoilSample(humidity=0.5), {}) == 0.0

    def test_soil_type_factor(self) -> None:
        sample = SoilSample(humidity=0.5, soil_type=SoilType.SAND)
        assert compute_fertility(sample, _HUMIDITY_NEED) == pytest.approx(0.7)
        assert compute_fertility(sample, _HUMIDITY_NEED, soil_type=SoilType.LOAM) == 1.0

    def test_species_modifier_overrides_type(self) -> None:
        sample = SoilSample(humidity=0.5, soil_type=SoilType.ROCK)
        assert compute_fertility(sample, _HUMIDITY_NEED, modifiers={SoilType.ROCK: 0.9}) == pytest.approx(0.9)


class TestClassifySoil:
    """Tests for soil-type rules."""

    def test_rules(self) -> None:
        humidity = np.array([[0.5, 0.8, 0.6, 0.2, 0.5]])
        minerals = np.array([[0.5, 0.5, 0.7, 0.5, 0.5]])
        elevation = np.array([[0.9, 0.1, 0.1, 0.1, 0.1]])
        codes = classify_soil(humidity, minerals, elevation)
        expected = [SoilType.ROCK, SoilType.PEAT, SoilType.CLAY, SoilType.SAND, SoilType.LOAM]
        assert codes.tolist() == [[SOIL_TYPE_CODES[t] for t in expected]]
        assert codes.dtype == np.int8

    def test_without_elevation(self) -> None:
        codes = classify_soil(np.array([[0.5]]), np.array([[0.5]]))
        assert codes[0, 0] == SOIL_TYPE_CODES[SoilType.LOAM]


class TestSoilGrid:
    """Tests for grid lookup and clamped writes."""

    def test_sample_at(self, fertile_soil: SoilGrid) -> None:
        sample = fertile_soil.sample_at(55.0, 55.0)
        assert sample.humidity == pytest.approx(0.6)
        assert sample.sun_exposure == pytest.approx(0.8)
        assert sample.soil_type is SoilType.LOAM
        assert sample.water_level == 0.0

    def test_out_of_bounds_reads(self, fertile_soil: SoilGrid) -> None:
        assert fertile_soil.cell_index(-1.0, 5.0) is None
        assert fertile_soil.sample_at(5000.0, 5.0) == SoilSample()
        assert fertile_soil.get_property(-1.0, -1.0, SoilProperty.MINERALS) == 0.0
        assert fertile_soil.water_level_at(-1.0, -1.0) == 0.0

    def test_out_of_bounds_writes_ignored(self, fertile_soil: SoilGrid) -> None:
        before = fertile_soil.layers[SoilProperty.HUMIDITY].copy()
        fertile_soil.set_property(-50.0, 10.0, SoilProperty.HUMIDITY, 0.0)
        fertile_soil.add_property(10.0, 5000.0, SoilProperty.HUMIDITY, -1.0)
        assert np.array_equal(fertile_soil.layers[SoilProperty.HUMIDITY], before)

    def test_writes_clamp(self, fertile_soil: SoilGrid) -> None:
        fertile_soil.add_property(5.0, 5.0, SoilProperty.MINERALS, 3.0)
        assert fertile_soil.get_property(5.0, 5.0, SoilProperty.MINERALS) == 1.0
        fertile_soil.add_property(5.0, 5.0, SoilProperty.MINERALS, -7.0)
        assert fertile_soil.get_property(5.0, 5.0, SoilProperty.MINERALS) == 0.0
        fertile_soil.set_property(5.0, 5.0, SoilProperty.ORGANIC_MATTER, 1.5)
        assert fertile_soil.get_property(5.0, 5.0, SoilProperty.ORGANIC_MATTER) == 1.0

    def test_cell_center(self, fertile_soil: SoilGrid) -> None:
        assert fertile_soil.cell_center(2, 3) == (35.0, 25.0)
        assert fertile_soil.cell_index(35.0, 25.0) == (2, 3)

    def test_fertility_map_matches_samples(self) -> None:
        soil = create_soil_grid(0.0, 0.0, 320.0, 320.0, 32.0, seed=4)
        needs = {
            SoilProperty.HUMIDITY: SoilNeed(0.55, 0.35, 1.0),
            SoilProperty.MINERALS: SoilNeed(0.5, 0.4, 0.6),
        }
        heat = soil.fertility_map(needs, {SoilType.SAND: 1.0})
        for row, col in [(0, 0), (3, 7), (9, 9)]:
            x, y = soil.cell_center(row, col)
            expected = compute_fertility(soil.sample_at(x, y), needs, modifiers={SoilType.SAND: 1.0})
            assert heat[row, col] == pytest.approx(expected)

    def test_averages(self, fertile_soil: SoilGrid) -> None:
        averages = fertile_soil.averages()
        assert averages[SoilProperty.HUMIDITY] == pytest.approx(0.6)
        assert set(averages) == set(SoilProperty)


class TestCreateSoilGrid:
    """Tests for noise-based soil generation."""

    def test_deterministic(self) -> None:
        a = create_soil_grid(0.0, 0.0, 320.0, 320.0, 32.0, seed=9)
        b = create_soil_grid(0.0, 0.0, 320.0, 320.0, 32.0, seed=9)
        for prop in SoilProperty:
            assert np.array_equal(a.layers[prop], b.layers[prop])
        assert np.array_equal(a.soil_type, b.soil_type)

    def test_values_in_range(self) -> None:
        soil = create_soil_grid(-320.0, -320.0, 640.0, 640.0, 32.0, seed=9)
        assert (soil.rows, soil.cols) == (20, 20)
        for layer in soil.layers.values():
            assert layer.min() >= 0.0
            assert layer.max() <= 1.0
        assert np.all(soil.layers[SoilProperty.SUN_EXPOSURE] == 1.0)
        assert not soil.water_level.any()


class TestCycle:
    """Tests for the per-tick soil cycle."""

    def test_rain_wets_soil(self, fertile_soil: SoilGrid) -> None:
        env = Environment(weather=Weather.RAINY, rain_intensity=1.0)
        fertile_soil.cycle(10.0, env)
        assert np.all(fertile_soil.layers[SoilProperty.HUMIDITY] > 0.6)

    def test_sun_dries_soil(self, fertile_soil: SoilGrid) -> None:
        env = Environment(weather=Weather.SUNNY, rain_intensity=0.0)
        fertile_soil.cycle(10.0, env)
        assert np.all(fertile_soil.layers[SoilProperty.HUMIDITY] < 0.6)

    def test_mineralisation(self, fertile_soil: SoilGrid) -> None:
        env = Environment(weather=Weather.CLOUDY)
        fertile_soil.cycle(100.0, env)
        assert np.all(fertile_soil.layers[SoilProperty.ORGANIC_MATTER] < 0.5)
        assert np.all(fertile_soil.layers[SoilProperty.MINERALS] > 0.5)

    def test_rain_collects_in_valleys(self, bowl: ElevationField) -> None:
        soil = SoilGrid.uniform(5, 5, humidity=0.2)
        env = Environment(weather=Weather.STORMY, rain_intensity=1.0)
        soil.cycle(10.0, env, flow=compute_flow_field(bowl), elevation=bowl)
        humidity = soil.layers[SoilProperty.HUMIDITY]
        assert humidity[2, 2] > humidity[0, 0]

    def test_standing_water_saturates(self, fertile_soil: SoilGrid) -> None:
        fertile_soil.water_level[0, 0] = 1.0
        env = Environment(weather=Weather.FOGGY)
        fertile_soil.cycle(10.0, env)
        humidity = fertile_soil.layers[SoilProperty.HUMIDITY]
        assert humidity[0, 0] > humidity[5, 5]

    def test_long_cycles_stay_clamped(self, bowl: ElevationField) -> None:
        soil = SoilGrid.uniform(5, 5, humidity=0.95, organic_matter=1.0, minerals=0.99)
        soil.water_level[:] = 1.0
        flow = compute_flow_field(bowl)
        for weather, rain in [(Weather.STORMY, 1.0), (Weather.SUNNY, 0.0)]:
            env = Environment(weather=weather, rain_intensity=rain)
            for _ in range(200):
                soil.cycle(50.0, env, flow=flow, elevation=bowl)
                for layer in soil.layers.values():
                    assert layer.min() >= 0.0
                    assert layer.max() <= 1.0
