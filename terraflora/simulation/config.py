"""Config — load simulation parameters from YAML files.

All tunable constants (world extent, soil cycling rates, lake
hydrology, flora growth tuning, initial plant populations) live in YAML
and are parsed into typed dataclasses here.  The flora constants in
particular are gameplay-tuning knobs, not physical quantities, so they
are meant to be adjusted per scenario rather than hard-coded.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, TypeVar

import yaml

_T = TypeVar("_T")

CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"
DEFAULT_CONFIG = CONFIG_DIR / "default.yaml"
DEFAULT_SPECIES = CONFIG_DIR / "species.yaml"


def _from_mapping(cls: type[_T], data: dict[str, Any] | None) -> _T:
    """Build a config dataclass from a mapping, ignoring unknown keys."""
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    return cls(**{k: v for k, v in (data or {}).items() if k in known})


@dataclass
class TerrainConfig:
    """World extent and terrain generation parameters.

    Attributes:
        origin_x: World x of the top-left corner.
        origin_y: World y of the top-left corner.
        width: World-space width.
        height: World-space height.
        cell_size: World units per grid cell (shared by terrain and soil).
        max_elevation: Elevation scale of the terrain noise.
        seed_offset: Added to the master seed for the terrain noise so
            terrain and soil patterns are decorrelated.
    """

    origin_x: float = -1200.0
    origin_y: float = -1200.0
    width: float = 2400.0
    height: float = 2400.0
    cell_size: float = 32.0
    max_elevation: float = 150.0
    seed_offset: int = 35


@dataclass
class SoilConfig:
    """Rates for the per-tick soil cycle (all per sim-second).

    Attributes:
        mineralization_rate: Fraction of organic matter decomposing.
        mineralization_yield: Fraction of decomposed organic matter that
            becomes minerals (the rest is lost).
        rain_humidity_rate: Humidity gained at rain intensity 1.0 on a
            cell with flow score 1.0.
        rain_base_gain: Minimum basin factor, so ridges still get rain.
        evaporation_rate: Humidity lost when it is not raining.
        drainage_rate: Extra humidity lost on high ground, scaled by
            normalised elevation and soil drainage.
        saturation_rate: Humidity gained by cells under standing water.
        reference_temperature: Temperature at which evaporation runs at
            its nominal rate.
        temperature_evaporation: Relative evaporation change per degree
            above the reference.
    """

    mineralization_rate: float = 0.00002
    mineralization_yield: float = 0.6
    rain_humidity_rate: float = 0.0008
    rain_base_gain: float = 0.15
    evaporation_rate: float = 0.00005
    drainage_rate: float = 0.00002
    saturation_rate: float = 0.001
    reference_temperature: float = 15.0
    temperature_evaporation: float = 0.03


@dataclass
class HydrologyConfig:
    """Lake (depression) water balance.

    Attributes:
        lakes_enabled: Whether basins fill and standing water is modelled.
        rain_depth_rate: Rain depth added per sim-second at intensity 1.
        evaporation_depth_rate: Depth evaporated per sim-second from the
            wet surface of a basin.
        max_lake_depth: Depth mapped to water level 1.0.
        overflow_passes: Maximum cascade passes per tick for basin chains.
    """

    lakes_enabled: bool = True
    rain_depth_rate: float = 0.00015
    evaporation_depth_rate: float = 0.00004
    max_lake_depth: float = 20.0
    overflow_passes: int = 5


@dataclass
class FloraConfig:
    """Growth, competition and reproduction tuning for the flora engine.

    Attributes:
        canopy_interval: Sim-seconds between canopy recomputations.
        canopy_max_radius_cells: Shade radius of a full-size tree.
        canopy_max_shade: Sun reduction under a full-size tree's trunk.
        canopy_min_growth: Minimum growth before a tree casts shade.
        tree_min_size: Species max size from which a plant counts as a tree.
        reference_size: Max size treated as "full size" (the oak).
        growth_drain_rate: Soil drain per sim-second per unit of weight.
        growth_drain_per_growth: Soil drain per unit of growth per weight.
        maintenance_fraction: Drain of a fully grown plant relative to
            ``growth_drain_rate``.
        decompose_organic: Organic matter returned by a full-size plant.
        decompose_minerals: Minerals returned by a full-size plant.
        decompose_radius_cells: Radius of the decomposition neighbourhood.
        spatial_cell_size: Bucket size of the per-tick spatial index.
        crowd_radius_base: Crowding radius for a plant of max size 10.
        crowd_max_neighbors: Neighbour count before growth slows.
        crowd_min_growth: Growth below which neighbours are ignored
            as seedlings.
        germination_min_fertility: Fertility that ends seed dormancy.
        max_dormancy_days: Dormancy length before a seed dies.
        density_cap: Same-species plants in the seed radius that block
            further dispersal.
        pollination_radius: Radius searched for a pollination partner.
        pollination_bonus: Fruit multiplier when a partner is found.
        pollination_min_growth: Growth a partner needs.
        health_regen_rate: HP/s regained at perfect fertility.
        health_stress_rate: HP/s lost at zero fertility before resilience.
        fertility_comfort: Fertility splitting regeneration from stress.
        growth_fertility_saturation: Fertility at which growth is full speed.
        drowning_depth: Water level above which plants drown and seeds
            or fruits are not placed.
        seed_min_health: Health needed to disperse seeds.
        fruit_min_health: Health needed to produce fruit.
        fruit_health_reference: Health giving the full fruit yield.
        litter_rate: Organic matter per sim-second from a full-size plant.
        litter_min_growth: Growth from which leaf litter is deposited.
        litter_mineral_fraction: Minerals deposited relative to organic.
        death_fade_rate: Health lost per sim-second after death.
        decompose_health: Health at which a dead plant is removed.
        seed_death_organic: Organic matter left by a seed that never sprouted.
        fruit_rot_organic: Organic matter per unit of nutrition of a
            rotten fruit.
    """

    canopy_interval: float = 300.0
    canopy_max_radius_cells: int = 4
    canopy_max_shade: float = 0.7
    canopy_min_growth: float = 0.3
    tree_min_size: float = 10.0
    reference_size: float = 18.0

    growth_drain_rate: float = 0.00015
    growth_drain_per_growth: float = 0.05
    maintenance_fraction: float = 0.4

    decompose_organic: float = 0.25
    decompose_minerals: float = 0.08
    decompose_radius_cells: int = 2

    spatial_cell_size: float = 100.0
    crowd_radius_base: float = 40.0
    crowd_max_neighbors: int = 6
    crowd_min_growth: float = 0.1

    germination_min_fertility: float = 0.15
    max_dormancy_days: float = 4.0
    density_cap: int = 12

    pollination_radius: float = 80.0
    pollination_bonus: float = 1.2
    pollination_min_growth: float = 0.5

    health_regen_rate: float = 2.0
    health_stress_rate: float = 5.0
    fertility_comfort: float = 0.35
    growth_fertility_saturation: float = 0.8
    drowning_depth: float = 0.3

    seed_min_health: float = 50.0
    fruit_min_health: float = 40.0
    fruit_health_reference: float = 80.0

    litter_rate: float = 0.000015
    litter_min_growth: float = 0.8
    litter_mineral_fraction: float = 0.2

    death_fade_rate: float = 5.0
    decompose_health: float = -50.0
    seed_death_organic: float = 0.002
    fruit_rot_organic: float = 0.01


@dataclass
class PopulationConfig:
    """An initial scatter of one species, placed by humidity.

    Attributes:
        species: Species id.
        count: Plants to place.
        humidity_range: Accepted ``(min, max)`` soil humidity.
        growth_range: ``(min, max)`` initial growth.
    """

    species: str
    count: int
    humidity_range: tuple[float, float] = (0.0, 1.0)
    growth_range: tuple[float, float] = (0.0, 1.0)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PopulationConfig:
        """Build from a YAML mapping."""
        return cls(
            species=data["species"],
            count=int(data["count"]),
            humidity_range=tuple(data.get("humidity_range", (0.0, 1.0))),
            growth_range=tuple(data.get("growth_range", (0.0, 1.0))),
        )


@dataclass
class ForestConfig:
    """A family of dense forest clusters.

    Attributes:
        species: Species ids mixed inside each cluster.
        count: Number of clusters.
        radius: Cluster radius in world units.
        trees_per_forest: Trees attempted per cluster.
        min_humidity: Humidity required at the cluster centre.
    """

    species: list[str]
    count: int
    radius: float
    trees_per_forest: int
    min_humidity: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ForestConfig:
        """Build from a YAML mapping."""
        return cls(
            species=list(data["species"]),
            count=int(data["count"]),
            radius=float(data["radius"]),
            trees_per_forest=int(data["trees_per_forest"]),
            min_humidity=float(data.get("min_humidity", 0.0)),
        )


@dataclass
class SimulationConfig:
    """Top-level simulation configuration.

    Attributes:
        seed: RNG seed for deterministic replay.
        start_hour: In-game hour at which the clock starts.
        species_file: YAML species catalogue to load.
        terrain: World extent and terrain generation.
        soil: Soil cycle rates.
        hydrology: Lake water balance.
        flora: Flora tuning.
        populations: Initial scattered plant populations.
        forests: Initial dense forest clusters.
    """

    seed: int = 42
    start_hour: float = 8.0
    species_file: Path = DEFAULT_SPECIES
    terrain: TerrainConfig = field(default_factory=TerrainConfig)
    soil: SoilConfig = field(default_factory=SoilConfig)
    hydrology: HydrologyConfig = field(default_factory=HydrologyConfig)
    flora: FloraConfig = field(default_factory=FloraConfig)
    populations: list[PopulationConfig] = field(default_factory=list)
    forests: list[ForestConfig] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML config file.

        Returns:
            A populated SimulationConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}

        species_file = data.get("species_file")
        if species_file is None:
            species_path = DEFAULT_SPECIES
        else:
            species_path = Path(species_file)
            if not species_path.is_absolute():
                species_path = path.parent / species_path

        return cls(
            seed=data.get("seed", cls.seed),
            start_hour=data.get("start_hour", cls.start_hour),
            species_file=species_path,
            terrain=_from_mapping(TerrainConfig, data.get("terrain")),
            soil=_from_mapping(SoilConfig, data.get("soil")),
            hydrology=_from_mapping(HydrologyConfig, data.get("hydrology")),
            flora=_from_mapping(FloraConfig, data.get("flora")),
            populations=[
                PopulationConfig.from_dict(p) for p in data.get("populations", [])
            ],
            forests=[ForestConfig.from_dict(f) for f in data.get("forests", [])],
        )
