"""Soil — per-cell humidity, minerals, organic matter and sun exposure.

The grid is stored structure-of-arrays: one ``(rows, cols)`` float layer
per ``SoilProperty``, an int8 soil-type layer and a standing-water layer.
Plants read it through ``sample_at`` / ``compute_fertility`` and write
into it (draw-down, litter, decomposition) through ``add_property``.
Every write clamps to [0, 1].
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from terraflora.simulation.config import SoilConfig
from terraflora.terrain.heightmap import ElevationField, normalized_heights
from terraflora.terrain.noise import grid_axes, layer_seeds, layered_noise

if TYPE_CHECKING:
    from terraflora.terrain.flow import FlowField
    from terraflora.world.environment import Environment


class SoilProperty(Enum):
    """Tracked soil properties, each in [0, 1]."""

    HUMIDITY = "humidity"
    MINERALS = "minerals"
    ORGANIC_MATTER = "organic_matter"
    SUN_EXPOSURE = "sun_exposure"


class SoilType(Enum):
    """Soil composition affecting drainage and base fertility."""

    LOAM = "loam"
    SAND = "sand"
    CLAY = "clay"
    PEAT = "peat"
    ROCK = "rock"


@dataclass(frozen=True)
class SoilTypeProfile:
    """Physical behaviour of a soil type.

    Attributes:
        drainage: How fast water leaves the soil (0 = holds, 1 = drains).
        fertility: Base multiplier applied to every plant fertility score.
    """

    drainage: float
    fertility: float


SOIL_TYPE_PROFILES: dict[SoilType, SoilTypeProfile] = {
    SoilType.LOAM: SoilTypeProfile(drainage=0.5, fertility=1.0),
    SoilType.SAND: SoilTypeProfile(drainage=0.9, fertility=0.7),
    SoilType.CLAY: SoilTypeProfile(drainage=0.2, fertility=0.85),
    SoilType.PEAT: SoilTypeProfile(drainage=0.1, fertility=0.9),
    SoilType.ROCK: SoilTypeProfile(drainage=1.0, fertility=0.4),
}

# int8 codes stored in SoilGrid.soil_type, in declaration order
SOIL_TYPES: tuple[SoilType, ...] = tuple(SoilType)
SOIL_TYPE_CODES: dict[SoilType, int] = {t: i for i, t in enumerate(SOIL_TYPES)}

_DRAINAGE_BY_CODE = np.array([SOIL_TYPE_PROFILES[t].drainage for t in SOIL_TYPES])
_FERTILITY_BY_CODE = np.array([SOIL_TYPE_PROFILES[t].fertility for t in SOIL_TYPES])


@dataclass(frozen=True)
class _NoiseProfile:
    scales: tuple[float, float, float]
    bias: float


_NOISE_WEIGHTS = (0.5, 0.3, 0.2)
_NOISE_PROFILES: dict[SoilProperty, _NoiseProfile] = {
    SoilProperty.HUMIDITY: _NoiseProfile((0.002, 0.008, 0.025), 0.50),
    SoilProperty.MINERALS: _NoiseProfile((0.0015, 0.006, 0.02), 0.45),
    SoilProperty.ORGANIC_MATTER: _NoiseProfile((0.003, 0.012, 0.035), 0.40),
}


@dataclass(frozen=True)
class SoilNeed:
    """A species' preference for one soil property.

    The per-property score is 1 at ``ideal`` and falls off linearly to 0
    at ``ideal ± tolerance``.
    """

    ideal: float
    tolerance: float
    weight: float


@dataclass
class SoilSample:
    """Soil conditions of a single cell."""

    humidity: float = 0.0
    minerals: float = 0.0
    organic_matter: float = 0.0
    sun_exposure: float = 0.0
    soil_type: SoilType = SoilType.LOAM
    water_level: float = 0.0

    def get(self, prop: SoilProperty) -> float:
        """Return the value of one soil property."""
        return getattr(self, prop.value)


def compute_fertility(
    sample: SoilSample,
    needs: Mapping[SoilProperty, SoilNeed],
    soil_type: SoilType | None = None,
    modifiers: Mapping[SoilType, float] | None = None,
) -> float:
    """Score how well a soil sample suits a set of needs.

    Args:
        sample: Soil conditions.
        needs: Per-property preferences; unlisted properties are ignored.
        soil_type: Soil type to apply; defaults to ``sample.soil_type``.
        modifiers: Per-soil-type multipliers overriding the base
            fertility of the type.

    Returns:
        A score in [0, 1]; 0 when no need carries any weight.
    """
    total_weight = 0.0
    weighted = 0.0
    for prop, need in needs.items():
        distance = abs(sample.get(prop) - need.ideal)
        score = max(0.0, 1.0 - distance / max(0.01, need.tolerance))
        weighted += score * need.weight
        total_weight += need.weight
    if total_weight <= 0:
        return 0.0

    kind = sample.soil_type if soil_type is None else soil_type
    factor = SOIL_TYPE_PROFILES[kind].fertility
    if modifiers is not None and kind in modifiers:
        factor = modifiers[kind]
    return min(1.0, max(0.0, weighted / total_weight * factor))


def classify_soil(
    humidity: NDArray[np.float64],
    minerals: NDArray[np.float64],
    elevation: NDArray[np.float64] | None = None,
) -> NDArray[np.int8]:
    """Derive soil types from humidity, minerals and normalised elevation.

    Rules, first match wins: high ground (> 0.85) is ROCK; very wet
    (> 0.72) is PEAT; wet and mineral-rich is CLAY; dry (< 0.3) is SAND;
    everything else is LOAM.
    """
    high = np.zeros(humidity.shape, dtype=bool) if elevation is None else elevation > 0.85
    conditions = [
        high,
        humidity > 0.72,
        (humidity > 0.55) & (minerals > 0.55),
        humidity < 0.3,
    ]
    choices = [
        SOIL_TYPE_CODES[SoilType.ROCK],
        SOIL_TYPE_CODES[SoilType.PEAT],
        SOIL_TYPE_CODES[SoilType.CLAY],
        SOIL_TYPE_CODES[SoilType.SAND],
    ]
    return np.select(conditions, choices, default=SOIL_TYPE_CODES[SoilType.LOAM]).astype(np.int8)


@dataclass(eq=False)
class SoilGrid:
    """Dynamic soil state over the world grid.

    Attributes:
        cols: Grid columns.
        rows: Grid rows.
        cell_size: World units per cell.
        origin_x: World x of column 0.
        origin_y: World y of row 0.
        layers: One ``(rows, cols)`` float64 array per property.
        soil_type: ``(rows, cols)`` int8 codes into ``SOIL_TYPES``.
        water_level: ``(rows, cols)`` standing water in [0, 1].
    """

    cols: int
    rows: int
    cell_size: float
    origin_x: float
    origin_y: float
    layers: dict[SoilProperty, NDArray[np.float64]] = field(default_factory=dict)
    soil_type: NDArray[np.int8] = field(default_factory=lambda: np.zeros((0, 0), dtype=np.int8))
    water_level: NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 0)))

    @classmethod
    def uniform(
        cls,
        cols: int,
        rows: int,
        *,
        cell_size: float = 1.0,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
        humidity: float = 0.5,
        minerals: float = 0.5,
        organic_matter: float = 0.5,
        sun_exposure: float = 1.0,
        soil_type: SoilType = SoilType.LOAM,
    ) -> SoilGrid:
        """Build a grid where every cell holds the same values."""
        shape = (rows, cols)
        values = {
            SoilProperty.HUMIDITY: humidity,
            SoilProperty.MINERALS: minerals,
            SoilProperty.ORGANIC_MATTER: organic_matter,
            SoilProperty.SUN_EXPOSURE: sun_exposure,
        }
        return cls(
            cols=cols,
            rows=rows,
            cell_size=cell_size,
            origin_x=origin_x,
            origin_y=origin_y,
            layers={p: np.full(shape, float(np.clip(v, 0.0, 1.0))) for p, v in values.items()},
            soil_type=np.full(shape, SOIL_TYPE_CODES[soil_type], dtype=np.int8),
            water_level=np.zeros(shape),
        )

    # -- lookup ------------------------------------------------------------

    def cell_index(self, x: float, y: float) -> tuple[int, int] | None:
        """Return ``(row, col)`` of the cell containing a world point, or None."""
        col = math.floor((x - self.origin_x) / self.cell_size)
        row = math.floor((y - self.origin_y) / self.cell_size)
        if col < 0 or col >= self.cols or row < 0 or row >= self.rows:
            return None
        return row, col

    def cell_center(self, row: int, col: int) -> tuple[float, float]:
        """Return the world position of a cell's centre."""
        return (
            self.origin_x + (col + 0.5) * self.cell_size,
            self.origin_y + (row + 0.5) * self.cell_size,
        )

    def sample_at(self, x: float, y: float) -> SoilSample:
        """Return the soil at a world point (all zero, LOAM, dry outside)."""
        cell = self.cell_index(x, y)
        if cell is None:
            return SoilSample()
        return SoilSample(
            humidity=float(self.layers[SoilProperty.HUMIDITY][cell]),
            minerals=float(self.layers[SoilProperty.MINERALS][cell]),
            organic_matter=float(self.layers[SoilProperty.ORGANIC_MATTER][cell]),
            sun_exposure=float(self.layers[SoilProperty.SUN_EXPOSURE][cell]),
            soil_type=SOIL_TYPES[int(self.soil_type[cell])],
            water_level=float(self.water_level[cell]),
        )

    def get_property(self, x: float, y: float, prop: SoilProperty) -> float:
        """Return one property at a world point (0 outside the grid)."""
        cell = self.cell_index(x, y)
        return 0.0 if cell is None else float(self.layers[prop][cell])

    def soil_type_at(self, x: float, y: float) -> SoilType:
        """Return the soil type at a world point (LOAM outside the grid)."""
        cell = self.cell_index(x, y)
        return SoilType.LOAM if cell is None else SOIL_TYPES[int(self.soil_type[cell])]

    def water_level_at(self, x: float, y: float) -> float:
        """Return standing water at a world point (0 outside the grid)."""
        cell = self.cell_index(x, y)
        return 0.0 if cell is None else float(self.water_level[cell])

    # -- mutation ----------------------------------------------------------

    def set_property(self, x: float, y: float, prop: SoilProperty, value: float) -> None:
        """Set one property at a world point, clamped; no-op outside the grid."""
        cell = self.cell_index(x, y)
        if cell is not None:
            self.layers[prop][cell] = min(1.0, max(0.0, value))

    def add_property(self, x: float, y: float, prop: SoilProperty, delta: float) -> None:
        """Add a (possibly negative) amount to one property at a world point."""
        cell = self.cell_index(x, y)
        if cell is not None:
            self.add_at(cell[0], cell[1], prop, delta)

    def add_at(self, row: int, col: int, prop: SoilProperty, delta: float) -> None:
        """Add a clamped delta to one property of a cell given by index."""
        layer = self.layers[prop]
        layer[row, col] = min(1.0, max(0.0, layer[row, col] + delta))

    # -- whole-grid views --------------------------------------------------

    def fertility_map(
        self,
        needs: Mapping[SoilProperty, SoilNeed],
        modifiers: Mapping[SoilType, float] | None = None,
    ) -> NDArray[np.float64]:
        """Compute ``compute_fertility`` for every cell at once.

        Useful for "where can this species grow?" heat maps.
        """
        shape = (self.rows, self.cols)
        total_weight = sum(need.weight for need in needs.values())
        if total_weight <= 0:
            return np.zeros(shape)

        weighted = np.zeros(shape)
        for prop, need in needs.items():
            distance = np.abs(self.layers[prop] - need.ideal)
            weighted += np.maximum(0.0, 1.0 - distance / max(0.01, need.tolerance)) * need.weight

        factors = _FERTILITY_BY_CODE.copy()
        for kind, value in (modifiers or {}).items():
            factors[SOIL_TYPE_CODES[kind]] = value
        return np.clip(weighted / total_weight * factors[self.soil_type], 0.0, 1.0)

    def averages(self) -> dict[SoilProperty, float]:
        """Return the grid-wide mean of every property."""
        return {prop: float(layer.mean()) for prop, layer in self.layers.items()}

    def drainage(self) -> NDArray[np.float64]:
        """Return the per-cell drainage rate of the soil type."""
        return _DRAINAGE_BY_CODE[self.soil_type]

    # -- per-tick cycle ----------------------------------------------------

    def cycle(
        self,
        dt: float,
        environment: Environment,
        flow: FlowField | None = None,
        elevation: ElevationField | None = None,
        config: SoilConfig | None = None,
    ) -> None:
        """Advance slow soil processes by ``dt`` sim-seconds.

        Organic matter mineralises, rain wets the soil (more in
        convergent terrain, less on draining soils), dry weather
        evaporates it, high ground drains and standing water saturates.

        Args:
            dt: Sim-seconds elapsed.
            environment: Weather and calendar state.
            flow: Flow field on the same grid; without it rain falls
                at the base rate everywhere.
            elevation: Terrain on the same grid, for elevation drainage.
            config: Cycle rates.
        """
        cfg = config or SoilConfig()
        humidity = self.layers[SoilProperty.HUMIDITY]
        minerals = self.layers[SoilProperty.MINERALS]
        organic = self.layers[SoilProperty.ORGANIC_MATTER]
        drainage = self.drainage()

        decomposed = organic * cfg.mineralization_rate * dt
        organic -= decomposed
        minerals += decomposed * cfg.mineralization_yield

        rain = environment.effective_rain
        if rain > 0:
            basin = 0.0
            if flow is not None:
                assert flow.values.shape == humidity.shape, "flow grid does not match soil grid"
                basin = flow.values
            basin_factor = cfg.rain_base_gain + basin * (1.0 - cfg.rain_base_gain)
            retention = 1.0 - 0.6 * drainage
            humidity += cfg.rain_humidity_rate * rain * basin_factor * retention * dt
        else:
            warmth = 1.0 + (environment.temperature - cfg.reference_temperature) * cfg.temperature_evaporation
            humidity -= (
                cfg.evaporation_rate
                * (0.5 + drainage)
                * environment.evaporation_factor
                * max(0.0, warmth)
                * dt
            )

        if elevation is not None:
            assert elevation.heights.shape == humidity.shape, "terrain grid does not match soil grid"
            humidity -= cfg.drainage_rate * normalized_heights(elevation) * drainage * dt

        humidity += cfg.saturation_rate * self.water_level * dt

        for layer in (humidity, minerals, organic):
            np.clip(layer, 0.0, 1.0, out=layer)


def create_soil_grid(
    origin_x: float,
    origin_y: float,
    width: float,
    height: float,
    cell_size: float,
    seed: int,
    elevation: ElevationField | None = None,
) -> SoilGrid:
    """Generate a soil grid from seeded layered noise.

    Args:
        origin_x: World x of column 0.
        origin_y: World y of row 0.
        width: World-space width to cover.
        height: World-space height to cover.
        cell_size: World units per cell.
        seed: Master seed for the noise layers.
        elevation: Optional terrain on the same grid; high ground is
            classified as ROCK.

    Returns:
        The generated SoilGrid; sun exposure starts at 1 and the soil
        is dry.
    """
    cols = math.ceil(width / cell_size)
    rows = math.ceil(height / cell_size)
    xs, ys = grid_axes(origin_x, origin_y, cols, rows, cell_size)
    seeds = layer_seeds(seed, 3 * len(_NOISE_PROFILES))

    layers: dict[SoilProperty, NDArray[np.float64]] = {}
    for i, (prop, profile) in enumerate(_NOISE_PROFILES.items()):
        raw = layered_noise(xs, ys, seeds[3 * i : 3 * i + 3], profile.scales, _NOISE_WEIGHTS)
        layers[prop] = np.clip(raw + profile.bias, 0.0, 1.0)
    layers[SoilProperty.SUN_EXPOSURE] = np.ones((rows, cols))

    norm_elevation = None
    if elevation is not None:
        assert elevation.heights.shape == (rows, cols), "terrain grid does not match soil grid"
        norm_elevation = normalized_heights(elevation)

    return SoilGrid(
        cols=cols,
        rows=rows,
        cell_size=cell_size,
        origin_x=origin_x,
        origin_y=origin_y,
        layers=layers,
        soil_type=classify_soil(
            layers[SoilProperty.HUMIDITY],
            layers[SoilProperty.MINERALS],
            norm_elevation,
        ),
        water_level=np.zeros((rows, cols)),
    )
