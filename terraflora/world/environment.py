"""Environment — calendar, weather and temperature.

Updated first in each simulation tick so that surface water, soil and
plants react to the current weather.  Weather is a Markov chain over
``Weather`` states; each episode lasts a random number of game hours
and rain intensity ramps smoothly towards the target of the current
state instead of jumping.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from numpy.random import Generator

SECONDS_PER_HOUR = 10.0
HOURS_PER_DAY = 24
SECONDS_PER_DAY = SECONDS_PER_HOUR * HOURS_PER_DAY
DAYS_PER_SEASON = 15
SEASONS_PER_YEAR = 4
DAYS_PER_YEAR = DAYS_PER_SEASON * SEASONS_PER_YEAR


class Weather(Enum):
    """Weather states."""

    SUNNY = "sunny"
    CLOUDY = "cloudy"
    RAINY = "rainy"
    STORMY = "stormy"
    FOGGY = "foggy"
    SNOWY = "snowy"


class Season(Enum):
    """Seasons in calendar order."""

    SPRING = "spring"
    SUMMER = "summer"
    AUTUMN = "autumn"
    WINTER = "winter"


_WEATHERS: tuple[Weather, ...] = tuple(Weather)
_SEASONS: tuple[Season, ...] = tuple(Season)

# Probability weights of the next state, in ``Weather`` order
TRANSITIONS: dict[Weather, tuple[float, ...]] = {
    Weather.SUNNY: (0.40, 0.40, 0.07, 0.02, 0.08, 0.03),
    Weather.CLOUDY: (0.25, 0.25, 0.22, 0.08, 0.14, 0.06),
    Weather.RAINY: (0.08, 0.28, 0.35, 0.12, 0.12, 0.05),
    Weather.STORMY: (0.05, 0.20, 0.38, 0.15, 0.12, 0.10),
    Weather.FOGGY: (0.15, 0.35, 0.20, 0.05, 0.20, 0.05),
    Weather.SNOWY: (0.05, 0.20, 0.10, 0.10, 0.10, 0.45),
}

# Episode length in game hours
DURATION_HOURS: dict[Weather, tuple[float, float]] = {
    Weather.SUNNY: (4.0, 16.0),
    Weather.CLOUDY: (2.0, 10.0),
    Weather.RAINY: (1.0, 8.0),
    Weather.STORMY: (0.5, 3.0),
    Weather.FOGGY: (2.0, 8.0),
    Weather.SNOWY: (1.0, 6.0),
}

_RAIN_TARGET: dict[Weather, float] = {
    Weather.STORMY: 1.0,
    Weather.SNOWY: 0.6,
    Weather.RAINY: 0.5,
}
_RAIN_RAMP = 1.0 / (2.0 * SECONDS_PER_HOUR)
_SNOW_EFFECT = 0.4
_FOG_EVAPORATION = 0.2

_SEASON_TEMPERATURE: dict[Season, float] = {
    Season.SPRING: 12.0,
    Season.SUMMER: 22.0,
    Season.AUTUMN: 10.0,
    Season.WINTER: 0.0,
}
_WEATHER_TEMPERATURE: dict[Weather, float] = {
    Weather.CLOUDY: -1.0,
    Weather.RAINY: -2.0,
    Weather.STORMY: -3.0,
    Weather.FOGGY: -1.0,
    Weather.SNOWY: -6.0,
}
_DIURNAL_SWING = 4.0


def random_duration(weather: Weather, rng: Generator) -> float:
    """Draw an episode length in sim-seconds for a weather state."""
    lo, hi = DURATION_HOURS[weather]
    return float(rng.uniform(lo, hi)) * SECONDS_PER_HOUR


def next_weather(current: Weather, rng: Generator) -> Weather:
    """Draw the state following ``current`` from the transition table."""
    weights = TRANSITIONS[current]
    total = sum(weights)
    return _WEATHERS[int(rng.choice(len(_WEATHERS), p=[w / total for w in weights]))]


@dataclass
class Environment:
    """Global environmental state that changes each tick.

    Attributes:
        time: Sim-seconds since the start of year 1.
        weather: Current weather state.
        weather_elapsed: Sim-seconds spent in the current state.
        weather_duration: Length of the current episode in sim-seconds.
        rain_intensity: Current precipitation level (0.0-1.0).
        override: Weather locked by the user, or None for automatic.
    """

    time: float = 0.0
    weather: Weather = Weather.SUNNY
    weather_elapsed: float = 0.0
    weather_duration: float = 10.0 * SECONDS_PER_HOUR
    rain_intensity: float = 0.0
    override: Weather | None = None

    @classmethod
    def create(cls, rng: Generator, start_hour: float = 8.0) -> Environment:
        """Start a sunny episode of random length at ``start_hour``."""
        return cls(
            time=start_hour * SECONDS_PER_HOUR,
            weather_duration=random_duration(Weather.SUNNY, rng),
        )

    # -- calendar ----------------------------------------------------------

    @property
    def total_days(self) -> float:
        """Elapsed game days, fractional."""
        return self.time / SECONDS_PER_DAY

    @property
    def hour(self) -> float:
        """Hour of the day in [0, 24)."""
        return (self.time % SECONDS_PER_DAY) / SECONDS_PER_HOUR

    @property
    def year(self) -> int:
        """Calendar year, starting at 1."""
        return int(self.total_days // DAYS_PER_YEAR) + 1

    @property
    def season(self) -> Season:
        """Current season."""
        day_of_year = self.total_days % DAYS_PER_YEAR
        return _SEASONS[min(int(day_of_year // DAYS_PER_SEASON), SEASONS_PER_YEAR - 1)]

    @property
    def day_of_season(self) -> int:
        """Day within the current season, starting at 1."""
        return int((self.total_days % DAYS_PER_YEAR) % DAYS_PER_SEASON) + 1

    @property
    def is_daytime(self) -> bool:
        """Return True between 6:00 and 18:00."""
        return 6.0 <= self.hour < 18.0

    # -- weather effects ---------------------------------------------------

    @property
    def is_snowing(self) -> bool:
        return self.weather is Weather.SNOWY

    @property
    def effective_rain(self) -> float:
        """Precipitation reaching the soil; snow wets it less."""
        if self.is_snowing:
            return self.rain_intensity * _SNOW_EFFECT
        return self.rain_intensity

    @property
    def evaporation_factor(self) -> float:
        """Evaporation multiplier: none under precipitation, slow in fog."""
        if self.rain_intensity > 0:
            return 0.0
        if self.weather is Weather.FOGGY:
            return _FOG_EVAPORATION
        return 1.0

    @property
    def temperature(self) -> float:
        """Air temperature in degrees: season base, day/night swing, weather."""
        diurnal = -math.cos(2.0 * math.pi * self.hour / HOURS_PER_DAY) * _DIURNAL_SWING
        return _SEASON_TEMPERATURE[self.season] + diurnal + _WEATHER_TEMPERATURE.get(self.weather, 0.0)

    def set_override(self, weather: Weather | None) -> None:
        """Lock the weather to a state, or release the lock with None."""
        self.override = weather
        if weather is None:
            # Resume the automatic chain with a fresh episode budget
            self.weather_elapsed = 0.0
            self.weather_duration = 0.0

    def update(self, dt: float, rng: Generator) -> None:
        """Advance the clock and weather by ``dt`` sim-seconds.

        Args:
            dt: Sim-seconds elapsed.
            rng: Seeded random generator for transitions and durations.
        """
        self.time += dt

        if self.override is not None:
            if self.weather is not self.override:
                self.weather = self.override
                self.weather_elapsed = 0.0
                self.weather_duration = math.inf
        else:
            self.weather_elapsed += dt
            if self.weather_elapsed >= self.weather_duration:
                self.weather = next_weather(self.weather, rng)
                self.weather_elapsed = 0.0
                self.weather_duration = random_duration(self.weather, rng)

        target = _RAIN_TARGET.get(self.weather, 0.0)
        step = _RAIN_RAMP * dt
        if self.rain_intensity < target:
            self.rain_intensity = min(target, self.rain_intensity + step)
        elif self.rain_intensity > target:
            self.rain_intensity = max(target, self.rain_intensity - step)
