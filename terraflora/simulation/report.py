"""Headless runs and the ecosystem report.

``run_headless`` drives an engine for a number of game days and takes a
snapshot of the flora and soil every few game hours.  The formatting
helpers turn those snapshots into the plain-text report printed by the
CLI, or into a CSV timeline.
"""

from __future__ import annotations

import csv
import io
import math
from collections import Counter, defaultdict
from dataclasses import dataclass, field

import structlog

from terraflora.flora.plant import GrowthStage
from terraflora.flora.species import SpeciesRegistry
from terraflora.simulation.engine import SimulationEngine
from terraflora.world.environment import HOURS_PER_DAY, SECONDS_PER_DAY, SECONDS_PER_HOUR, Weather
from terraflora.world.soil import SoilProperty
from terraflora.world.world import World

logger = structlog.get_logger(__name__)

_ALIVE_STAGES = (GrowthStage.SEED, GrowthStage.SPROUT, GrowthStage.GROWING, GrowthStage.MATURE)
_GRAPH_WIDTH = 50


@dataclass
class Snapshot:
    """Flora and soil state at one moment of a run.

    Attributes:
        day: Whole game days since the start of the run.
        hour: Hour of that day.
        total_plants: Plants in the world, fading ones included.
        total_fruits: Fruits on the ground.
        stages: Plant count per species and stage.
        fruits: Fruit count per species.
        soil: Grid-wide mean of each soil property.
        weather: Weather at snapshot time.
    """

    day: int
    hour: int
    total_plants: int
    total_fruits: int
    stages: dict[str, Counter[GrowthStage]]
    fruits: Counter[str]
    soil: dict[SoilProperty, float]
    weather: Weather

    def alive(self, species_id: str | None = None) -> int:
        """Count living plants, of one species or of all."""
        if species_id is not None:
            counts = self.stages.get(species_id, Counter())
            return sum(counts[s] for s in _ALIVE_STAGES)
        return sum(self.alive(sid) for sid in self.stages)

    def dying(self) -> int:
        """Count plants fading after death."""
        return sum(c[GrowthStage.DEAD] for c in self.stages.values())


def take_snapshot(world: World, elapsed: float) -> Snapshot:
    """Summarise a world ``elapsed`` sim-seconds into a run."""
    stages: dict[str, Counter[GrowthStage]] = defaultdict(Counter)
    for plant in world.plants:
        stages[plant.species_id][plant.stage] += 1
    return Snapshot(
        day=int(elapsed // SECONDS_PER_DAY),
        hour=int((elapsed % SECONDS_PER_DAY) // SECONDS_PER_HOUR),
        total_plants=len(world.plants),
        total_fruits=len(world.fruits),
        stages=dict(stages),
        fruits=Counter(f.species_id for f in world.fruits),
        soil=world.soil.averages(),
        weather=world.environment.weather,
    )


@dataclass
class RunResult:
    """Snapshots of a headless run.

    Attributes:
        snapshots: Snapshots in time order, the first at the start.
        snapshots_per_day: Snapshots taken per game day.
        ticks: Ticks executed.
    """

    snapshots: list[Snapshot] = field(default_factory=list)
    snapshots_per_day: int = 4
    ticks: int = 0

    @property
    def first(self) -> Snapshot:
        return self.snapshots[0]

    @property
    def last(self) -> Snapshot:
        return self.snapshots[-1]

    def daily(self) -> list[Snapshot]:
        """Return one snapshot per game day."""
        return self.snapshots[:: self.snapshots_per_day]


def snapshot_interval(dt: float, snapshot_hours: int = 6) -> int:
    """Return the ticks between snapshots for a tick length.

    Raises:
        ValueError: If ``snapshot_hours`` does not divide a game day or
            ``dt`` does not divide ``snapshot_hours`` into whole ticks;
            either would let snapshots drift off day boundaries.
    """
    if dt <= 0:
        raise ValueError(f"dt must be positive, got {dt}")
    if snapshot_hours <= 0 or HOURS_PER_DAY % snapshot_hours:
        raise ValueError(f"snapshot_hours must divide {HOURS_PER_DAY}, got {snapshot_hours}")
    ticks = snapshot_hours * SECONDS_PER_HOUR / dt
    if not math.isclose(ticks, round(ticks)):
        raise ValueError(f"dt={dt} does not divide {snapshot_hours} game hours into whole ticks")
    return round(ticks)


def run_headless(
    engine: SimulationEngine,
    days: float,
    dt: float = 1.0,
    snapshot_hours: int = 6,
) -> RunResult:
    """Run an engine for ``days`` game days, snapshotting as it goes.

    Args:
        engine: A freshly built engine.
        days: Game days to simulate.
        dt: Sim-seconds per tick; must divide ``snapshot_hours``.
        snapshot_hours: Game hours between snapshots; must divide 24.

    Returns:
        The collected snapshots.

    Raises:
        ValueError: See ``snapshot_interval``.
    """
    ticks_per_snapshot = snapshot_interval(dt, snapshot_hours)
    snapshots_per_day = HOURS_PER_DAY // snapshot_hours
    ticks_per_day = ticks_per_snapshot * snapshots_per_day
    total_ticks = round(days * SECONDS_PER_DAY / dt)

    result = RunResult(snapshots_per_day=snapshots_per_day)
    result.snapshots.append(take_snapshot(engine.world, 0.0))

    for tick in range(1, total_ticks + 1):
        engine.step(dt)
        if tick % ticks_per_snapshot == 0:
            result.snapshots.append(take_snapshot(engine.world, tick * dt))
        if tick % ticks_per_day == 0:
            logger.info(
                "day_complete",
                day=tick // ticks_per_day,
                plants=len(engine.world.living_plants()),
                fruits=len(engine.world.fruits),
                weather=engine.environment.weather.value,
            )
    result.ticks = total_ticks
    return result


@dataclass
class GrowthWindow:
    """Population change over a span of days."""

    start_day: int
    end_day: int
    start_plants: int
    end_plants: int

    @property
    def per_day(self) -> float:
        return (self.end_plants - self.start_plants) / (self.end_day - self.start_day)

    @property
    def rate(self) -> float:
        """Relative change in percent (0 when starting from nothing)."""
        if self.start_plants == 0:
            return 0.0
        return (self.end_plants - self.start_plants) / self.start_plants * 100.0


def growth_windows(daily: list[Snapshot], window: int = 5) -> list[GrowthWindow]:
    """Split daily snapshots into consecutive windows of ``window`` days."""
    windows: list[GrowthWindow] = []
    for i in range(window, len(daily), window):
        start, end = daily[i - window], daily[i]
        if end.day == start.day:
            continue
        windows.append(GrowthWindow(start.day, end.day, start.total_plants, end.total_plants))
    return windows


def format_report(result: RunResult, registry: SpeciesRegistry) -> str:
    """Render the ecosystem report of a run as plain text."""
    first, last = result.first, result.last
    lines: list[str] = []

    lines.append(f"--- Population by species (day {last.day}) ---")
    header = f"  {'Species':<16}| Seeds | Sprout | Growing | Mature | Dead  | Fruits"
    lines.append(header)
    lines.append("  " + "-" * (len(header) - 2))
    for species in registry:
        counts = last.stages.get(species.species_id, Counter())
        fruits = last.fruits[species.species_id]
        if sum(counts.values()) + fruits == 0:
            continue
        lines.append(
            f"  {species.display_name:<16}"
            f"| {counts[GrowthStage.SEED]:>5} "
            f"| {counts[GrowthStage.SPROUT]:>6} "
            f"| {counts[GrowthStage.GROWING]:>7} "
            f"| {counts[GrowthStage.MATURE]:>6} "
            f"| {counts[GrowthStage.DEAD]:>5} "
            f"| {fruits:>6}",
        )
    lines.append("")
    lines.append(f"  Total: {last.alive()} alive, {last.dying()} dying, {last.total_fruits} fruits")

    lines.append("")
    lines.append("--- Mean soil ---")
    lines.append(f"  {'Property':<18}| Start  | End    | Delta")
    lines.append("  " + "-" * 50)
    for prop in SoilProperty:
        start = first.soil[prop]
        end = last.soil[prop]
        lines.append(f"  {prop.value:<18}| {start:.4f} | {end:.4f} | {end - start:+.4f}")

    daily = result.daily()
    lines.append("")
    lines.append("--- Timeline (daily) ---")
    for snap in daily:
        lines.append(
            f"  Day {snap.day:>3}: {snap.total_plants:>5} plants, {snap.total_fruits:>4} fruits"
            f" | hum={snap.soil[SoilProperty.HUMIDITY]:.3f}"
            f" org={snap.soil[SoilProperty.ORGANIC_MATTER]:.3f}"
            f" | {snap.weather.value}",
        )

    lines.append("")
    lines.append("--- Species evolution (start -> end) ---")
    for species in registry:
        start = first.alive(species.species_id)
        end = last.alive(species.species_id)
        if start == 0 and end == 0:
            continue
        pct = f"({(end - start) / start * 100:+.0f}%)" if start > 0 else "(new)"
        lines.append(f"  {species.display_name:<16}: {start} -> {end}  {pct}")

    lines.append("")
    lines.append("--- Population growth ---")
    lines.append("  Days      | Plants start | Plants end | Growth/day | Rate (%)")
    lines.append("  " + "-" * 62)
    for w in growth_windows(daily):
        lines.append(
            f"  {w.start_day:>3}-{w.end_day:<3}   | {w.start_plants:>12} | {w.end_plants:>10}"
            f" | {w.per_day:>10.1f} | {w.rate:>8.1f}",
        )

    peak = max((s.total_plants for s in daily), default=0) or 1
    lines.append("")
    lines.append("  Population graph:")
    for snap in daily:
        bar = round(snap.total_plants / peak * _GRAPH_WIDTH)
        lines.append(f"  D{snap.day:>3} |{'#' * bar}{'.' * (_GRAPH_WIDTH - bar)}| {snap.total_plants}")

    return "\n".join(lines)


def timeline_csv(result: RunResult) -> str:
    """Render every snapshot as a CSV row."""
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(
        ["day", "hour", "plants", "alive", "fruits", "weather", *(p.value for p in SoilProperty)],
    )
    for snap in result.snapshots:
        writer.writerow(
            [
                snap.day,
                snap.hour,
                snap.total_plants,
                snap.alive(),
                snap.total_fruits,
                snap.weather.value,
                *(f"{snap.soil[p]:.4f}" for p in SoilProperty),
            ],
        )
    return buf.getvalue()
