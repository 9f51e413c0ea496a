"""Pygame 2D visualization for the terraflora simulation.

Renders one grid overlay (elevation, flow, a soil property, soil type or
standing water), the plants and the fruits in a window.  The simulation
steps at a configurable tick rate while the display refreshes at the
Pygame frame rate.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, ClassVar

import numpy as np
import pygame
from numpy.typing import NDArray

from terraflora.flora.plant import GrowthStage
from terraflora.terrain.heightmap import normalized_heights
from terraflora.world.soil import SOIL_TYPES, SoilProperty, SoilType

if TYPE_CHECKING:
    from terraflora.simulation.engine import SimulationEngine

# Colour palette
_BG = (20, 24, 18)
_TEXT = (200, 200, 200)
_WATER = np.array([40, 90, 200], dtype=np.float64)
_DEAD_PLANT = (110, 90, 70)


class Overlay(Enum):
    """Grid layer drawn under the plants."""

    ELEVATION = "elevation"
    FLOW = "flow"
    HUMIDITY = "humidity"
    MINERALS = "minerals"
    ORGANIC_MATTER = "organic_matter"
    SUN_EXPOSURE = "sun_exposure"
    SOIL_TYPE = "soil_type"
    WATER = "water"


# Low / high colour per scalar overlay
_RAMPS: dict[Overlay, tuple[tuple[int, int, int], tuple[int, int, int]]] = {
    Overlay.ELEVATION: ((30, 60, 30), (230, 225, 210)),
    Overlay.FLOW: ((25, 25, 25), (80, 160, 255)),
    Overlay.HUMIDITY: ((150, 120, 70), (30, 80, 200)),
    Overlay.MINERALS: ((60, 50, 40), (220, 170, 90)),
    Overlay.ORGANIC_MATTER: ((170, 150, 110), (40, 30, 15)),
    Overlay.SUN_EXPOSURE: ((20, 20, 40), (250, 230, 120)),
    Overlay.WATER: ((25, 25, 25), (40, 90, 200)),
}

_SOIL_TYPE_COLOURS: dict[SoilType, tuple[int, int, int]] = {
    SoilType.LOAM: (110, 80, 50),
    SoilType.SAND: (215, 195, 140),
    SoilType.CLAY: (170, 90, 60),
    SoilType.PEAT: (50, 40, 30),
    SoilType.ROCK: (130, 130, 130),
}

_OVERLAY_KEYS: dict[int, Overlay] = {
    pygame.K_e: Overlay.ELEVATION,
    pygame.K_f: Overlay.FLOW,
    pygame.K_1: Overlay.HUMIDITY,
    pygame.K_2: Overlay.MINERALS,
    pygame.K_3: Overlay.ORGANIC_MATTER,
    pygame.K_4: Overlay.SUN_EXPOSURE,
    pygame.K_t: Overlay.SOIL_TYPE,
    pygame.K_w: Overlay.WATER,
}


def hex_to_rgb(colour: str) -> tuple[int, int, int]:
    """Convert ``"#rrggbb"`` to an RGB tuple."""
    value = colour.lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


def overlay_rgb(engine: SimulationEngine, overlay: Overlay) -> NDArray[np.uint8]:
    """Colour one overlay as a ``(rows, cols, 3)`` array.

    Standing water is blended on top of every overlay except SOIL_TYPE.
    """
    world = engine.world
    soil = world.soil
    shape = (soil.rows, soil.cols)

    if overlay is Overlay.SOIL_TYPE:
        palette = np.array([_SOIL_TYPE_COLOURS[t] for t in SOIL_TYPES], dtype=np.uint8)
        return palette[soil.soil_type]

    if overlay is Overlay.ELEVATION:
        values = normalized_heights(world.elevation) if world.elevation is not None else np.zeros(shape)
    elif overlay is Overlay.FLOW:
        values = world.flow.values if world.flow is not None else np.zeros(shape)
    elif overlay is Overlay.WATER:
        values = soil.water_level
    else:
        values = soil.layers[SoilProperty(overlay.value)]

    lo, hi = (np.array(c, dtype=np.float64) for c in _RAMPS[overlay])
    rgb = lo + values[..., None] * (hi - lo)
    water = soil.water_level[..., None]
    rgb = rgb * (1.0 - water) + _WATER * water
    return np.clip(rgb, 0, 255).astype(np.uint8)


class PygameRenderer:
    """Renders a SimulationEngine state into a Pygame window.

    Attributes:
        engine: The simulation engine to visualise.
        cell_size: Pixel size of each grid cell.
        dt: Sim-seconds advanced per tick.
        overlay: Grid layer currently drawn.
        screen: The Pygame display surface.
    """

    # Speed presets: ticks per second at 30 fps
    _SPEED_STEPS: ClassVar[list[float]] = [
        1.0,
        5.0,
        10.0,
        30.0,
        60.0,
        120.0,
        300.0,
        600.0,
    ]

    def __init__(
        self,
        engine: SimulationEngine,
        cell_size: int = 10,
        ticks_per_second: float = 30.0,
        dt: float = 1.0,
    ) -> None:
        """Initialise the renderer.

        Args:
            engine: The simulation engine to render.
            cell_size: Pixel width/height per grid cell.
            ticks_per_second: Simulation ticks per real-time second.
            dt: Sim-seconds advanced per tick.
        """
        self.engine = engine
        self.cell_size = cell_size
        self.ticks_per_second = ticks_per_second
        self.dt = dt
        self.overlay = Overlay.ELEVATION
        self._speed_index = self._nearest_speed(ticks_per_second)
        self._tick_accumulator = 0.0

        soil = engine.world.soil
        self._map_w = soil.cols * cell_size
        self._map_h = soil.rows * cell_size
        self._panel_width = 240
        self._win_w = self._map_w + self._panel_width
        self._win_h = self._map_h

        pygame.init()
        self.screen = pygame.display.set_mode((self._win_w, self._win_h))
        pygame.display.set_caption("terraflora")
        self.clock = pygame.time.Clock()
        self.font = pygame.font.SysFont("monospace", 14)
        self.running = True
        self.paused = False

    def _nearest_speed(self, tps: float) -> int:
        """Return the index of the closest speed preset."""
        diffs = [abs(s - tps) for s in self._SPEED_STEPS]
        return diffs.index(min(diffs))

    def run(self, fps: int = 30) -> None:
        """Main loop: handle events, step sim, render.

        Args:
            fps: Target frames per second.
        """
        while self.running:
            frame = self.clock.tick(fps) / 1000.0  # seconds elapsed
            self._handle_events()
            if not self.paused:
                self._tick_accumulator += self.ticks_per_second * frame
                steps = int(self._tick_accumulator)
                self._tick_accumulator -= steps
                for _ in range(steps):
                    self.engine.step(self.dt)
            self._draw()

        pygame.quit()

    def _handle_events(self) -> None:
        """Process Pygame input events."""
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                self.running = False
            elif event.type == pygame.KEYDOWN:
                if event.key == pygame.K_ESCAPE:
                    self.running = False
                elif event.key == pygame.K_SPACE:
                    self.paused = not self.paused
                elif event.key in (pygame.K_PLUS, pygame.K_EQUALS):
                    self._speed_index = min(len(self._SPEED_STEPS) - 1, self._speed_index + 1)
                    self.ticks_per_second = self._SPEED_STEPS[self._speed_index]
                elif event.key == pygame.K_MINUS:
                    self._speed_index = max(0, self._speed_index - 1)
                    self.ticks_per_second = self._SPEED_STEPS[self._speed_index]
                elif event.key in _OVERLAY_KEYS:
                    self.overlay = _OVERLAY_KEYS[event.key]

    def _draw(self) -> None:
        """Render one frame."""
        self.screen.fill(_BG)
        self._draw_overlay()
        self._draw_fruits()
        self._draw_plants()
        self._draw_info_panel()
        pygame.display.flip()

    def _to_screen(self, x: float, y: float) -> tuple[int, int]:
        soil = self.engine.world.soil
        scale = self.cell_size / soil.cell_size
        return int((x - soil.origin_x) * scale), int((y - soil.origin_y) * scale)

    def _draw_overlay(self) -> None:
        """Blit the current overlay scaled to the map area."""
        rgb = overlay_rgb(self.engine, self.overlay)
        # surfarray expects (width, height, 3)
        surface = pygame.surfarray.make_surface(np.ascontiguousarray(rgb.transpose(1, 0, 2)))
        self.screen.blit(pygame.transform.scale(surface, (self._map_w, self._map_h)), (0, 0))

    def _draw_plants(self) -> None:
        """Draw each plant as a dot sized by growth."""
        scale = self.cell_size / self.engine.world.soil.cell_size
        registry = self.engine.registry
        for plant in self.engine.world.plants:
            species = registry.get(plant.species_id)
            if species is None:
                continue
            if plant.stage is GrowthStage.DEAD:
                colour = _DEAD_PLANT
            elif plant.stage is GrowthStage.MATURE:
                colour = hex_to_rgb(species.mature_color)
            else:
                colour = hex_to_rgb(species.color)
            radius = max(1, int(species.max_size * max(plant.growth, 0.1) * scale))
            pygame.draw.circle(self.screen, colour, self._to_screen(plant.x, plant.y), radius)

    def _draw_fruits(self) -> None:
        """Draw fruits as single pixels in their species' fruit colour."""
        registry = self.engine.registry
        for fruit in self.engine.world.fruits:
            species = registry.get(fruit.species_id)
            colour = (200, 60, 60)
            if species is not None and species.fruit is not None:
                colour = hex_to_rgb(species.fruit.fruit_color)
            pygame.draw.circle(self.screen, colour, self._to_screen(fruit.x, fruit.y), 1)

    def _draw_info_panel(self) -> None:
        """Draw a stats panel on the right side of the window."""
        engine = self.engine
        env = engine.environment
        panel_x = self._map_w + 10
        y = 10

        alive: dict[str, int] = {}
        for plant in engine.world.plants:
            if plant.is_alive:
                alive[plant.species_id] = alive.get(plant.species_id, 0) + 1

        lines = [
            f"Tick: {engine.tick}",
            f"Year {env.year} {env.season.value} day {env.day_of_season}",
            f"Hour: {env.hour:05.2f}",
            f"Weather: {env.weather.value} ({env.rain_intensity:.2f})",
            f"Temp: {env.temperature:.1f}",
            f"Speed: {self.ticks_per_second:.0f} t/s",
            f"{'PAUSED' if self.paused else 'RUNNING'}",
            f"Overlay: {self.overlay.value}",
            "",
            "--- Flora ---",
            f"Plants: {sum(alive.values())}",
            f"Fruits: {len(engine.world.fruits)}",
        ]
        for species_id, count in sorted(alive.items()):
            lines.append(f"  {species_id}: {count}")

        lines += [
            "",
            "--- Controls ---",
            "SPACE: pause",
            "+/-: speed",
            "E/F/W/T: elev/flow/water/type",
            "1-4: hum/min/org/sun",
            "ESC: quit",
        ]

        for line in lines:
            surf = self.font.render(line, True, _TEXT)
            self.screen.blit(surf, (panel_x, y))
            y += 18
