"""Smoke tests for the UI module and CLI (no display required)."""

from __future__ import annotations

import numpy as np
import pytest

from terraflora.simulation.config import DEFAULT_CONFIG, SimulationConfig
from terraflora.simulation.engine import SimulationEngine
from terraflora.ui.pygame_client import Overlay, PygameRenderer, hex_to_rgb, overlay_rgb


def test_pygame_renderer_importable() -> None:
    """PygameRenderer class is importable without initialising pygame."""
    assert PygameRenderer is not None


def test_hex_to_rgb() -> None:
    assert hex_to_rgb("#ff8000") == (255, 128, 0)
    assert hex_to_rgb("4a7a3a") == (74, 122, 58)


def test_every_overlay_renders(small_config: SimulationConfig) -> None:
    engine = SimulationEngine(config=small_config, populate=False)
    engine.world.soil.water_level[3, 3] = 0.5
    for overlay in Overlay:
        rgb = overlay_rgb(engine, overlay)
        assert rgb.shape == (20, 20, 3)
        assert rgb.dtype == np.uint8


def test_main_module_importable() -> None:
    """The __main__ module is importable and exposes main()."""
    from terraflora.__main__ import main

    assert callable(main)


def test_cli_defaults() -> None:
    from terraflora.__main__ import build_parser

    args = build_parser().parse_args([])
    assert args.config == DEFAULT_CONFIG
    assert args.days == 10.0
    assert args.seed is None
    assert not args.view
    assert not args.csv

    args = build_parser().parse_args(["--days", "2", "--seed", "5", "--csv", "--log-level", "DEBUG"])
    assert args.days == 2.0
    assert args.seed == 5
    assert args.csv
    assert args.log_level == "DEBUG"


def test_cli_rejects_uneven_dt() -> None:
    from terraflora.__main__ import main

    with pytest.raises(SystemExit) as excinfo:
        main(["--dt", "7"])
    assert excinfo.value.code == 2
