"""Entry point for ``python -m terraflora``.

Loads a YAML config, builds a simulation engine with the configured
plant populations and either runs it headless for a number of game days
(printing the ecosystem report) or opens a Pygame window to watch it.
"""

from __future__ import annotations

import argparse
import pathlib
import sys

from terraflora.simulation.config import DEFAULT_CONFIG, SimulationConfig
from terraflora.simulation.engine import SimulationEngine
from terraflora.simulation.logs import configure_logging
from terraflora.simulation.report import format_report, run_headless, snapshot_interval, timeline_csv


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="terraflora",
        description="Terraflora - terrain hydrology and plant ecosystem simulator",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=DEFAULT_CONFIG,
        help="Path to YAML config file (default: bundled default.yaml)",
    )
    parser.add_argument(
        "--days",
        type=float,
        default=10.0,
        help="Game days to simulate headless (default: 10)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the world seed from the config",
    )
    parser.add_argument(
        "--dt",
        type=float,
        default=1.0,
        help="Sim-seconds per tick (default: 1)",
    )
    parser.add_argument(
        "--csv",
        action="store_true",
        help="Print the snapshot timeline as CSV instead of the report",
    )
    parser.add_argument(
        "--view",
        action="store_true",
        help="Open the Pygame viewer instead of running headless",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=10,
        help="Viewer pixel size per grid cell (default: 10)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=30.0,
        help="Viewer simulation ticks per second (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, create engine, run headless or launch renderer."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.view:
        try:
            snapshot_interval(args.dt)
        except ValueError as exc:
            parser.error(str(exc))
    configure_logging(args.log_level)

    config = SimulationConfig.from_yaml(args.config)
    if args.seed is not None:
        config.seed = args.seed
    engine = SimulationEngine(config=config)

    if args.view:
        # Imported lazily so headless runs never initialise a display
        from terraflora.ui.pygame_client import PygameRenderer

        renderer = PygameRenderer(
            engine=engine,
            cell_size=args.cell_size,
            ticks_per_second=args.speed,
            dt=args.dt,
        )
        renderer.run()
        return

    result = run_headless(engine, args.days, dt=args.dt)
    if args.csv:
        sys.stdout.write(timeline_csv(result))
    else:
        print(format_report(result, engine.registry))


if __name__ == "__main__":
    main()
