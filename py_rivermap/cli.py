"""Command line entry point: generate a river map or run the inference engine on one."""

import argparse
import logging
import sys
from typing import List, Optional

import structlog

from .config import Settings, settings
from .core.diagnostics import Diagnostics
from .core.errors import RiverMapError
from .core.geometry import Position
from .core.river_generator import RiverOptions, create_river_map
from .core.river_inference import InferenceOptions, infer_terrain
from .core.terrain import reveal
from .utils.random import get_prng, set_random_seed

logger = structlog.get_logger()


def configure_logging(config: Settings = settings) -> None:
    """Wire structlog to the standard library logger with a JSON or console renderer."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=config.log_level.upper())

    renderer = (
        structlog.processors.JSONRenderer()
        if config.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def pick_revealed_positions(width: int, height: int, count: int, river_ends: List[Position]) -> List[Position]:
    """River ends plus ``count`` distinct cells drawn from the ambient PRNG."""
    prng = get_prng()
    remaining = [Position(x, y) for x in range(width) for y in range(height) if Position(x, y) not in river_ends]
    picked = list(river_ends)
    for _ in range(min(count, len(remaining))):
        picked.append(remaining.pop(prng.randrange(len(remaining))))
    return picked


def _generate(args) -> int:
    diagnostics = Diagnostics("River generation")
    river = create_river_map(args.width, args.height, args.seed, RiverOptions.from_settings(), diagnostics)
    if args.diagnostics:
        diagnostics.log()

    print(river.preview())
    print()
    print(f"Seed {river.seed} (attempt {river.attempt}), {len(river.path)} water cells")
    for index, decision in enumerate(river.decisions):
        print(f"{index}: {decision}")
    return 0


def _infer(args) -> int:
    river = create_river_map(args.width, args.height, args.seed)

    set_random_seed(river.seed)
    ends = [river.entrance, river.exit] if args.reveal_ends else []
    revealed = pick_revealed_positions(river.terrain.width, river.terrain.height, args.reveal, ends)
    observations = reveal(river.terrain, revealed)

    diagnostics = Diagnostics("Terrain inference")
    result = infer_terrain(observations, InferenceOptions.from_settings(), diagnostics=diagnostics)
    if args.diagnostics:
        diagnostics.log()

    print(river.preview())
    print()
    print(f"Revealed {len(revealed)} cells, {result.passes} passes, water estimate {result.water_estimate}")
    print(result.heatmap())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="py_rivermap", description="Generate river maps and infer hidden rivers")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_map_arguments(subparser):
        subparser.add_argument("--width", type=int, default=settings.map_width, help="Map width in cells")
        subparser.add_argument("--height", type=int, default=settings.map_height, help="Map height in cells")
        subparser.add_argument("--seed", type=int, help="First generation seed (random if omitted)")
        subparser.add_argument("--diagnostics", action="store_true", help="Log the diagnostics tree")

    generate = subparsers.add_parser("generate", help="Generate a river and print it")
    add_map_arguments(generate)
    generate.set_defaults(handler=_generate)

    infer = subparsers.add_parser("infer", help="Generate a river, reveal some cells and infer the rest")
    add_map_arguments(infer)
    infer.add_argument("--reveal", type=int, default=20, help="Number of random cells to reveal")
    infer.add_argument("--reveal-ends", action="store_true", help="Also reveal the river entrance and exit")
    infer.set_defaults(handler=_infer)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except RiverMapError as exc:
        logger.error("Command failed", command=args.command, error=str(exc), error_type=type(exc).__name__)
        return 1


if __name__ == "__main__":
    sys.exit(main())
