"""Command-line interface for world generation."""

import argparse
import sys
import time

import structlog
from pydantic import ValidationError

from .biomes import biome_coverage
from .config import WorldGenConfig, find_config, load_config
from .exceptions import WorldGenError
from .orchestrator import GenerationOrchestrator, ProgressEvent


def configure_logging(verbose: bool) -> None:
    """Configure structlog for console output."""
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(10 if verbose else 20),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a procedural world from a seed"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Preset name (from configs/) or path to a TOML config file",
    )
    parser.add_argument(
        "--seed", type=int, default=None, help="World seed (overrides config)"
    )
    parser.add_argument(
        "--size", type=int, default=None, help="Grid side length (overrides config)"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Verbose logging"
    )
    return parser


def resolve_config(args: argparse.Namespace) -> WorldGenConfig:
    """Load the requested config and apply command-line overrides.

    Raises:
        FileNotFoundError: If the config cannot be found.
        pydantic.ValidationError: If an override is out of range.
    """
    config = load_config(find_config(args.config)) if args.config else WorldGenConfig()

    overrides = {}
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.size is not None:
        overrides["world_size"] = args.size
    if overrides:
        config = WorldGenConfig.model_validate({**config.model_dump(), **overrides})
    return config


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for world generation."""
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    logger = structlog.get_logger()

    try:
        config = resolve_config(args)
    except FileNotFoundError as e:
        logger.error("config_not_found", error=str(e))
        sys.exit(1)
    except ValidationError as e:
        logger.error("config_invalid", error=str(e))
        sys.exit(1)

    print(f"Generating {config.world_size}x{config.world_size} world with seed {config.seed}")
    print()

    last_label = None

    def report(event: ProgressEvent) -> None:
        nonlocal last_label
        if event.label != last_label:
            print(f"  [{event.progress:5.0%}] {event.label}")
            last_label = event.label

    orchestrator = GenerationOrchestrator(config, progress_callback=report)

    start_time = time.time()
    try:
        result = orchestrator.run()
    except WorldGenError as e:
        logger.error("generation_failed", error=str(e))
        sys.exit(1)
    gen_time = time.time() - start_time

    print()
    print(f"Generation complete in {gen_time:.1f}s")
    print()

    print("Biome coverage:")
    for biome, fraction in sorted(
        biome_coverage(result.biome_map()).items(), key=lambda item: -item[1]
    ):
        if fraction > 0:
            print(f"  {biome.value:<10} {fraction:6.1%}")
    print()

    print("Features:")
    print(f"  lakes:         {len(result.lakes)}")
    print(f"  peaks:         {len(result.peaks)}")
    print(f"  village sites: {len(result.village_sites)}")
    print(f"  cave mouths:   {len(result.cave_mouths)}")
    print(f"  rivers:        {len(result.river_paths)}")
    print()

    if orchestrator.validation is not None and not orchestrator.validation.passed:
        print(f"Validation failed with {len(orchestrator.validation.errors)} errors")

    print(f"Checksum: {result.checksum()}")


if __name__ == "__main__":
    main()
