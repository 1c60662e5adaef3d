#!/usr/bin/env python3
"""
Example script for generating a map.

Usage:
    python generate_map.py --seed 7 --output ./output_map
    python generate_map.py --config custom_config.json --no-water
"""

import argparse
import json
import sys
from pathlib import Path

import structlog

from tensor_streets import CityGenerator, MapConfig
from tensor_streets.exceptions import StreetGeneratorError
from tensor_streets.visualization import plot_summary

logger = structlog.get_logger()


def main():
    parser = argparse.ArgumentParser(
        description="Generate a tensor-field street map"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config JSON (optional)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the config seed"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="./outputs",
        help="Output directory"
    )
    parser.add_argument(
        "--no-water",
        action="store_true",
        help="Skip coastline and river"
    )

    args = parser.parse_args()

    config = MapConfig.from_json(args.config) if args.config else MapConfig()
    config = config.with_seed(args.seed)

    logger.info(
        "Generating map",
        seed=config.seed,
        width=config.viewport.width,
        height=config.viewport.height,
        output=args.output,
    )

    generator = CityGenerator(config)
    try:
        if not args.no_water:
            generator.generate_water()
        generator.generate_main_roads()
        generator.generate_major_roads()
        generator.generate_minor_roads()
        generator.generate_buildings()
    except StreetGeneratorError as e:
        logger.error("Generation failed", error=str(e))
        return 1

    metrics = generator.metrics()

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    config.to_json(str(output_dir / "config.json"))

    summary = {k: v for k, v in metrics.items() if k != "segment_lengths"}
    summary["degree_distribution"] = {str(k): v for k, v in summary["degree_distribution"].items()}
    with open(output_dir / "metrics.json", 'w') as f:
        json.dump(summary, f, indent=2)

    plot_summary(generator, metrics, save_path=str(output_dir / "map.png"))

    logger.info(
        "Map generated",
        main_roads=len(generator.main_road_lines),
        major_roads=len(generator.major_road_lines),
        minor_roads=len(generator.minor_road_lines),
        lots=len(generator.lots),
        nodes=metrics["num_nodes"],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
