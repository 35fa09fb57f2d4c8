#!/usr/bin/env python3
"""Parse a pbrt scene file and print what it contains.

This script parses a scene (following Include/Import directives), then
prints either a short per-kind summary or the whole scene as JSON.

Usage:
    python -m examples.dump_scene SCENE [options]

Options:
    --json              Print the full scene as JSON instead of a summary
    --indent N          JSON indentation (default: 2)
    --max-include-depth Maximum Include/Import nesting (default: 64)
    --verbose           Log include activity to stderr

Example:
    python -m examples.dump_scene examples/scenes/cornell_box.pbrt --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from src.pbrt.config import ParserConfig
from src.pbrt.core.errors import SceneParseError
from src.pbrt.parser import parse_file, parse_string
from src.pbrt.scene.builder import Scene


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Parse a pbrt scene file and print its contents.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "scene",
        type=str,
        help='Scene file to parse ("-" reads from stdin)',
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full scene as JSON",
    )
    parser.add_argument(
        "--indent",
        type=int,
        default=2,
        help="JSON indentation (default: 2)",
    )
    parser.add_argument(
        "--max-include-depth",
        type=int,
        default=64,
        help="Maximum Include/Import nesting (default: 64)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log include activity to stderr",
    )
    return parser.parse_args(argv)


def format_summary(scene: Scene) -> str:
    """One line per non-empty part of the scene."""
    lines = []
    if scene.camera is not None:
        lines.append(f"Camera: {scene.camera.type}")
    for label, option in (
        ("Film", scene.film),
        ("Sampler", scene.sampler),
        ("Integrator", scene.integrator),
        ("Accelerator", scene.accelerator),
        ("ColorSpace", scene.color_space),
        ("PixelFilter", scene.pixel_filter),
    ):
        if option is not None:
            lines.append(f"{label}: {option.type}")

    counts = {
        "shapes": len(scene.shapes),
        "lights": len(scene.lights),
        "area lights": len(scene.area_lights),
        "materials": len(scene.materials),
        "textures": len(scene.textures),
        "media": len(scene.media),
        "objects": len(scene.objects),
        "instances": len(scene.instances),
    }
    for label, count in counts.items():
        if count:
            lines.append(f"{label}: {count}")
    lines.append(f"primitives (instances expanded): {scene.get_primitive_count()}")

    for warning in scene.warnings:
        lines.append(f"warning: {warning}")
    return "\n".join(lines)


def dump_scene(
    scene_path: str,
    as_json: bool = False,
    indent: int = 2,
    max_include_depth: int = 64,
) -> str:
    """Parse `scene_path` and return the text to print.

    Args:
        scene_path: Path to the scene file, or "-" for stdin.
        as_json: If True, return the full scene as JSON.
        indent: JSON indentation.
        max_include_depth: Maximum Include/Import nesting.

    Returns:
        The summary or JSON text.
    """
    if scene_path == "-":
        config = ParserConfig(base_dir=Path.cwd(), max_include_depth=max_include_depth)
        scene = parse_string(sys.stdin.read(), config)
    else:
        config = ParserConfig(
            base_dir=Path(scene_path).parent, max_include_depth=max_include_depth
        )
        scene = parse_file(scene_path, config)

    if as_json:
        return json.dumps(scene.to_dict(), indent=indent)
    return format_summary(scene)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        print(
            dump_scene(
                args.scene,
                as_json=args.json,
                indent=args.indent,
                max_include_depth=args.max_include_depth,
            )
        )
        return 0
    except SceneParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
