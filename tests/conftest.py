"""Pytest configuration for scene parser tests.

This module provides shared fixtures for all test modules: writing scene
files into a temporary directory and parsing world-block snippets.
"""

from collections.abc import Callable
from pathlib import Path

import pytest

from src.pbrt.config import ParserConfig
from src.pbrt.parser import parse_string
from src.pbrt.scene.builder import Scene

EXAMPLE_SCENES = Path(__file__).resolve().parent.parent / "examples" / "scenes"


@pytest.fixture
def write_scene(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper that writes scene text to `tmp_path/<name>`.

    Parent directories are created as needed, so names such as
    "geometry/mesh.pbrt" work.
    """

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def parse_world(tmp_path: Path) -> Callable[[str], Scene]:
    """Return a helper that parses text placed after `WorldBegin`.

    Relative includes resolve against `tmp_path`.
    """
    config = ParserConfig(base_dir=tmp_path)

    def _parse(body: str) -> Scene:
        return parse_string("WorldBegin\n" + body, config)

    return _parse


@pytest.fixture
def example_scenes() -> Path:
    """Directory holding the sample scenes shipped in examples/."""
    return EXAMPLE_SCENES
