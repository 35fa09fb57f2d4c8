"""Parser module: include-aware token stream and statement dispatcher.

Components:
    include: TokenStream splicing Include/Import files into one token supply
    dispatcher: SceneParser enforcing phase and scope rules

Entry points:
    parse_string: Parse an in-memory scene description
    parse_file: Parse a scene file (relative includes resolve next to it)
"""

from __future__ import annotations

from pathlib import Path

from src.pbrt.config import ParserConfig
from src.pbrt.scene.builder import Scene

from .dispatcher import Phase, SceneParser
from .include import TokenStream


def parse_string(text: str, config: ParserConfig | None = None) -> Scene:
    """Parse scene text held in memory.

    Relative Include/Import paths resolve against `config.base_dir`.

    Raises:
        SceneParseError: On the first lexical, parameter, directive or
            I/O error.
    """
    return SceneParser(TokenStream.from_string(text, config)).parse()


def parse_file(path: str | Path, config: ParserConfig | None = None) -> Scene:
    """Parse the scene file at `path`.

    Raises:
        SceneParseError: On the first lexical, parameter, directive or
            I/O error (SceneIOError if `path` itself cannot be read).
    """
    return SceneParser(TokenStream.from_file(path, config)).parse()


__all__ = [
    "parse_string",
    "parse_file",
    "SceneParser",
    "Phase",
    "TokenStream",
]
