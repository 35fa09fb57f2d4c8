"""Include-aware token supply.

A TokenStream is a stack of tokenizers, one per open file. Include and
Import push a new tokenizer for the referenced file; when it runs out of
tokens the stream falls back to the including file automatically. Each
tokenizer counts its own lines, so diagnostics always point into the right
file.

Directive arguments never span a file boundary: `peek` and `take` only look
at the innermost file, and exhausted files are only popped by
`next_directive_token`, between two directives. This is also the moment an
Import's exhaustion callback runs to discard its graphics state.

Example:
    >>> stream = TokenStream.from_string('Shape "sphere"')
    >>> stream.next_directive_token().text
    'Shape'
    >>> stream.take().text
    'sphere'
"""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from src.pbrt.config import ParserConfig
from src.pbrt.core.errors import SceneIOError
from src.pbrt.core.tokenizer import Token, Tokenizer

logger = logging.getLogger(__name__)


@dataclass
class _Frame:
    """One open file in the include stack."""

    tokenizer: Tokenizer
    path: Path | None
    include_line: int | None = None
    on_exhausted: Callable[[], None] | None = None
    lookahead: list[Token] = field(default_factory=list)

    def peek(self) -> Token | None:
        if not self.lookahead:
            token = next(self.tokenizer, None)
            if token is None:
                return None
            self.lookahead.append(token)
        return self.lookahead[0]

    def take(self) -> Token | None:
        if self.lookahead:
            return self.lookahead.pop()
        return next(self.tokenizer, None)


def read_scene_text(path: Path, config: ParserConfig) -> str:
    """Read a scene file, decompressing `.gz` files when allowed."""
    if config.allow_gzip and path.suffix == ".gz":
        with gzip.open(path, "rt", encoding=config.encoding) as f:
            return f.read()
    return path.read_text(encoding=config.encoding)


class TokenStream:
    """Stack of token producers behind one "next token" operation."""

    def __init__(
        self,
        tokenizer: Tokenizer,
        path: Path | None = None,
        config: ParserConfig | None = None,
    ) -> None:
        self.config = config or ParserConfig()
        self._frames: list[_Frame] = [_Frame(tokenizer, path)]
        self.last_line = 1

    @classmethod
    def from_string(cls, text: str, config: ParserConfig | None = None) -> TokenStream:
        return cls(Tokenizer(text), None, config)

    @classmethod
    def from_file(cls, path: str | Path, config: ParserConfig | None = None) -> TokenStream:
        """Open the root scene file.

        Raises:
            SceneIOError: If the file cannot be read.
        """
        config = config or ParserConfig()
        path = Path(path)
        try:
            text = read_scene_text(path, config)
        except (OSError, UnicodeDecodeError) as e:
            raise SceneIOError(f"cannot open scene file {path}: {e}", path=str(path)) from e
        return cls(Tokenizer(text, str(path)), path, config)

    # =========================================================================
    # Location
    # =========================================================================

    @property
    def depth(self) -> int:
        """Number of open files (1 for the root input)."""
        return len(self._frames)

    @property
    def source(self) -> str:
        """Display name of the innermost open file."""
        return self._frames[-1].tokenizer.source

    @property
    def include_chain(self) -> tuple[str, ...]:
        """Paths of the files including the innermost one, outermost first."""
        return tuple(frame.tokenizer.source for frame in self._frames[:-1])

    @property
    def base_dir(self) -> Path:
        """Directory relative includes resolve against."""
        for frame in reversed(self._frames):
            if frame.path is not None:
                return frame.path.parent
        return self.config.base_dir

    # =========================================================================
    # Token Supply
    # =========================================================================

    def peek(self) -> Token | None:
        """Next token of the innermost file, without consuming it."""
        return self._frames[-1].peek()

    def take(self) -> Token | None:
        """Consume the next token of the innermost file."""
        token = self._frames[-1].take()
        if token is not None:
            self.last_line = token.line
        return token

    def next_directive_token(self) -> Token | None:
        """Next token across files, popping exhausted included files.

        Returns:
            The next token, or None when every file is exhausted.
        """
        while True:
            token = self.take()
            if token is not None:
                return token
            if len(self._frames) == 1:
                return None
            frame = self._frames.pop()
            logger.debug("finished %s", frame.tokenizer.source)
            self.last_line = frame.include_line or self.last_line
            if frame.on_exhausted is not None:
                frame.on_exhausted()

    # =========================================================================
    # Include Resolution
    # =========================================================================

    def resolve(self, relative: str) -> Path:
        path = Path(relative)
        if path.is_absolute():
            return path
        return self.base_dir / path

    def open(
        self,
        relative: str,
        line: int | None = None,
        on_exhausted: Callable[[], None] | None = None,
    ) -> Path:
        """Push the tokens of `relative` on top of the current file.

        Args:
            relative: Path from the Include/Import directive.
            line: Line of the directive in the current file.
            on_exhausted: Called once the new file runs out of tokens.

        Returns:
            The resolved path.

        Raises:
            SceneIOError: If the file cannot be read, is already being read
                (recursive include), or nesting exceeds the configured depth.
        """
        path = self.resolve(relative)

        if len(self._frames) >= self.config.max_include_depth:
            raise SceneIOError(
                f"include depth exceeds {self.config.max_include_depth} opening {path}",
                path=str(path),
                line=line,
                source=self.source,
                include_chain=self.include_chain + (self.source,),
            )
        for frame in self._frames:
            if frame.path is not None and frame.path.resolve() == path.resolve():
                raise SceneIOError(
                    f"recursive include of {path}",
                    path=str(path),
                    line=line,
                    source=self.source,
                    include_chain=self.include_chain + (self.source,),
                )

        try:
            text = read_scene_text(path, self.config)
        except (OSError, UnicodeDecodeError) as e:
            reason = e.strerror if isinstance(e, OSError) and e.strerror else str(e)
            raise SceneIOError(
                f"cannot open included file {path}: {reason}",
                path=str(path),
                line=line,
                source=self.source,
                include_chain=self.include_chain + (self.source,),
            ) from e

        logger.debug("reading %s (from %s:%s)", path, self.source, line)
        self._frames.append(_Frame(Tokenizer(text, str(path)), path, line, on_exhausted))
        return path
