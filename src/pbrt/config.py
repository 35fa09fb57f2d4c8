"""Parser configuration.

Example:
    >>> from pathlib import Path
    >>> from src.pbrt.config import ParserConfig
    >>> config = ParserConfig(base_dir=Path("scenes"), max_include_depth=8)
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ParserConfig:
    """Settings that control how a scene is read.

    Attributes:
        base_dir: Directory that relative Include/Import paths resolve
            against when the top-level input is an in-memory string.
            File input always resolves against the including file's own
            directory. Default is the current working directory.
        encoding: Text encoding of scene files. Default is UTF-8.
        max_include_depth: Maximum nesting of Include/Import files.
        allow_gzip: Transparently decompress included files ending in ".gz".
    """

    base_dir: Path = field(default_factory=Path.cwd)
    encoding: str = "utf-8"
    max_include_depth: int = 64
    allow_gzip: bool = True

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        if self.max_include_depth < 1:
            raise ValueError(
                f"max_include_depth must be at least 1, got {self.max_include_depth}"
            )
