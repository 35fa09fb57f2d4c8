"""Exception hierarchy for scene parsing.

Every error raised while parsing derives from SceneParseError and carries
enough location context (line, source file, chain of including files) to be
shown to a user directly.

Hierarchy:
    SceneParseError
        LexError
        ParameterError
            UnknownTypeError
            ArityMismatchError
            MalformedValueError
        DirectiveError
            UnknownDirectiveError
            WrongPhaseError
            UnbalancedScopeError
            NestedObjectError
            UndefinedNameError
            DuplicateNameError
            UnexpectedTokenError
            InvalidArgumentError
        SceneIOError
"""

from __future__ import annotations


class SceneParseError(Exception):
    """Base exception for all scene parsing failures.

    Attributes:
        message: Human-readable description without location prefix.
        line: 1-based line number in `source`, if known.
        source: Display name of the file (or "<string>") the error occurred in.
        include_chain: Files that include `source`, outermost first.
    """

    def __init__(
        self,
        message: str,
        line: int | None = None,
        source: str | None = None,
        include_chain: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.source = source
        self.include_chain = tuple(include_chain)

    def locate(self, source: str, include_chain: tuple[str, ...]) -> None:
        """Fill in file context the raiser did not provide."""
        if self.source is None:
            self.source = source
        if not self.include_chain and self.source == source:
            self.include_chain = tuple(include_chain)

    def __str__(self) -> str:
        where = self.source or "<unknown>"
        if self.line is not None:
            where = f"{where}:{self.line}"
        text = f"{where}: {self.message}"
        chain = list(self.include_chain)
        if chain and chain[-1] == self.source:
            chain.pop()
        for including in reversed(chain):
            text += f"\n  included from {including}"
        return text


class LexError(SceneParseError):
    """Unterminated string, malformed number or unexpected character."""

    pass


# =============================================================================
# Parameter Errors
# =============================================================================


class ParameterError(SceneParseError):
    """A typed parameter could not be decoded."""

    pass


class UnknownTypeError(ParameterError):
    """Parameter type keyword is not in the type table."""

    pass


class ArityMismatchError(ParameterError):
    """Array length is not a positive multiple of the type's arity.

    Attributes:
        arity: Number of components per value the type requires.
        given: Number of components actually supplied.
    """

    def __init__(
        self,
        message: str,
        arity: int,
        given: int,
        line: int | None = None,
    ) -> None:
        super().__init__(message, line=line)
        self.arity = arity
        self.given = given


class MalformedValueError(ParameterError):
    """A value token cannot convert to the declared primitive type."""

    pass


# =============================================================================
# Directive Errors
# =============================================================================


class DirectiveError(SceneParseError):
    """A directive is illegal where it appears."""

    pass


class UnknownDirectiveError(DirectiveError):
    """Bareword is not a recognized directive name."""

    pass


class WrongPhaseError(DirectiveError):
    """Directive used outside the phase it belongs to."""

    pass


class UnbalancedScopeError(DirectiveError):
    """End without matching Begin, or Begin never closed."""

    pass


class NestedObjectError(DirectiveError):
    """ObjectBegin (or ObjectInstance) inside an object definition."""

    pass


class UndefinedNameError(DirectiveError):
    """Reference to a name that has not been declared yet.

    Attributes:
        name: The unresolved name.
    """

    def __init__(self, message: str, name: str, line: int | None = None) -> None:
        super().__init__(message, line=line)
        self.name = name


class DuplicateNameError(DirectiveError):
    """A named material, medium, texture or object is declared twice."""

    pass


class UnexpectedTokenError(DirectiveError):
    """Directive operand is missing or has the wrong token kind."""

    pass


class InvalidArgumentError(DirectiveError):
    """Directive operand is well-formed but semantically invalid."""

    pass


# =============================================================================
# I/O Errors
# =============================================================================


class SceneIOError(SceneParseError, OSError):
    """Include/Import target could not be opened or read.

    Attributes:
        path: The path that failed to open.
    """

    def __init__(
        self,
        message: str,
        path: str,
        line: int | None = None,
        source: str | None = None,
        include_chain: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, line=line, source=source, include_chain=include_chain)
        self.path = path
