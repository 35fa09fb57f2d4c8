"""Typed parameter values and the parameter-list decoder.

Many directives take a trailing parameter list of the form:

    "<type> <name>" <value>
    "<type> <name>" [ <value> <value> ... ]

The type keyword selects a fixed arity (number of primitive components per
logical value) and a primitive kind. The decoder checks both at decode time,
so every ParameterValue handed to the rest of the system is well-formed.

Type table:
    integer=1, float=1, point2=2, vector2=2, point3=3, vector3=3, normal3=3,
    rgb/color=3, bool=1, string=1, texture=1, blackbody=1,
    spectrum = 3 floats (rgb) | even-length (wavelength, amplitude) pairs |
    one string naming a spectrum.

Example:
    >>> from src.pbrt.core.params import decode_parameter_list
    >>> from src.pbrt.parser.include import TokenStream
    >>> stream = TokenStream.from_string('"spectrum sigma_a" [200 0 900 0]')
    >>> params = decode_parameter_list(stream)
    >>> params.get("sigma_a").pairs
    ((200.0, 0.0), (900.0, 0.0))
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Protocol

import numpy as np
import numpy.typing as npt

from src.pbrt.core.errors import (
    ArityMismatchError,
    MalformedValueError,
    UnknownTypeError,
)
from src.pbrt.core.tokenizer import Token, TokenKind


class TokenCursor(Protocol):
    """Minimal token supply the decoder needs."""

    def peek(self) -> Token | None: ...

    def take(self) -> Token | None: ...


class ParamType(Enum):
    """Tag of a parameter value."""

    INTEGER = "integer"
    FLOAT = "float"
    POINT2 = "point2"
    VECTOR2 = "vector2"
    POINT3 = "point3"
    VECTOR3 = "vector3"
    NORMAL3 = "normal3"
    RGB = "rgb"
    SPECTRUM = "spectrum"
    NAMED_SPECTRUM = "named_spectrum"
    BLACKBODY = "blackbody"
    BOOL = "bool"
    STRING = "string"
    TEXTURE = "texture"


# Primitive kind per type; arity per type
_FLOAT_TYPES = frozenset(
    {
        ParamType.FLOAT,
        ParamType.POINT2,
        ParamType.VECTOR2,
        ParamType.POINT3,
        ParamType.VECTOR3,
        ParamType.NORMAL3,
        ParamType.RGB,
        ParamType.SPECTRUM,
        ParamType.BLACKBODY,
    }
)
_STRING_TYPES = frozenset({ParamType.STRING, ParamType.TEXTURE, ParamType.NAMED_SPECTRUM})

ARITY: dict[ParamType, int] = {
    ParamType.INTEGER: 1,
    ParamType.FLOAT: 1,
    ParamType.POINT2: 2,
    ParamType.VECTOR2: 2,
    ParamType.POINT3: 3,
    ParamType.VECTOR3: 3,
    ParamType.NORMAL3: 3,
    ParamType.RGB: 3,
    ParamType.SPECTRUM: 2,
    ParamType.NAMED_SPECTRUM: 1,
    ParamType.BLACKBODY: 1,
    ParamType.BOOL: 1,
    ParamType.STRING: 1,
    ParamType.TEXTURE: 1,
}

# Type keywords accepted in parameter headers
TYPE_KEYWORDS: dict[str, ParamType] = {
    "integer": ParamType.INTEGER,
    "float": ParamType.FLOAT,
    "point2": ParamType.POINT2,
    "vector2": ParamType.VECTOR2,
    "point3": ParamType.POINT3,
    "vector3": ParamType.VECTOR3,
    "normal3": ParamType.NORMAL3,
    "rgb": ParamType.RGB,
    "color": ParamType.RGB,
    "spectrum": ParamType.SPECTRUM,
    "blackbody": ParamType.BLACKBODY,
    "bool": ParamType.BOOL,
    "string": ParamType.STRING,
    "texture": ParamType.TEXTURE,
    # pbrt-v3 spellings
    "point": ParamType.POINT3,
    "vector": ParamType.VECTOR3,
    "normal": ParamType.NORMAL3,
}


# =============================================================================
# Parameter Values
# =============================================================================


@dataclass(frozen=True)
class ParameterValue:
    """A typed, arity-checked parameter value.

    Attributes:
        type: The value's tag.
        values: Flat sequence of primitive components. A scalar parameter
            is a sequence of length one arity unit.
    """

    type: ParamType
    values: tuple[Any, ...]

    @property
    def arity(self) -> int:
        return ARITY[self.type]

    @property
    def count(self) -> int:
        """Number of logical values (components divided by arity)."""
        return len(self.values) // self.arity

    @property
    def first(self) -> Any:
        return self.values[0]

    def grouped(self) -> tuple[tuple[Any, ...], ...]:
        """Split the components into tuples of `arity` elements."""
        n = self.arity
        return tuple(tuple(self.values[i : i + n]) for i in range(0, len(self.values), n))

    @property
    def pairs(self) -> tuple[tuple[float, float], ...]:
        """(wavelength, amplitude) pairs of a sampled spectrum."""
        if self.type is not ParamType.SPECTRUM:
            raise TypeError(f"{self.type.value} value has no spectrum pairs")
        return self.grouped()  # type: ignore[return-value]

    def as_array(self) -> npt.NDArray[np.float64]:
        """Numeric components as an array of shape (count, arity)."""
        if self.type in _STRING_TYPES or self.type is ParamType.BOOL:
            raise TypeError(f"{self.type.value} value is not numeric")
        return np.asarray(self.values, dtype=np.float64).reshape(-1, self.arity)

    def to_json(self) -> dict[str, Any]:
        return {"type": self.type.value, "values": list(self.values)}


@dataclass(frozen=True)
class Parameter:
    """A named parameter.

    Attributes:
        name: Parameter name from the `"<type> <name>"` header.
        value: The decoded value.
    """

    name: str
    value: ParameterValue

    @property
    def type(self) -> ParamType:
        return self.value.type


class ParameterList:
    """Ordered, immutable sequence of parameters.

    Names need not be unique: every occurrence is kept in declaration order,
    while lookups return the last occurrence.
    """

    __slots__ = ("_params", "_index")

    def __init__(self, params: tuple[Parameter, ...] | list[Parameter] = ()) -> None:
        self._params: tuple[Parameter, ...] = tuple(params)
        self._index: dict[str, Parameter] = {p.name: p for p in self._params}

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __bool__(self) -> bool:
        return bool(self._params)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterList):
            return NotImplemented
        return self._params == other._params

    def __hash__(self) -> int:
        return hash(self._params)

    def __repr__(self) -> str:
        return f"ParameterList({list(self._params)!r})"

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self._params)

    def get(self, name: str) -> ParameterValue | None:
        """Return the value of the last parameter called `name`."""
        param = self._index.get(name)
        return param.value if param is not None else None

    def merged_over(self, defaults: ParameterList) -> ParameterList:
        """Prepend `defaults` so that this list's entries shadow them."""
        if not defaults:
            return self
        return ParameterList(defaults._params + self._params)

    def _typed(self, name: str, types: frozenset[ParamType]) -> ParameterValue | None:
        value = self.get(name)
        if value is None or value.type not in types:
            return None
        return value

    # -------------------------------------------------------------------------
    # Typed accessors
    # -------------------------------------------------------------------------

    def get_floats(self, name: str) -> tuple[float, ...] | None:
        value = self._typed(name, frozenset({ParamType.FLOAT}))
        return value.values if value is not None else None

    def get_float(self, name: str, default: float | None = None) -> float | None:
        floats = self.get_floats(name)
        return floats[0] if floats else default

    def get_ints(self, name: str) -> tuple[int, ...] | None:
        value = self._typed(name, frozenset({ParamType.INTEGER}))
        return value.values if value is not None else None

    def get_int(self, name: str, default: int | None = None) -> int | None:
        ints = self.get_ints(name)
        return ints[0] if ints else default

    def get_string(self, name: str, default: str | None = None) -> str | None:
        value = self._typed(name, frozenset({ParamType.STRING}))
        return value.first if value is not None else default

    def get_bool(self, name: str, default: bool | None = None) -> bool | None:
        value = self._typed(name, frozenset({ParamType.BOOL}))
        return value.first if value is not None else default

    def get_texture(self, name: str) -> str | None:
        value = self._typed(name, frozenset({ParamType.TEXTURE}))
        return value.first if value is not None else None

    def get_rgb(self, name: str) -> tuple[float, float, float] | None:
        value = self._typed(name, frozenset({ParamType.RGB}))
        return value.grouped()[0] if value is not None else None  # type: ignore[return-value]

    def get_point3s(self, name: str) -> tuple[tuple[float, float, float], ...] | None:
        value = self._typed(name, frozenset({ParamType.POINT3}))
        return value.grouped() if value is not None else None  # type: ignore[return-value]

    def to_dict(self) -> list[dict[str, Any]]:
        """Serialize in declaration order (duplicates preserved)."""
        return [{"name": p.name, **p.value.to_json()} for p in self._params]


EMPTY_PARAMS = ParameterList()


# =============================================================================
# Decoding
# =============================================================================


def parse_header(token: Token) -> tuple[str, str]:
    """Split a `"<type> <name>"` header into its two words."""
    words = token.text.split()
    if len(words) != 2:
        raise MalformedValueError(
            f"malformed parameter declaration \"{token.text}\", expected \"<type> <name>\"",
            line=token.line,
        )
    return words[0], words[1]


def _read_values(cursor: TokenCursor, header: Token) -> list[Token]:
    token = cursor.take()
    if token is None:
        raise MalformedValueError(
            f'parameter "{header.text}" has no value', line=header.line
        )
    if token.kind is TokenKind.RIGHT_BRACKET:
        raise MalformedValueError(f"unexpected ']' after \"{header.text}\"", line=token.line)
    if token.kind is not TokenKind.LEFT_BRACKET:
        return [token]

    values: list[Token] = []
    while True:
        item = cursor.take()
        if item is None:
            raise MalformedValueError(
                f'missing \']\' in value of "{header.text}"', line=header.line
            )
        if item.kind is TokenKind.RIGHT_BRACKET:
            return values
        if item.kind in (TokenKind.LEFT_BRACKET, TokenKind.IDENTIFIER) and item.text not in (
            "true",
            "false",
        ):
            raise MalformedValueError(
                f"unexpected '{item.describe()}' in value of \"{header.text}\"",
                line=item.line,
            )
        values.append(item)


def _to_float(token: Token, name: str) -> float:
    if token.kind is not TokenKind.NUMBER:
        raise MalformedValueError(
            f"parameter \"{name}\": expected a number, got {token.describe()}", line=token.line
        )
    return float(token.text)


def _to_int(token: Token, name: str) -> int:
    if token.kind is not TokenKind.NUMBER:
        raise MalformedValueError(
            f"parameter \"{name}\": expected an integer, got {token.describe()}",
            line=token.line,
        )
    try:
        return int(token.text)
    except ValueError:
        raise MalformedValueError(
            f"parameter \"{name}\": expected an integer, got {token.text}", line=token.line
        ) from None


def _to_bool(token: Token, name: str) -> bool:
    if token.kind in (TokenKind.STRING, TokenKind.IDENTIFIER):
        if token.text == "true":
            return True
        if token.text == "false":
            return False
    raise MalformedValueError(
        f"parameter \"{name}\": expected \"true\" or \"false\", got {token.describe()}",
        line=token.line,
    )


def _to_string(token: Token, name: str) -> str:
    if token.kind is not TokenKind.STRING:
        raise MalformedValueError(
            f"parameter \"{name}\": expected a quoted string, got {token.describe()}",
            line=token.line,
        )
    return token.text


def _check_arity(param_type: ParamType, keyword: str, given: int, header: Token) -> None:
    arity = ARITY[param_type]
    if given == 0 or given % arity != 0:
        raise ArityMismatchError(
            f'parameter "{header.text}": {keyword} requires a multiple of {arity} '
            f"values, {given} given",
            arity=arity,
            given=given,
            line=header.line,
        )


def decode_value(keyword: str, tokens: list[Token], header: Token) -> ParameterValue:
    """Convert raw value tokens to a ParameterValue of type `keyword`.

    Raises:
        UnknownTypeError: If `keyword` is not in the type table.
        ArityMismatchError: If the length is not a positive multiple of the arity.
        MalformedValueError: If a token cannot convert to the primitive type.
    """
    param_type = TYPE_KEYWORDS.get(keyword)
    if param_type is None:
        raise UnknownTypeError(f'unknown parameter type "{keyword}"', line=header.line)
    name = header.text

    if param_type is ParamType.SPECTRUM:
        if tokens and tokens[0].kind is TokenKind.STRING:
            if len(tokens) != 1:
                raise ArityMismatchError(
                    f'parameter "{header.text}": a named spectrum takes exactly one string, '
                    f"{len(tokens)} given",
                    arity=1,
                    given=len(tokens),
                    line=header.line,
                )
            return ParameterValue(ParamType.NAMED_SPECTRUM, (tokens[0].text,))
        floats = tuple(_to_float(t, name) for t in tokens)
        if len(floats) == 3:
            return ParameterValue(ParamType.RGB, floats)
        _check_arity(ParamType.SPECTRUM, keyword, len(floats), header)
        return ParameterValue(ParamType.SPECTRUM, floats)

    _check_arity(param_type, keyword, len(tokens), header)

    if param_type in _FLOAT_TYPES:
        values: tuple[Any, ...] = tuple(_to_float(t, name) for t in tokens)
    elif param_type is ParamType.INTEGER:
        values = tuple(_to_int(t, name) for t in tokens)
    elif param_type is ParamType.BOOL:
        values = tuple(_to_bool(t, name) for t in tokens)
    else:
        values = tuple(_to_string(t, name) for t in tokens)
    return ParameterValue(param_type, values)


def decode_parameter(cursor: TokenCursor) -> Parameter:
    """Consume exactly one `"<type> <name>" value` group.

    Args:
        cursor: Token supply positioned at the parameter header.

    Returns:
        The decoded Parameter.

    Raises:
        ParameterError: If the header or value is invalid.
    """
    header = cursor.take()
    if header is None or header.kind is not TokenKind.STRING:
        line = header.line if header is not None else None
        raise MalformedValueError("expected a parameter declaration", line=line)
    keyword, name = parse_header(header)
    if keyword not in TYPE_KEYWORDS:
        raise UnknownTypeError(f'unknown parameter type "{keyword}"', line=header.line)
    tokens = _read_values(cursor, header)
    return Parameter(name, decode_value(keyword, tokens, header))


def decode_parameter_list(cursor: TokenCursor) -> ParameterList:
    """Decode parameters while the next token is a quoted header string."""
    params: list[Parameter] = []
    while True:
        token = cursor.peek()
        if token is None or token.kind is not TokenKind.STRING:
            break
        params.append(decode_parameter(cursor))
    return ParameterList(params)
