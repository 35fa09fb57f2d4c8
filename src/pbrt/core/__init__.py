"""Core module for lexical analysis, typed parameters and transform math.

Components:
    errors: SceneParseError hierarchy with file/line/include-chain context
    tokenizer: Lazy tokenizer producing identifiers, strings, numbers, brackets
    params: Parameter type table, ParameterValue/ParameterList and decoder
    transform: 4x4 NumPy matrix builders (Translate, Rotate, LookAt, ...)
"""

from .errors import (
    ArityMismatchError,
    DirectiveError,
    DuplicateNameError,
    InvalidArgumentError,
    LexError,
    MalformedValueError,
    NestedObjectError,
    ParameterError,
    SceneIOError,
    SceneParseError,
    UnbalancedScopeError,
    UndefinedNameError,
    UnexpectedTokenError,
    UnknownDirectiveError,
    UnknownTypeError,
    WrongPhaseError,
)
from .params import (
    ARITY,
    EMPTY_PARAMS,
    TYPE_KEYWORDS,
    Parameter,
    ParameterList,
    ParameterValue,
    ParamType,
    decode_parameter,
    decode_parameter_list,
)
from .tokenizer import Token, Tokenizer, TokenKind, tokenize

__all__ = [
    # Errors
    "SceneParseError",
    "LexError",
    "ParameterError",
    "UnknownTypeError",
    "ArityMismatchError",
    "MalformedValueError",
    "DirectiveError",
    "UnknownDirectiveError",
    "WrongPhaseError",
    "UnbalancedScopeError",
    "NestedObjectError",
    "UndefinedNameError",
    "DuplicateNameError",
    "UnexpectedTokenError",
    "InvalidArgumentError",
    "SceneIOError",
    # Tokenizer
    "Token",
    "TokenKind",
    "Tokenizer",
    "tokenize",
    # Parameters
    "ParamType",
    "ParameterValue",
    "Parameter",
    "ParameterList",
    "EMPTY_PARAMS",
    "ARITY",
    "TYPE_KEYWORDS",
    "decode_parameter",
    "decode_parameter_list",
]
