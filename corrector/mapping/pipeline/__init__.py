"""Building blocks of the transformation engine."""

from .path import MISSING, PathSyntaxError, get_value, is_path_expression, parse_path, set_value
from .expression import ExpressionEvaluator
from .value_resolution import (
    BUILTIN_TRANSFORMS,
    FieldError,
    FieldResolutionError,
    ValueResolver,
    render_scalar,
)

__all__ = [
    "MISSING",
    "PathSyntaxError",
    "get_value",
    "is_path_expression",
    "parse_path",
    "set_value",
    "ExpressionEvaluator",
    "BUILTIN_TRANSFORMS",
    "FieldError",
    "FieldResolutionError",
    "ValueResolver",
    "render_scalar",
]
