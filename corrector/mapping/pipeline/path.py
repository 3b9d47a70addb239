"""Read/write helpers for path expressions into JSON-like trees.

Supported forms: ``$`` (the root itself), ``$.a.b``, ``a.b``, list indices
(``$.items[0].id``) and quoted keys (``$['a key']``). Lookups never raise:
mappings are authored externally, so a missing segment or a malformed
expression simply resolves to the caller's default.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Any


class _Missing:
    """Marker for a value that is absent, as opposed to JSON ``null``."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

_TOKEN_RE = re.compile(
    r"""
    \.?(?P<name>[^.\[\]]+)          # .name or leading name
    | \[(?P<index>-?\d+)\]          # [0]
    | \[(?P<quote>['"])(?P<key>.*?)(?P=quote)\]   # ['key'] / ["key"]
    """,
    re.VERBOSE,
)


class PathSyntaxError(ValueError):
    """Raised internally when a path expression cannot be tokenized."""
    pass


@lru_cache(maxsize=1024)
def parse_path(path: str) -> tuple[str | int, ...]:
    """Split a path expression into dict keys (str) and list indices (int)."""
    if not isinstance(path, str):
        raise PathSyntaxError(f"Path must be a string, got {type(path).__name__}")
    expr = path.strip()
    if expr.startswith("$"):
        expr = expr[1:]
    if not expr:
        return ()

    tokens: list[str | int] = []
    pos = 0
    while pos < len(expr):
        match = _TOKEN_RE.match(expr, pos)
        if not match or match.end() == pos:
            raise PathSyntaxError(f"Malformed path expression: {path!r}")
        if match.group("name") is not None:
            tokens.append(match.group("name").strip())
        elif match.group("index") is not None:
            tokens.append(int(match.group("index")))
        else:
            tokens.append(match.group("key"))
        pos = match.end()
    return tuple(tokens)


def is_path_expression(value: Any) -> bool:
    """True when a configured value should be resolved as a path, not used literally."""
    return isinstance(value, str) and value.startswith("$")


def get_value(tree: Any, path: str, default: Any = None) -> Any:
    """Return the value at ``path`` or ``default`` when it cannot be reached."""
    try:
        tokens = parse_path(path)
    except (PathSyntaxError, TypeError):
        return default

    current = tree
    for token in tokens:
        if isinstance(token, int):
            if not isinstance(current, list):
                return default
            try:
                current = current[token]
            except IndexError:
                return default
        elif isinstance(current, dict):
            if token not in current:
                return default
            current = current[token]
        else:
            return default
    return current


def set_value(tree: dict, path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating intermediate objects on demand.

    Raises:
        PathSyntaxError: If the path is malformed or addresses the root.
    """
    tokens = parse_path(path)
    if not tokens:
        raise PathSyntaxError("Cannot assign to the root of a tree")

    current: Any = tree
    for token, next_token in zip(tokens, tokens[1:]):
        child = _child(current, token)
        if not isinstance(child, (dict, list)) or (
            isinstance(next_token, str) and not isinstance(child, dict)
        ):
            child = {}
            _assign(current, token, child)
        current = child
    _assign(current, tokens[-1], value)


def _child(container: Any, token: str | int) -> Any:
    if isinstance(token, int):
        if isinstance(container, list) and -len(container) <= token < len(container):
            return container[token]
        return MISSING
    if isinstance(container, dict):
        return container.get(token, MISSING)
    return MISSING


def _assign(container: Any, token: str | int, value: Any) -> None:
    if isinstance(token, int) and isinstance(container, list):
        if token == len(container):
            container.append(value)
        elif -len(container) <= token < len(container):
            container[token] = value
        else:
            raise PathSyntaxError(f"List index {token} out of range")
        return
    if not isinstance(container, dict):
        raise PathSyntaxError(f"Cannot set key {token!r} on {type(container).__name__}")
    container[str(token)] = value
