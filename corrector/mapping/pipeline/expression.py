"""Sandboxed evaluator for the scripted (``CUSTOM``) transforms.

Scripts are single Python expressions. They are parsed with :mod:`ast` and
walked node by node against a whitelist; nothing is ever handed to ``eval``.
The input is bound to ``value``. Example::

    {"users": [{"id": u.id, "name": upper(u.name)} for u in value], "count": len(value)}
"""

from __future__ import annotations

import ast
import operator
from functools import lru_cache
from typing import Any, Callable

from ...exceptions import ExpressionError
from .path import get_value

MAX_SOURCE_LENGTH = 10_000
MAX_EXPONENT = 100
MAX_SEQUENCE_LENGTH = 100_000
# Comprehension items across all clauses of one evaluate() call
MAX_ITERATIONS = 100_000

_BIN_OPS: dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_COMPARE_OPS: dict[type, Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}

_CONSTANT_NAMES = {"true": True, "false": False, "null": None, "None": None, "True": True, "False": False}

_STR_METHODS = frozenset({
    "upper", "lower", "strip", "lstrip", "rstrip", "title", "capitalize",
    "split", "replace", "startswith", "endswith", "join", "zfill", "find",
})
_DICT_METHODS = frozenset({"get", "keys", "values", "items"})
_LIST_METHODS = frozenset({"count", "index"})


def _concat(*parts: Any) -> str:
    return "".join("" if part is None else str(part) for part in parts)


DEFAULT_FUNCTIONS: dict[str, Callable[..., Any]] = {
    "len": len,
    "str": str,
    "int": int,
    "float": float,
    "bool": bool,
    "round": round,
    "abs": abs,
    "min": min,
    "max": max,
    "sum": sum,
    "sorted": sorted,
    "list": list,
    "upper": lambda s: s.upper() if isinstance(s, str) else s,
    "lower": lambda s: s.lower() if isinstance(s, str) else s,
    "concat": _concat,
    "get": lambda obj, path, default=None: get_value(obj, path, default),
    "is_list": lambda obj: isinstance(obj, list),
    "is_dict": lambda obj: isinstance(obj, dict),
}


@lru_cache(maxsize=256)
def _parse(source: str) -> ast.Expression:
    if len(source) > MAX_SOURCE_LENGTH:
        raise ExpressionError("Expression is too long")
    try:
        return ast.parse(source.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Invalid expression: {exc.msg}") from exc


class ExpressionEvaluator:
    """Evaluates whitelisted expressions against a set of bound variables."""

    def __init__(self, functions: dict[str, Callable[..., Any]] | None = None) -> None:
        self.functions = dict(DEFAULT_FUNCTIONS)
        if functions:
            self.functions.update(functions)
        self._iterations_left = MAX_ITERATIONS

    def evaluate(self, source: str, variables: dict[str, Any] | None = None) -> Any:
        if not isinstance(source, str) or not source.strip():
            raise ExpressionError("Expression must be a non-empty string")
        tree = _parse(source)
        self._iterations_left = MAX_ITERATIONS
        return self._eval(tree.body, dict(variables or {}))

    def _eval(self, node: ast.AST, scope: dict[str, Any]) -> Any:
        handler = getattr(self, f"_eval_{type(node).__name__}", None)
        if handler is None:
            raise ExpressionError(f"Unsupported syntax: {type(node).__name__}")
        return handler(node, scope)

    def _eval_Constant(self, node: ast.Constant, scope: dict[str, Any]) -> Any:
        return node.value

    def _eval_Name(self, node: ast.Name, scope: dict[str, Any]) -> Any:
        if node.id in scope:
            return scope[node.id]
        if node.id in _CONSTANT_NAMES:
            return _CONSTANT_NAMES[node.id]
        if node.id in self.functions:
            return self.functions[node.id]
        raise ExpressionError(f"Unknown name: {node.id}")

    def _eval_List(self, node: ast.List, scope: dict[str, Any]) -> list:
        return [self._eval(elt, scope) for elt in node.elts]

    def _eval_Tuple(self, node: ast.Tuple, scope: dict[str, Any]) -> tuple:
        return tuple(self._eval(elt, scope) for elt in node.elts)

    def _eval_Dict(self, node: ast.Dict, scope: dict[str, Any]) -> dict:
        result = {}
        for key, val in zip(node.keys, node.values):
            if key is None:
                unpacked = self._eval(val, scope)
                if not isinstance(unpacked, dict):
                    raise ExpressionError("Only objects can be unpacked with **")
                result.update(unpacked)
            else:
                result[self._eval(key, scope)] = self._eval(val, scope)
        return result

    def _eval_JoinedStr(self, node: ast.JoinedStr, scope: dict[str, Any]) -> str:
        parts = []
        for part in node.values:
            if isinstance(part, ast.FormattedValue):
                if part.format_spec is not None:
                    raise ExpressionError("Format specs are not supported")
                parts.append(_concat(self._eval(part.value, scope)))
            else:
                parts.append(self._eval(part, scope))
        return "".join(parts)

    def _eval_Subscript(self, node: ast.Subscript, scope: dict[str, Any]) -> Any:
        container = self._eval(node.value, scope)
        if isinstance(node.slice, ast.Slice):
            lower = self._eval(node.slice.lower, scope) if node.slice.lower else None
            upper = self._eval(node.slice.upper, scope) if node.slice.upper else None
            step = self._eval(node.slice.step, scope) if node.slice.step else None
            return container[lower:upper:step]
        key = self._eval(node.slice, scope)
        if isinstance(container, dict):
            return container.get(key)
        try:
            return container[key]
        except (IndexError, TypeError) as exc:
            raise ExpressionError(f"Cannot index {type(container).__name__} with {key!r}") from exc

    def _eval_Attribute(self, node: ast.Attribute, scope: dict[str, Any]) -> Any:
        target = self._eval(node.value, scope)
        if isinstance(target, dict):
            return target.get(node.attr)
        raise ExpressionError(f"Cannot read field {node.attr!r} of {type(target).__name__}")

    def _eval_BinOp(self, node: ast.BinOp, scope: dict[str, Any]) -> Any:
        op = _BIN_OPS.get(type(node.op))
        if op is None:
            raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")
        left = self._eval(node.left, scope)
        right = self._eval(node.right, scope)
        if isinstance(node.op, ast.Pow) and isinstance(right, (int, float)) and abs(right) > MAX_EXPONENT:
            raise ExpressionError("Exponent too large")
        if isinstance(node.op, ast.Mult):
            self._check_repeat(left, right)
        return op(left, right)

    @staticmethod
    def _check_repeat(left: Any, right: Any) -> None:
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list, tuple)) and isinstance(count, int):
                if len(seq) * count > MAX_SEQUENCE_LENGTH:
                    raise ExpressionError("Resulting sequence too long")

    def _eval_UnaryOp(self, node: ast.UnaryOp, scope: dict[str, Any]) -> Any:
        operand = self._eval(node.operand, scope)
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.UAdd):
            return +operand
        if isinstance(node.op, ast.Not):
            return not operand
        raise ExpressionError(f"Unsupported operator: {type(node.op).__name__}")

    def _eval_BoolOp(self, node: ast.BoolOp, scope: dict[str, Any]) -> Any:
        result: Any = None
        for value_node in node.values:
            result = self._eval(value_node, scope)
            if isinstance(node.op, ast.And) and not result:
                return result
            if isinstance(node.op, ast.Or) and result:
                return result
        return result

    def _eval_Compare(self, node: ast.Compare, scope: dict[str, Any]) -> bool:
        left = self._eval(node.left, scope)
        for op_node, comparator in zip(node.ops, node.comparators):
            right = self._eval(comparator, scope)
            if not _COMPARE_OPS[type(op_node)](left, right):
                return False
            left = right
        return True

    def _eval_IfExp(self, node: ast.IfExp, scope: dict[str, Any]) -> Any:
        if self._eval(node.test, scope):
            return self._eval(node.body, scope)
        return self._eval(node.orelse, scope)

    def _eval_Call(self, node: ast.Call, scope: dict[str, Any]) -> Any:
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                args.extend(self._eval(arg.value, scope))
            else:
                args.append(self._eval(arg, scope))
        kwargs = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                raise ExpressionError("Keyword unpacking is not supported")
            kwargs[keyword.arg] = self._eval(keyword.value, scope)

        if isinstance(node.func, ast.Attribute):
            target = self._eval(node.func.value, scope)
            return self._call_method(target, node.func.attr, args, kwargs)

        if isinstance(node.func, ast.Name) and node.func.id not in scope and node.func.id in self.functions:
            return self.functions[node.func.id](*args, **kwargs)
        raise ExpressionError("Only whitelisted functions can be called")

    @staticmethod
    def _call_method(target: Any, name: str, args: list, kwargs: dict) -> Any:
        allowed = (
            (isinstance(target, str) and name in _STR_METHODS)
            or (isinstance(target, dict) and name in _DICT_METHODS)
            or (isinstance(target, list) and name in _LIST_METHODS)
        )
        if not allowed:
            raise ExpressionError(f"Method {name!r} is not allowed on {type(target).__name__}")
        result = getattr(target, name)(*args, **kwargs)
        if name in ("keys", "values", "items"):
            return list(result)
        return result

    def _iterate(self, generators: list[ast.comprehension], scope: dict[str, Any]):
        """Yield one scope per combination produced by the comprehension clauses."""
        if not generators:
            yield scope
            return
        first, rest = generators[0], generators[1:]
        if first.is_async:
            raise ExpressionError("Async comprehensions are not supported")
        iterable = self._eval(first.iter, scope)
        if isinstance(iterable, dict):
            iterable = list(iterable)
        for count, item in enumerate(iterable):
            if count >= MAX_SEQUENCE_LENGTH:
                raise ExpressionError("Comprehension too long")
            self._iterations_left -= 1
            if self._iterations_left < 0:
                raise ExpressionError("Comprehension exceeds the iteration budget")
            inner = dict(scope)
            self._bind(first.target, item, inner)
            if all(self._eval(cond, inner) for cond in first.ifs):
                yield from self._iterate(rest, inner)

    def _bind(self, target: ast.AST, item: Any, scope: dict[str, Any]) -> None:
        if isinstance(target, ast.Name):
            scope[target.id] = item
        elif isinstance(target, ast.Tuple):
            values = list(item)
            if len(values) != len(target.elts):
                raise ExpressionError("Cannot unpack comprehension item")
            for elt, val in zip(target.elts, values):
                self._bind(elt, val, scope)
        else:
            raise ExpressionError("Unsupported comprehension target")

    def _eval_ListComp(self, node: ast.ListComp, scope: dict[str, Any]) -> list:
        return [self._eval(node.elt, inner) for inner in self._iterate(node.generators, scope)]

    def _eval_GeneratorExp(self, node: ast.GeneratorExp, scope: dict[str, Any]) -> list:
        return self._eval_ListComp(node, scope)  # type: ignore[arg-type]

    def _eval_DictComp(self, node: ast.DictComp, scope: dict[str, Any]) -> dict:
        return {
            self._eval(node.key, inner): self._eval(node.value, inner)
            for inner in self._iterate(node.generators, scope)
        }
