"""Resolve individual field rules: conditions, defaults and value transforms."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable

from ..models import FieldRule
from .expression import ExpressionEvaluator
from .path import MISSING, get_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldError:
    """A field rule that could not be applied; the field is left out of the result."""

    source: str | None
    target: str
    message: str


class FieldResolutionError(ValueError):
    """Raised by the resolver when a single field rule cannot produce a value."""
    pass


def render_scalar(value: Any) -> str:
    """String form used by equality conditions and ``toString``."""
    if value is MISSING:
        return "undefined"
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _round_to_2(value: Any) -> Any:
    if not _is_number(value) or not math.isfinite(value):
        return value
    return math.floor(value * 100 + 0.5) / 100


def _to_number(value: Any) -> int | float:
    if _is_number(value):
        return value
    if isinstance(value, bool):
        return int(value)
    if value is None:
        return 0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return int(text)
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            raise FieldResolutionError(f"Cannot convert {value!r} to a number") from None
    raise FieldResolutionError(f"Cannot convert {type(value).__name__} to a number")


BUILTIN_TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "roundTo2": _round_to_2,
    "uppercase": lambda v: v.upper() if isinstance(v, str) else v,
    "lowercase": lambda v: v.lower() if isinstance(v, str) else v,
    "toNumber": _to_number,
    "toString": render_scalar,
}


class ValueResolver:
    """Turns a ``FieldRule`` plus a source tree into the value to write."""

    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        self.evaluator = evaluator or ExpressionEvaluator()

    def evaluate_condition(self, source: Any, condition: str) -> bool:
        """Evaluate ``path == literal`` or a bare truthy path."""
        if "==" in condition:
            path, _, literal = condition.partition("==")
            path = path.strip().strip("'\"")
            literal = literal.strip().strip("'\"")
            if path:
                return render_scalar(get_value(source, path, MISSING)) == literal
        return bool(get_value(source, condition.strip(), None))

    def resolve(
        self,
        rule: FieldRule,
        source: Any,
        custom_transforms: dict[str, str] | None = None,
    ) -> Any:
        """Return the value for ``rule`` or ``MISSING`` when nothing should be written.

        Raises:
            FieldResolutionError: If a required value is absent or a transform fails.
        """
        if rule.condition:
            if self.evaluate_condition(source, rule.condition):
                if rule.has("value_if_true"):
                    value = rule.value_if_true
                else:
                    value = self._read(source, rule.source)
            elif rule.has("value_if_false"):
                value = rule.value_if_false
            else:
                return MISSING
        else:
            value = self._read(source, rule.source)

        if value is MISSING and rule.has("default"):
            value = rule.default

        if value is MISSING:
            if rule.required:
                raise FieldResolutionError(f"Missing required field: {rule.source}")
            return MISSING

        if rule.transform:
            value = self.apply_transform(value, rule.transform, custom_transforms)
        return value

    @staticmethod
    def _read(source: Any, path: str | None) -> Any:
        if not path:
            return MISSING
        return get_value(source, path, MISSING)

    def apply_transform(
        self,
        value: Any,
        name: str,
        custom_transforms: dict[str, str] | None = None,
    ) -> Any:
        builtin = BUILTIN_TRANSFORMS.get(name)
        if builtin is not None:
            return builtin(value)
        if custom_transforms and name in custom_transforms:
            return self.run_script(custom_transforms[name], value)
        logger.warning("Unknown transform '%s', value left unchanged", name)
        return value

    def run_script(self, logic: str, value: Any) -> Any:
        """Run a scripted transform; failures come back as an ``{"error": ...}`` object."""
        try:
            return self.evaluator.evaluate(logic, {"value": value})
        except Exception as exc:
            logger.error("Custom transform error: %s", exc)
            return {"error": f"Script Error: {exc}"}
