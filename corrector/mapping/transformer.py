"""Transformation engine interpreting declarative tree-to-tree mappings."""

from __future__ import annotations

import copy
import logging
from typing import Any

from .models import TransformSpec, TransformType
from .pipeline import (
    MISSING,
    FieldError,
    FieldResolutionError,
    PathSyntaxError,
    ValueResolver,
    get_value,
    set_value,
)

logger = logging.getLogger(__name__)


class Transformer:
    """Applies a ``TransformSpec`` to a source tree.

    Nothing raised while applying a spec escapes ``transform``: bad fields are
    reported through the optional ``errors`` list and left out, and scripted
    transforms that fail return an ``{"error": ...}`` object instead.
    """

    def __init__(self, value_resolver: ValueResolver | None = None) -> None:
        self.value_resolver = value_resolver or ValueResolver()

    def transform(
        self,
        source: Any,
        spec: TransformSpec | None,
        custom_transforms: dict[str, str] | None = None,
        errors: list[FieldError] | None = None,
    ) -> Any:
        if spec is None or spec.type == TransformType.DIRECT:
            return source

        try:
            if spec.type == TransformType.CUSTOM:
                if not spec.logic:
                    return source
                return self.value_resolver.run_script(spec.logic, copy.deepcopy(source))
            if spec.type == TransformType.ARRAY:
                return self._transform_array(source, spec, custom_transforms, errors)
            return self._transform_object(source, spec, custom_transforms, errors)
        except Exception as exc:
            logger.error("Transformation failed: %s", exc)
            return {"error": f"Transform Error: {exc}"}

    def _transform_array(
        self,
        source: Any,
        spec: TransformSpec,
        custom_transforms: dict[str, str] | None,
        errors: list[FieldError] | None,
    ) -> Any:
        items = get_value(source, spec.root, MISSING) if spec.root else MISSING
        if not isinstance(items, list):
            logger.warning("Root path %s did not resolve to an array", spec.root)
            items = []

        transformed = [
            self._transform_object(item, spec, custom_transforms, errors) for item in items
        ]

        if spec.output_wrapper:
            wrapped: dict[str, Any] = {}
            set_value(wrapped, spec.output_wrapper, transformed)
            return wrapped
        return transformed

    def _transform_object(
        self,
        source: Any,
        spec: TransformSpec,
        custom_transforms: dict[str, str] | None,
        errors: list[FieldError] | None,
    ) -> dict[str, Any]:
        result: dict[str, Any] = {}

        for rule in spec.mappings:
            try:
                value = self.value_resolver.resolve(rule, source, custom_transforms)
                if value is MISSING:
                    continue
                set_value(result, rule.target, copy.deepcopy(value))
            except (
                FieldResolutionError,
                PathSyntaxError,
                ArithmeticError,
                TypeError,
                ValueError,
            ) as exc:
                logger.warning("Mapping failed for %s -> %s: %s", rule.source, rule.target, exc)
                if errors is not None:
                    errors.append(FieldError(source=rule.source, target=rule.target, message=str(exc)))

        for path, default_value in spec.defaults.items():
            if get_value(result, path, MISSING) is MISSING:
                try:
                    set_value(result, path, copy.deepcopy(default_value))
                except PathSyntaxError as exc:
                    logger.warning("Default for %s could not be applied: %s", path, exc)

        return result
