"""JSON Schema gates for request and response bodies."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

from jsonschema import SchemaError
from jsonschema.validators import validator_for

from ..exceptions import ConfigurationError


@dataclass
class SchemaValidationResult:
    valid: bool
    errors: list[dict[str, Any]] = field(default_factory=list)


CompiledValidator = Callable[[Any], SchemaValidationResult]


def _format_path(parts: Any) -> str:
    path = "$"
    for part in parts:
        path += f"[{part}]" if isinstance(part, int) else f".{part}"
    return path


class SchemaValidator:
    """Compiles JSON schemas once and reports every violation of a value."""

    def __init__(self) -> None:
        self._compiled: dict[str, CompiledValidator] = {}

    def compile(self, schema: dict[str, Any]) -> CompiledValidator:
        key = json.dumps(schema, sort_keys=True, default=str)
        if key in self._compiled:
            return self._compiled[key]

        validator_cls = validator_for(schema)
        try:
            validator_cls.check_schema(schema)
        except SchemaError as exc:
            raise ConfigurationError(f"Invalid JSON schema: {exc.message}") from exc
        validator = validator_cls(schema)

        def validate(value: Any) -> SchemaValidationResult:
            errors = [
                {
                    "path": _format_path(error.absolute_path),
                    "message": error.message,
                    "validator": error.validator,
                }
                for error in sorted(validator.iter_errors(value), key=lambda e: list(map(str, e.absolute_path)))
            ]
            return SchemaValidationResult(valid=not errors, errors=errors)

        self._compiled[key] = validate
        return validate

    def validate(self, schema: dict[str, Any], value: Any) -> SchemaValidationResult:
        return self.compile(schema)(value)
