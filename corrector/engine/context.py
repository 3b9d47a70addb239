"""Per-invocation state for the orchestrator."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from ..mapping.models import MappingConfig
from ..mapping.pipeline import FieldError


class PipelineStage(IntEnum):
    """Pipeline states, in execution order."""

    CREATED = 0
    RESOLVE_PARAMS = 1
    VALIDATE_REQUEST = 2
    TRANSFORM_REQUEST = 3
    AUTHENTICATE = 4
    INVOKE = 5
    TRANSFORM_RESPONSE = 6
    VALIDATE_RESPONSE = 7
    DONE = 8


@dataclass
class CallOverrides:
    """Call-time values layered over the mapping's configured defaults."""

    method: str | None = None
    query_params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    operation: str | None = None
    incoming_token: str | None = None


@dataclass
class ExecutionContext:
    """Created for one ``execute`` call and discarded afterwards."""

    mapping_id: str
    method: str
    query_params: dict[str, Any]
    headers: dict[str, str]
    extra_headers: dict[str, str] = field(default_factory=dict)
    operation: str | None = None
    incoming_token: str | None = None
    shared: dict[str, Any] = field(default_factory=dict)
    field_errors: list[FieldError] = field(default_factory=list)
    stage: PipelineStage = PipelineStage.CREATED

    @classmethod
    def create(
        cls,
        mapping: MappingConfig,
        payload: Any,
        overrides: CallOverrides | None = None,
    ) -> "ExecutionContext":
        overrides = overrides or CallOverrides()
        target_api = mapping.target_api
        if isinstance(payload, dict):
            shared = copy.deepcopy(payload)
        else:
            shared = {"payload": copy.deepcopy(payload)}
        return cls(
            mapping_id=mapping.id,
            method=(overrides.method or target_api.method).upper(),
            query_params={**target_api.query_params, **overrides.query_params},
            headers={**target_api.headers, **overrides.headers},
            extra_headers=dict(overrides.headers),
            operation=overrides.operation,
            incoming_token=overrides.incoming_token,
            shared=shared,
        )

    def advance(self, stage: PipelineStage) -> None:
        """Record progress; the stage never moves backwards."""
        if stage > self.stage:
            self.stage = stage

    @property
    def reached_network(self) -> bool:
        return self.stage >= PipelineStage.AUTHENTICATE
