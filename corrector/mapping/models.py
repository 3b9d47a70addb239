from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting both camelCase (stored configs) and snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TransformType(str, Enum):
    OBJECT = "OBJECT"
    ARRAY = "ARRAY"
    CUSTOM = "CUSTOM"
    DIRECT = "DIRECT"


class AuthType(str, Enum):
    NONE = "NONE"
    BASIC = "BASIC"
    API_KEY = "API_KEY"
    BEARER_TOKEN = "BEARER_TOKEN"
    OAUTH2_CLIENT_CREDENTIALS = "OAUTH2_CLIENT_CREDENTIALS"
    CUSTOM = "CUSTOM"
    JWT = "JWT"


class FieldRule(CamelModel):
    """One source -> target instruction of an OBJECT or ARRAY mapping.

    ``default``, ``value_if_true`` and ``value_if_false`` only count when they
    were given in the config (an explicit ``null`` counts), see ``has()``.
    """

    source: str | None = Field(None, description="Path read from the source tree")
    target: str = Field(..., description="Path written in the result")
    condition: str | None = Field(
        None, description="'path == literal' or a bare path tested for truthiness"
    )
    value_if_true: Any = None
    value_if_false: Any = None
    default: Any = None
    required: bool = False
    transform: str | None = Field(None, description="Built-in or named custom transform")

    def has(self, field_name: str) -> bool:
        return field_name in self.model_fields_set


class TransformSpec(CamelModel):
    type: TransformType = TransformType.OBJECT
    mappings: List[FieldRule] = Field(default_factory=list)
    defaults: Dict[str, Any] = Field(
        default_factory=dict, description="Result path -> literal applied when still unset"
    )
    root: str | None = Field(None, description="ARRAY: path of the array to iterate")
    output_wrapper: str | None = Field(None, description="ARRAY: path the list is wrapped under")
    logic: str | None = Field(None, description="CUSTOM: expression receiving the source as `value`")

    @field_validator("type", mode="before")
    @classmethod
    def _upper_type(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    @property
    def is_passthrough(self) -> bool:
        """True when applying this transform would leave the source untouched."""
        if self.type == TransformType.DIRECT:
            return True
        if self.type == TransformType.CUSTOM:
            return not self.logic
        return not self.mappings and not self.defaults and self.type == TransformType.OBJECT


class CustomTransform(CamelModel):
    logic: str = Field(..., description="Expression receiving the field value as `value`")
    description: str | None = None


class ResilienceConfig(CamelModel):
    retry_count: int = Field(0, ge=0, description="Retries after the first attempt")
    retry_delay_ms: int = Field(1000, ge=0, description="Fixed delay between attempts")


class TargetApiConfig(CamelModel):
    url: str = Field(..., description="URL template, placeholders as :name or {name}")
    method: str = Field(..., description="HTTP method")
    query_params: Dict[str, Any] = Field(default_factory=dict)
    path_params: Dict[str, str] = Field(
        default_factory=dict, description="Placeholder -> path expression into the payload"
    )
    headers: Dict[str, str] = Field(default_factory=dict, description="Static headers")
    timeout_ms: int | None = Field(None, gt=0, description="Per-attempt timeout")
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, value: str) -> str:
        return value.upper()


class AuthConfig(CamelModel):
    auth_type: str = Field("NONE", description="Auth tag; unknown tags behave as NONE")
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("auth_type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, Enum):
            value = value.value
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("config", mode="before")
    @classmethod
    def _none_config(cls, value: Any) -> Any:
        return {} if value is None else value


class WorkflowStep(CamelModel):
    name: str
    target_api: TargetApiConfig
    request_mapping: TransformSpec | None = None
    response_mapping: TransformSpec | None = None
    auth_config: AuthConfig | None = None
    save_result_to_context_as: str | None = None


class MappingConfig(CamelModel):
    id: str
    name: str | None = None
    source_system: str | None = None
    target_system: str | None = None
    target_api: TargetApiConfig
    request_mapping: TransformSpec | None = None
    response_mapping: TransformSpec | None = None
    error_mapping: TransformSpec | None = None
    request_schema: Dict[str, Any] | None = None
    response_schema: Dict[str, Any] | None = None
    auth_config: AuthConfig | None = None
    steps: List[WorkflowStep] | None = None
    transforms: Dict[str, CustomTransform] = Field(default_factory=dict)

    @property
    def custom_transforms(self) -> dict[str, str]:
        return {name: transform.logic for name, transform in self.transforms.items()}
