"""Mapping layer: declarative mapping models and the transformation engine.

This module provides functionality to:
- Describe an integration (endpoint, auth, transformations) as a MappingConfig
- Read and write values inside JSON-like trees with path expressions
- Reshape payloads with OBJECT, ARRAY, CUSTOM and DIRECT transform specs
"""

from .models import (
    AuthConfig,
    AuthType,
    CustomTransform,
    FieldRule,
    MappingConfig,
    ResilienceConfig,
    TargetApiConfig,
    TransformSpec,
    TransformType,
    WorkflowStep,
)
from .transformer import Transformer

__all__ = [
    # Models
    "AuthConfig",
    "AuthType",
    "CustomTransform",
    "FieldRule",
    "MappingConfig",
    "ResilienceConfig",
    "TargetApiConfig",
    "TransformSpec",
    "TransformType",
    "WorkflowStep",
    # Engine
    "Transformer",
]
