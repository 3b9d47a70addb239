"""Project file model."""

from typing import Any
from pydantic import BaseModel, Field


class ProjectConfig(BaseModel):
    """Contents of the project YAML file."""

    name: str = Field(..., description="Project name")
    version: str = Field("1.0.0", description="Project version")
    description: str | None = Field(None, description="Project description")

    mappings_dir: str | None = Field(
        None, description="Directory holding one mapping per YAML/JSON file"
    )
    mappings: list[dict[str, Any]] = Field(
        default_factory=list, description="Inline mapping definitions"
    )

    settings: dict[str, Any] = Field(
        default_factory=dict, description="Free-form settings read with ConfigManager.get_setting"
    )
