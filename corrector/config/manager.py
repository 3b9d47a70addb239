"""Loads the project file and indexes the mapping definitions it points at."""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from ..mapping.models import MappingConfig
from ..mapping.pipeline import get_value
from .models import ProjectConfig

logger = logging.getLogger(__name__)

MAPPING_SUFFIXES = (".yml", ".yaml", ".json")


def _read_document(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


class ConfigManager:
    """Project file access plus mapping lookup by id or name."""

    def __init__(self, config_path: str) -> None:
        self.config_path = Path(config_path)
        self._config: ProjectConfig | None = None
        self._mappings: dict[str, MappingConfig] | None = None
        self.invalid_mappings: list[tuple[str, str]] = []

    def load_config(self) -> ProjectConfig:
        """(Re)read the project file and drop any cached mapping index.

        Raises:
            FileNotFoundError: If the project file is missing
            yaml.YAMLError: If it is not valid YAML
            pydantic.ValidationError: If it does not describe a project
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Project file not found: {self.config_path}")

        raw = _read_document(self.config_path) or {}
        self._config = ProjectConfig.model_validate(raw)
        self._mappings = None
        logger.debug("Loaded project '%s' from %s", self._config.name, self.config_path)
        return self._config

    @property
    def config(self) -> ProjectConfig:
        if self._config is None:
            return self.load_config()
        return self._config

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Read ``settings`` from the project file, e.g. ``get_setting("audit.enabled")``."""
        return get_value(self.config.settings, key, default)

    def get_mappings_dir(self) -> Path | None:
        """Mappings directory, relative paths resolved against the project file."""
        if not self.config.mappings_dir:
            return None
        mappings_dir = Path(self.config.mappings_dir)
        if not mappings_dir.is_absolute():
            mappings_dir = self.config_path.parent / mappings_dir
        return mappings_dir

    @staticmethod
    def load_mapping_file(path: str | Path) -> MappingConfig:
        """Load a single mapping definition from a YAML or JSON file.

        Raises:
            ConfigurationError: If the file is missing or not a valid mapping
        """
        mapping_file = Path(path)
        if not mapping_file.exists():
            raise ConfigurationError(f"Mapping file not found: {mapping_file}")
        try:
            return MappingConfig.model_validate(_read_document(mapping_file))
        except (ValidationError, yaml.YAMLError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Invalid mapping file {mapping_file}: {exc}") from exc

    @property
    def mappings(self) -> dict[str, MappingConfig]:
        """All mappings keyed by id, and by name where one is given."""
        if self._mappings is None:
            self._mappings = self._index_mappings()
        return self._mappings

    def _index_mappings(self) -> dict[str, MappingConfig]:
        """Index every valid mapping; invalid definitions are logged and left out."""
        self.invalid_mappings = []
        loaded: list[MappingConfig] = []
        for raw in self.config.mappings:
            label = f"inline mapping {raw.get('id', '<no id>')}"
            try:
                loaded.append(MappingConfig.model_validate(raw))
            except ValidationError as exc:
                self._skip_invalid(label, str(exc))

        mappings_dir = self.get_mappings_dir()
        if mappings_dir is not None:
            if not mappings_dir.is_dir():
                raise ConfigurationError(f"Mappings directory not found: {mappings_dir}")
            for path in sorted(mappings_dir.iterdir()):
                if path.suffix not in MAPPING_SUFFIXES:
                    continue
                try:
                    loaded.append(self.load_mapping_file(path))
                except ConfigurationError as exc:
                    self._skip_invalid(f"mapping file {path.name}", str(exc))

        index: dict[str, MappingConfig] = {}
        for mapping in loaded:
            for key in (mapping.id, mapping.name):
                if not key:
                    continue
                if key in index and index[key] is not mapping:
                    logger.warning("Duplicate mapping key '%s', keeping the last definition", key)
                index[key] = mapping
        logger.debug("Indexed %d mappings from %s", len(loaded), self.config_path)
        return index

    def _skip_invalid(self, label: str, reason: str) -> None:
        logger.warning("Skipping invalid %s: %s", label, reason)
        self.invalid_mappings.append((label, reason))

    def find_mapping(self, key: str) -> MappingConfig | None:
        """Look a mapping up by id or name; ``None`` when unknown."""
        return self.mappings.get(key)
