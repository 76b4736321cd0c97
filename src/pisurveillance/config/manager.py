"""Configuration loading for the provisioning pipeline."""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import ConfigError
from pisurveillance.system.path_resolver import PathResolver

logger = logging.getLogger(__name__)

PRESETS = ("motion", "motioneye")


class ConfigManager:
    """Loads and validates the immutable pipeline configuration."""

    def __init__(self, path_resolver: PathResolver | None = None):
        """Initialize ConfigManager.

        Args:
            path_resolver: Optional PathResolver instance. If None, creates a new one.
        """
        self.path_resolver = path_resolver or PathResolver()
        self.config_path = self.path_resolver.get_config_path()

    def load(self) -> SurveillanceConfig:
        """Load configuration from disk, falling back to built-in defaults.

        Returns:
            SurveillanceConfig: Loaded and validated configuration

        Raises:
            ConfigError: If the file cannot be parsed or fails validation
        """
        if not self.config_path.exists():
            logger.debug("No configuration at %s, using defaults", self.config_path)
            return SurveillanceConfig()

        raw_config = self._read_yaml(self.config_path)

        # A file may start from a bundled preset and override individual keys
        preset = raw_config.pop("preset", None)
        if preset is not None:
            raw_config = _deep_merge(self.read_preset(str(preset)), raw_config)

        return self._create_config_object(raw_config, self.config_path)

    def load_preset(self, name: str) -> SurveillanceConfig:
        """Load one of the bundled variant presets unchanged.

        Args:
            name: Preset name, one of PRESETS

        Returns:
            SurveillanceConfig: The preset configuration
        """
        preset_path = self.path_resolver.get_template_file_path(f"{name}.yaml")
        return self._create_config_object(self.read_preset(name), preset_path)

    def read_preset(self, name: str) -> dict[str, Any]:
        """Read the raw mapping of a bundled preset."""
        if name not in PRESETS:
            raise ConfigError(f"Unknown preset '{name}'. Available presets: {', '.join(PRESETS)}")
        return self._read_yaml(self.path_resolver.get_template_file_path(f"{name}.yaml"))

    def _read_yaml(self, path: Path) -> dict[str, Any]:
        """Read YAML config file.

        Returns:
            dict: Raw configuration dictionary
        """
        try:
            raw = yaml.safe_load(path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read configuration {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"Configuration {path} must be a mapping, got {type(raw).__name__}")
        return raw

    def _create_config_object(self, raw_config: dict[str, Any], source: Path) -> SurveillanceConfig:
        try:
            config = SurveillanceConfig.model_validate(raw_config)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            raise ConfigError(
                f"Configuration validation failed: {problems}",
                hint=f"Fix {source} and re-run.",
            ) from e
        logger.info("Configuration loaded from %s", source)
        return config


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge override into base, recursing into nested sections."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged
