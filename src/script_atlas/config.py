# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for script atlas."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from script_atlas.data_paths import get_default_cache_path

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for script atlas.

    Loads configuration from .script_atlas.yml with validation and defaults.
    """

    DEFAULTS = {
        "cache_path": "",  # Empty: ~/.script_atlas/usage_cache.json
        "enable_usage_cache": True,
        "scan_workers": 1,
        "node_path_separator": "/",
        "unit_patterns": ["*.py"],
        "document_patterns": ["*.scene.yml", "*.scene.yaml"],
        "ignore_patterns": [],
    }

    MAX_SCAN_WORKERS = 64

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / ".script_atlas.yml"

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """Build a configuration from a dict, validated like a file would be."""
        if not isinstance(values, dict):
            raise ConfigurationError(f"Configuration must be a dictionary, got {type(values)}")
        config = cls.__new__(cls)
        config.config_path = None
        config._config = cls._defaults()
        config._validate_and_merge(values)
        return config

    @classmethod
    def _defaults(cls) -> Dict[str, Any]:
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in cls.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except Exception as e:
            logger.warning(
                f"Unexpected error loading configuration file "
                f"{self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is a subclass of int; reject it for numeric parameters
        if isinstance(value, bool) and expected_type is not bool:
            return False
        if not isinstance(value, expected_type):
            return False

        if key == "scan_workers":
            return bool(0 < value <= self.MAX_SCAN_WORKERS)
        elif key == "node_path_separator":
            return len(value) > 0
        elif key in ("unit_patterns", "document_patterns"):
            return len(value) > 0 and all(isinstance(p, str) and p for p in value)
        elif key == "ignore_patterns":
            return all(isinstance(p, str) for p in value)

        return True

    @property
    def cache_path(self) -> Path:
        """Usage cache file."""
        value = self._config["cache_path"]
        assert isinstance(value, str)
        return Path(value).expanduser() if value else get_default_cache_path()

    @property
    def enable_usage_cache(self) -> bool:
        """Whether usage lookups go through the persisted cache."""
        value = self._config["enable_usage_cache"]
        assert isinstance(value, bool)
        return value

    @property
    def scan_workers(self) -> int:
        """Number of documents scanned in parallel."""
        value = self._config["scan_workers"]
        assert isinstance(value, int)
        return value

    @property
    def node_path_separator(self) -> str:
        """Separator joining ancestor names in node paths."""
        value = self._config["node_path_separator"]
        assert isinstance(value, str)
        return value

    @property
    def unit_patterns(self) -> List[str]:
        """Glob patterns of source units."""
        value = self._config["unit_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def document_patterns(self) -> List[str]:
        """Glob patterns of hierarchical documents."""
        value = self._config["document_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def ignore_patterns(self) -> List[str]:
        """fnmatch patterns of units and documents to leave out."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value
