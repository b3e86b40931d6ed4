# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import pytest
import yaml

from script_atlas.config import Config, ConfigurationError
from script_atlas.data_paths import get_default_cache_path


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "nonexistent.yml")

        assert config.cache_path == get_default_cache_path()
        assert config.enable_usage_cache is True
        assert config.scan_workers == 1
        assert config.node_path_separator == "/"
        assert config.unit_patterns == ["*.py"]
        assert config.document_patterns == ["*.scene.yml", "*.scene.yaml"]
        assert config.ignore_patterns == []


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "cache_path": str(Path(tmpdir) / "cache.json"),
            "scan_workers": 8,
            "node_path_separator": ".",
            "ignore_patterns": ["tests/*"],
        }
        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.cache_path == Path(tmpdir) / "cache.json"
        assert config.scan_workers == 8
        assert config.node_path_separator == "."
        assert config.ignore_patterns == ["tests/*"]
        # Defaults for unspecified values
        assert config.enable_usage_cache is True


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    config = Config.from_dict(
        {
            "scan_workers": 0,  # Invalid: must be > 0
            "node_path_separator": "",  # Invalid: must not be empty
            "unit_patterns": [],  # Invalid: must not be empty
            "document_patterns": ["*.yml", 3],  # Invalid: non-string pattern
            "enable_usage_cache": "yes",  # Invalid: must be bool
        }
    )

    assert config.scan_workers == 1
    assert config.node_path_separator == "/"
    assert config.unit_patterns == ["*.py"]
    assert config.document_patterns == ["*.scene.yml", "*.scene.yaml"]
    assert config.enable_usage_cache is True


def test_bool_rejected_for_integer_parameter():
    """Test that a YAML boolean is not accepted as a worker count."""
    assert Config.from_dict({"scan_workers": True}).scan_workers == 1


def test_scan_workers_upper_bound():
    assert Config.from_dict({"scan_workers": Config.MAX_SCAN_WORKERS}).scan_workers == 64
    assert Config.from_dict({"scan_workers": Config.MAX_SCAN_WORKERS + 1}).scan_workers == 1


def test_unknown_parameters_ignored():
    """Test that unknown parameters are ignored with warning."""
    config = Config.from_dict({"unknown_param": 123, "scan_workers": 2})
    assert config.scan_workers == 2
    assert not hasattr(config, "unknown_param")


def test_from_dict_rejects_non_mapping():
    with pytest.raises(ConfigurationError):
        Config.from_dict(["scan_workers", 2])  # type: ignore[arg-type]


def test_defaults_not_shared_between_instances():
    first = Config.from_dict({})
    first.ignore_patterns.append("*.tmp")
    assert Config.from_dict({}).ignore_patterns == []


def test_malformed_yaml():
    """Test that malformed YAML falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("scan_workers: [unclosed\n")

        config = Config(config_path=config_path)

        assert config.scan_workers == 1


def test_empty_and_non_mapping_files():
    """Test that empty files and non-dictionary YAML use defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        empty = Path(tmpdir) / "empty.yml"
        empty.write_text("")
        listing = Path(tmpdir) / "list.yml"
        listing.write_text("- scan_workers\n")

        assert Config(config_path=empty).scan_workers == 1
        assert Config(config_path=listing).scan_workers == 1


def test_cache_path_expands_user():
    config = Config.from_dict({"cache_path": "~/atlas/cache.json"})
    assert config.cache_path == Path.home() / "atlas" / "cache.json"
