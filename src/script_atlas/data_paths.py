# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared data locations for script atlas.

- Configurable data root directory (default: ~/.script_atlas/)
- usage_cache.json: persisted usage cache
- logs/: Python logging output written by setup_logging()
"""

from pathlib import Path
from typing import Optional

# Default data root directory (user home)
DEFAULT_DATA_ROOT = Path.home() / ".script_atlas"

USAGE_CACHE_FILENAME = "usage_cache.json"
LOGS_SUBDIR = "logs"


def validate_filename_component(value: str, name: str = "value") -> None:
    """Validate a string for safe use in filenames.

    Args:
        value: The string to validate.
        name: Name of the parameter for error messages.

    Raises:
        ValueError: If value contains path separators, parent references,
                   or null bytes.
    """
    if "\0" in value:
        raise ValueError(f"{name} contains null bytes: {value}")
    if "/" in value or "\\" in value or ":" in value:
        raise ValueError(f"{name} must not contain path separators: {value}")
    if ".." in value:
        raise ValueError(f"{name} must not contain parent references: {value}")


def get_default_cache_path(data_root: Optional[Path] = None, filename: str = USAGE_CACHE_FILENAME) -> Path:
    """Get the usage cache file path.

    Args:
        data_root: Data root directory. If None, uses default.
        filename: Cache file name.

    Returns:
        Path to {data_root}/usage_cache.json

    Raises:
        ValueError: If filename contains path separators or invalid chars.
    """
    validate_filename_component(filename, "filename")
    root = data_root or DEFAULT_DATA_ROOT
    return root / filename


def get_logs_dir(data_root: Optional[Path] = None) -> Path:
    """Get the log directory.

    Args:
        data_root: Data root directory. If None, uses default.

    Returns:
        Path to {data_root}/logs/
    """
    root = data_root or DEFAULT_DATA_ROOT
    return root / LOGS_SUBDIR
