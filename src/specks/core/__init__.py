"""Core module for specks configuration and utilities.

This module provides:
- Configuration models and singleton access via get_config()
- File-based configuration loading via load_config()
- Custom exception hierarchy with SpecksError as base
- Atomic file writes via atomic_write()
"""

from specks.core.config import (
    CONFIG_FILE_NAME,
    ENV_BD_PATH,
    SPECKS_DIR_NAME,
    BeadsConfig,
    SpecksConfig,
    ValidationConfig,
    get_config,
    load_config,
    load_config_with_project,
)
from specks.core.exceptions import (
    BeadsCommandError,
    BeadsError,
    BeadsNotInitializedError,
    BeadsNotInstalledError,
    BeadsUnavailableError,
    ConfigError,
    DocumentReadError,
    ErrorCategory,
    MalformedResponseError,
    RecordNotFoundError,
    SpecksError,
    WriteBackError,
)
from specks.core.io import atomic_write, read_document, read_text

__all__ = [
    # Config constants
    "CONFIG_FILE_NAME",
    "ENV_BD_PATH",
    "SPECKS_DIR_NAME",
    # Config models
    "BeadsConfig",
    "SpecksConfig",
    "ValidationConfig",
    # Config functions
    "get_config",
    "load_config",
    "load_config_with_project",
    # Exceptions
    "BeadsCommandError",
    "BeadsError",
    "BeadsNotInitializedError",
    "BeadsNotInstalledError",
    "BeadsUnavailableError",
    "ConfigError",
    "DocumentReadError",
    "ErrorCategory",
    "MalformedResponseError",
    "RecordNotFoundError",
    "SpecksError",
    "WriteBackError",
    # IO
    "atomic_write",
    "read_document",
    "read_text",
]
