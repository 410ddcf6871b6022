"""Configuration models and loading for specks.

Configuration lives in ``<project>/.specks/config.yaml``. Every field has a
default, so a missing file yields a usable configuration; a file that is not
valid YAML or that fails schema validation raises ConfigError.

Usage:
    from specks.core import get_config, load_config_with_project

    load_config_with_project(project_root)
    config = get_config()
    if config.validation.check_bead_existence:
        ...

Example config.yaml:
    validation:
      level: strict
      show_info: true
    beads:
      bd_path: /usr/local/bin/bd
      substeps: children
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from specks.core.exceptions import ConfigError
from specks.core.types import ValidationLevel

logger = logging.getLogger(__name__)

SPECKS_DIR_NAME = ".specks"
CONFIG_FILE_NAME = "config.yaml"

# Environment variable overriding beads.bd_path (for caller-side backends)
ENV_BD_PATH = "SPECKS_BD_PATH"

# Refuse to parse absurdly large config files
MAX_CONFIG_SIZE = 1_048_576


class ValidationConfig(BaseModel):
    """Validation engine settings.

    Attributes:
        level: Strictness level (lenient/normal/strict).
        show_info: Include info-level issues in filtered output.
        check_bead_existence: Also verify that well-formed bead ids exist.
        max_document_lines: Line count above which an info issue is raised.
        deep_dive_ratio: Deep-dive share of the document above which an
            info issue is raised.

    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    level: ValidationLevel = Field(
        default="normal",
        description="Validation strictness: lenient, normal or strict",
    )
    show_info: bool = Field(
        default=False,
        description="Include info-level messages in validation output",
    )
    check_bead_existence: bool = Field(
        default=False,
        description="Verify that bead ids exist in the tracker",
    )
    max_document_lines: int = Field(
        default=2000,
        ge=1,
        description="Line count above which the document is reported as large",
    )
    deep_dive_ratio: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Deep-dive share above which the document is reported as unbalanced",
    )


class BeadsConfig(BaseModel):
    """Beads tracker integration settings.

    Attributes:
        enabled: Whether beads integration is used at all.
        bd_path: Path or name of the bd executable. specks never runs bd
            itself; this is read by whatever BeadsBackend the caller
            builds (e.g. a subprocess backend) via get_config().beads.
        root_issue_type: Issue type used for the root record.
        substeps: "none" keeps substeps out of the tracker, "children"
            creates one child record per substep.
        prune_deps: Remove tracker edges not declared in the document.
        pull_checkbox_mode: Which checkboxes pull convergence may check.

    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    enabled: bool = True
    bd_path: str = Field(default="bd", min_length=1)
    root_issue_type: str = Field(default="epic", min_length=1)
    substeps: Literal["none", "children"] = "none"
    prune_deps: bool = False
    pull_checkbox_mode: Literal["checkpoints", "all"] = "checkpoints"


class SpecksConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    beads: BeadsConfig = Field(default_factory=BeadsConfig)


# =============================================================================
# Loading
# =============================================================================

_config: SpecksConfig | None = None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment overrides on top of file data."""
    bd_path = os.environ.get(ENV_BD_PATH)
    if bd_path:
        beads = dict(data.get("beads") or {})
        beads["bd_path"] = bd_path
        data = {**data, "beads": beads}
    return data


def _read_yaml(path: Path) -> dict[str, Any]:
    """Read a YAML mapping from path.

    Raises:
        ConfigError: If the file is unreadable, too large, not YAML, or not
            a mapping.

    """
    try:
        size = path.stat().st_size
        if size > MAX_CONFIG_SIZE:
            raise ConfigError(f"Config file {path} is too large ({size} bytes)")
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(path: Path | None = None) -> SpecksConfig:
    """Load configuration from a YAML file and store it as the singleton.

    Args:
        path: Config file. None or a missing file yields defaults.

    Returns:
        Validated SpecksConfig.

    Raises:
        ConfigError: If the file is malformed or fails validation.

    """
    global _config

    data: dict[str, Any] = {}
    if path is not None and path.exists():
        data = _read_yaml(path)
        logger.debug("Loaded config from %s", path)
    elif path is not None:
        logger.debug("Config not found at %s, using defaults", path)

    data = _apply_env_overrides(data)

    try:
        config = SpecksConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    _config = config
    return config


def load_config_with_project(project_root: Path) -> SpecksConfig:
    """Load ``<project_root>/.specks/config.yaml``."""
    return load_config(project_root / SPECKS_DIR_NAME / CONFIG_FILE_NAME)


def get_config() -> SpecksConfig:
    """Return the loaded configuration, loading defaults on first use."""
    if _config is None:
        return load_config()
    return _config


def _reset_config() -> None:
    """Reset the singleton (test isolation)."""
    global _config
    _config = None
