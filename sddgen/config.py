"""
sddgen Config - Immutable run configuration

One RunConfig is built per run and handed to every phase's constructor.
Values come from (highest priority first): explicit overrides, SDDGEN_*
environment variables (a .env file is loaded first), an optional YAML file,
and the defaults below.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from sddgen.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_CONFIG_FILE = "sddgen.yaml"
ENV_PREFIX = "SDDGEN_"
API_KEY_ENV = "ANTHROPIC_API_KEY"


class RunConfig(BaseModel):
    """Settings shared by every phase of one run."""

    output_dir: Path = Field(Path("output"), alias="outputDir")
    temp_dir: Path = Field(Path(".temp"), alias="tempDir")
    verbose: bool = False

    # Oracle
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(8000, alias="maxTokens", gt=0)
    temperature: float = Field(0.7, ge=0.0, le=1.0)

    # Optional phases
    with_database: bool = Field(True, alias="withDatabase")
    with_frontend: bool = Field(True, alias="withFrontend")
    with_backend: bool = Field(True, alias="withBackend")
    fix: bool = True

    # Repair loop
    max_fix_attempts: int = Field(3, alias="maxFixAttempts", ge=1)
    check_types: bool = Field(True, alias="checkTypes")
    check_lint: bool = Field(True, alias="checkLint")
    checker_timeout: float = Field(300.0, alias="checkerTimeout", gt=0)

    model_config = {"populate_by_name": True, "frozen": True}

    @classmethod
    def from_yaml(cls, yaml_content: str) -> "RunConfig":
        """Parse YAML content into a RunConfig"""
        data = yaml.safe_load(yaml_content) or {}
        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_file(cls, path: str | Path) -> "RunConfig":
        """Load config from a YAML file"""
        try:
            content = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
        return cls.from_yaml(content)

    def project_path(self, project_name: str) -> Path:
        """Directory a generated project is written to."""
        return self.output_dir / project_name


def _env_overrides() -> dict[str, Any]:
    """Collect SDDGEN_* variables keyed by field name."""
    overrides: dict[str, Any] = {}
    for name in RunConfig.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value is not None:
            overrides[name] = value
    return overrides


def load_config(
    config_file: str | Path | None = None,
    **overrides: Any,
) -> RunConfig:
    """
    Build the RunConfig for a run.

    Args:
        config_file: Optional YAML file. Defaults to ./sddgen.yaml when present.
        **overrides: Explicit values (e.g. from CLI options). None is ignored.

    Returns:
        Frozen RunConfig
    """
    load_dotenv()

    if config_file is None and Path(DEFAULT_CONFIG_FILE).exists():
        config_file = DEFAULT_CONFIG_FILE

    base = RunConfig.from_file(config_file) if config_file else RunConfig()
    data = base.model_dump()
    data.update(_env_overrides())
    data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = RunConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug("Loaded configuration: %s", config)
    return config


def require_api_key() -> str:
    """Return the Anthropic API key or fail before any phase starts."""
    load_dotenv()
    key = os.environ.get(API_KEY_ENV)
    if not key:
        raise ConfigurationError(f"{API_KEY_ENV} environment variable is required")
    return key
