"""Configuration schema and loading for acctsync.

Settings live in a single YAML file (acctsync_config.yaml by default):

    reconcile:
      key_field: Name
      timestamp_field: LastReferencedDate
      filters:
        - field: MailingCountry
          values: [ARG]
    job:
      job_name: migrateAccountsBatch
      timeout_secs: 60
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError
from .filters import AnyOfFilter, build_filter
from .models import FIELD_LAST_REFERENCED_DATE, FIELD_MAILING_COUNTRY, FIELD_NAME

DEFAULT_CONFIG_FILE = "acctsync_config.yaml"
CONFIG_ENV_VAR = "ACCTSYNC_CONFIG"


class FilterRule(BaseModel):
    """Exclude accounts whose field value is one of ``values``."""

    field: str = Field(..., description="CRM field name, e.g. MailingCountry")
    values: list[str] = Field(default_factory=list, description="Denied values")
    case_sensitive: bool = True

    @field_validator("field")
    @classmethod
    def validate_field(cls, v: str) -> str:
        """Field names can't be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Filter field must not be empty")
        return v


def _default_filters() -> list[FilterRule]:
    return [FilterRule(field=FIELD_MAILING_COUNTRY, values=["ARG"])]


class ReconcileSettings(BaseModel):
    """How accounts are matched, ordered and filtered."""

    key_field: str = Field(default=FIELD_NAME, description="Field matching accounts across orgs")
    timestamp_field: str = Field(
        default=FIELD_LAST_REFERENCED_DATE, description="Field holding the last-touched time"
    )
    filters: list[FilterRule] = Field(default_factory=_default_filters)


class JobSettings(BaseModel):
    """Batch job invocation settings."""

    job_name: str = "migrateAccountsBatch"
    timeout_secs: float = Field(default=60.0, gt=0, description="Max wait for job termination")


class SyncConfig(BaseModel):
    """Complete acctsync configuration."""

    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)
    job: JobSettings = Field(default_factory=JobSettings)

    def record_filter(self) -> AnyOfFilter:
        """Build the eligibility filter from the configured rules."""
        return build_filter(self.reconcile.filters)


def resolve_config_path(config_path: Path | None) -> Path | None:
    """Pick the config file: explicit path, then $ACCTSYNC_CONFIG, then ./acctsync_config.yaml."""
    if config_path is not None:
        return config_path
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    default = Path(DEFAULT_CONFIG_FILE)
    if default.exists():
        return default
    return None


def load_config(config_path: Path | None = None) -> SyncConfig:
    """Load configuration from YAML.

    Args:
        config_path: Path to the config file, or None to use the default lookup

    Returns:
        Parsed configuration (defaults if no file is found)

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = resolve_config_path(config_path)
    if path is None:
        return SyncConfig()

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return SyncConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        return SyncConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e
