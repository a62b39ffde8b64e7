"""
event_tracker/utils/settings.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single source of truth* for runtime configuration
of the event tracker step.

It is responsible for:
- Defining all supported configuration fields (via Pydantic BaseSettings)
- Loading default values from parameters/parameters.yaml
- Overriding defaults with environment variables (VERSIONER_*)
- Validating required settings (the tracking API base URL)
- Exposing a cached, fully-validated Settings object to the step

Per-run action inputs (version, environment, metadata, ...) are NOT
settings; they are read by event_tracker/events/inputs.py. Settings only
provide process-level defaults that inputs may fall back to
(e.g. api_url, api_key).

LOAD & PRECEDENCE MODEL
-----------------------
Configuration is loaded in the following order (last wins):

1) YAML defaults from:
       parameters/parameters.yaml
2) Environment variables:
       VERSIONER_*

DESIGN INTENT
-------------
- All runtime-configurable behavior MUST be declared here
- Any missing required setting should fail fast at startup
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
import yaml
from pydantic import AnyHttpUrl, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

PARAMETERS_PATH = Path(__file__).resolve().parents[2] / "parameters" / "parameters.yaml"

# Set by action.yml: a non-editable install does not ship parameters/.
PARAMETERS_PATH_ENV = "VERSIONER_PARAMETERS_PATH"

DEFAULT_API_URL = "https://api.versioner.io"


class Settings(BaseSettings):
    """
    Runtime settings for the event tracker.

    Load order / precedence:
        1) YAML defaults (parameters/parameters.yaml)
        2) Environment variables (VERSIONER_*), overriding YAML
    """

    model_config = SettingsConfigDict(
        env_prefix="VERSIONER_",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Service metadata
    service_name: str = "event_tracker"
    environment: str = "ci"
    log_level: str = "INFO"

    # Tracking API
    api_url: Optional[AnyHttpUrl] = None
    api_key: Optional[SecretStr] = None

    # Hard ceiling for the single outbound call; a timeout is never retried.
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    source_system: str = "github"

    write_step_summary: bool = Field(
        default=True,
        description="If true, a markdown report is appended to GITHUB_STEP_SUMMARY.",
    )


def parameters_path() -> Path:
    override = os.environ.get(PARAMETERS_PATH_ENV)
    return Path(override) if override else PARAMETERS_PATH


@lru_cache(maxsize=1)
def _load_yaml_parameters() -> Dict[str, Any]:
    """
    Load base configuration from parameters/parameters.yaml.

    Cached to guarantee consistent config during process lifetime.
    """
    path = parameters_path()
    if not path.exists():
        logger.debug("parameters_yaml_missing", expected=str(path))
        return {}

    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("parameters_yaml_load_error", path=str(path), error=str(exc))
        return {}

    if not isinstance(data, dict):
        logger.warning(
            "parameters_yaml_not_dict",
            path=str(path),
            type=type(data).__name__,
        )
        return {}
    logger.debug("parameters_yaml_loaded", path=str(path))
    return data


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Construct and return the final validated Settings object.

    Cached (singleton per process) and the ONLY supported way to access
    runtime settings.
    """
    # 1) YAML defaults
    yaml_data = _load_yaml_parameters()

    # 2) env overrides (partial)
    try:
        env_settings = Settings()
        env_data = env_settings.model_dump(exclude_unset=True)
    except ValidationError as exc:
        logger.warning("settings_env_validation_error", errors=exc.errors())
        env_data = {}

    # 3) merge
    merged: Dict[str, Any] = {**yaml_data, **env_data}
    merged.setdefault("api_url", DEFAULT_API_URL)

    # 4) enforce required URL
    if not merged.get("api_url"):
        logger.error("settings_missing_api_url", yaml_path=str(parameters_path()))
        raise RuntimeError(
            "Missing required setting: api_url. "
            "Set it either via VERSIONER_API_URL "
            f"or in {parameters_path()}."
        )

    # 5) final validation
    settings = Settings.model_validate(merged)

    logger.debug(
        "settings_loaded",
        environment=settings.environment,
        service_name=settings.service_name,
        api_url=str(settings.api_url),
        has_api_key=settings.api_key is not None,
        request_timeout_seconds=settings.request_timeout_seconds,
        write_step_summary=settings.write_step_summary,
    )

    return settings
