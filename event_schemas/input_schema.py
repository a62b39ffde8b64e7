# -------------------------------------------------------------------
# event_schemas/input_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# Typed records for everything the step *reads*:
#
# - ActionInputs: the validated user inputs of the action
#   (api_url, api_key, event_type, product, version, environment, ...)
# - CIContext: ambient metadata about the current CI run
#   (repository, commit, branch, run identifiers, actor)
#
# Raw values arrive as strings from INPUT_* / GITHUB_* environment
# variables; the readers in event_tracker/events/ turn them into these
# models. Validation rules that only depend on the inputs themselves live
# here as Pydantic validators.
#
# WHAT THIS FILE IS NOT FOR
# ------------------------
# - Reading environment variables
# - Building request payloads
# -------------------------------------------------------------------

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator, model_validator

EventKind = Literal["build", "deployment"]


class ActionInputs(BaseModel):
    """
    Validated inputs for one invocation.

    `metadata` keeps the user's key order; it is merged over auto-detected
    metadata later, so user keys always win.
    """

    model_config = ConfigDict(frozen=True)

    api_url: str
    api_key: SecretStr
    event_type: EventKind = "deployment"
    product_name: str = ""
    version: str = Field(..., min_length=1)
    environment: str = ""
    status: str = "success"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    fail_on_api_error: bool = True
    skip_preflight_checks: bool = False

    @field_validator("api_url")
    @classmethod
    def _api_url_has_scheme(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("Invalid api_url: must start with http:// or https://")
        return value

    @field_validator("api_key")
    @classmethod
    def _api_key_present(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value():
            raise ValueError(
                "api_key is required (provide via input or VERSIONER_API_KEY environment variable)"
            )
        return value

    @model_validator(mode="after")
    def _environment_required_for_deployments(self) -> "ActionInputs":
        if self.event_type == "deployment" and not self.environment:
            raise ValueError("environment is required when event_type is 'deployment'")
        return self


class CIContext(BaseModel):
    """Ambient metadata of the current CI run. Empty strings mean "unknown"."""

    model_config = ConfigDict(frozen=True)

    scm_repository: str = ""
    scm_sha: str = ""
    scm_branch: str = ""
    source_system: str = "github"
    build_number: str = ""
    invoke_id: str = ""
    build_url: str = ""
    actor: str = ""
    actor_email: Optional[str] = None
    actor_name: Optional[str] = None

    # Auto-detected keys merged *under* user-provided metadata.
    detected_metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def repository_name(self) -> str:
        """`owner/repo` -> `repo`."""
        return self.scm_repository.rsplit("/", 1)[-1] if self.scm_repository else ""
