# -------------------------------------------------------------------
# event_schemas/event_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# Request payloads sent to the tracking API:
#
#   POST /build-events/       -> BuildEventPayload
#   POST /deployment-events/  -> DeploymentEventPayload
#
# WIRE RULE (IMPORTANT)
# ---------------------
# The remote contract distinguishes "absent" from "empty". Optional fields
# that are None or empty strings are OMITTED from the request body, never
# sent as null / "". Use `to_request_body()`; do not call model_dump()
# directly when building a request.
# -------------------------------------------------------------------

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _EventPayloadBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_name: str = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    status: str = "success"

    scm_repository: Optional[str] = None
    scm_sha: Optional[str] = None
    scm_branch: Optional[str] = None
    source_system: Optional[str] = None
    build_number: Optional[str] = None
    invoke_id: Optional[str] = None
    build_url: Optional[str] = None

    extra_metadata: Dict[str, Any] = Field(default_factory=dict)
    skip_preflight_checks: bool = False

    def to_request_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        for key, value in self.model_dump(mode="json").items():
            if value is None or value == "":
                continue
            if key == "extra_metadata" and not value:
                continue
            if key == "skip_preflight_checks" and not value:
                continue
            body[key] = value
        return body


class BuildEventPayload(_EventPayloadBase):
    built_by: Optional[str] = None
    built_by_email: Optional[str] = None
    built_by_name: Optional[str] = None
    started_at: Optional[datetime] = None


class DeploymentEventPayload(_EventPayloadBase):
    environment_name: str = Field(..., min_length=1)
    deployed_by: Optional[str] = None
    deployed_by_email: Optional[str] = None
    deployed_by_name: Optional[str] = None
    completed_at: Optional[datetime] = None
