"""
event_tracker/events/payload_builder.py

Combines validated inputs with the CI context into the request payload.

- product_name defaults to the repository name ("owner/repo" -> "repo")
- metadata: auto-detected keys first, user keys override by source
  precedence
- timestamps are taken once, in UTC
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Union

from event_schemas.event_schema import BuildEventPayload, DeploymentEventPayload
from event_schemas.input_schema import ActionInputs, CIContext
from event_tracker.events.errors import InputValidationError

EventPayload = Union[BuildEventPayload, DeploymentEventPayload]


def merge_metadata(detected: Mapping[str, Any], provided: Mapping[str, Any]) -> Dict[str, Any]:
    merged: Dict[str, Any] = dict(detected)
    merged.update(provided)
    return merged


def resolve_product_name(inputs: ActionInputs, context: CIContext) -> str:
    product_name = inputs.product_name or context.repository_name
    if not product_name:
        raise InputValidationError(
            "product_name is required when the repository cannot be detected (GITHUB_REPOSITORY is unset)"
        )
    return product_name


def build_payload(
    inputs: ActionInputs,
    context: CIContext,
    now: Optional[datetime] = None,
) -> EventPayload:
    timestamp = now or datetime.now(timezone.utc)

    common: Dict[str, Any] = {
        "product_name": resolve_product_name(inputs, context),
        "version": inputs.version,
        "status": inputs.status,
        "scm_repository": context.scm_repository or None,
        "scm_sha": context.scm_sha or None,
        "scm_branch": context.scm_branch or None,
        "source_system": context.source_system or None,
        "build_number": context.build_number or None,
        "invoke_id": context.invoke_id or None,
        "build_url": context.build_url or None,
        "extra_metadata": merge_metadata(context.detected_metadata, inputs.metadata),
        "skip_preflight_checks": inputs.skip_preflight_checks,
    }

    if inputs.event_type == "build":
        return BuildEventPayload(
            **common,
            built_by=context.actor or None,
            built_by_email=context.actor_email,
            built_by_name=context.actor_name,
            started_at=timestamp,
        )

    return DeploymentEventPayload(
        **common,
        environment_name=inputs.environment,
        deployed_by=context.actor or None,
        deployed_by_email=context.actor_email,
        deployed_by_name=context.actor_name,
        completed_at=timestamp,
    )
