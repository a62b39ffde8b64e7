"""
event_tracker/events/inputs.py

WHAT THIS FILE IS FOR
---------------------
Reads the action inputs (GitHub exposes them as INPUT_<NAME> environment
variables) and validates them into ActionInputs.

Fallbacks:
- api_url: input -> VERSIONER_API_URL / settings default
- api_key: input -> VERSIONER_API_KEY (via settings)
- fail_on_api_error: input -> fail_on_rejection input -> true

Booleans are true only for "true" (case-insensitive). `metadata` must be
a JSON object.

Any problem raises InputValidationError with a single readable message.
"""

from __future__ import annotations

import json
import os
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from event_schemas.input_schema import ActionInputs
from event_tracker.events.errors import InputValidationError
from event_tracker.utils.settings import DEFAULT_API_URL, Settings

VALID_EVENT_TYPES = ("build", "deployment")


def get_input(environ: Mapping[str, str], name: str) -> str:
    """Same lookup as the runner: INPUT_<NAME>, spaces -> underscores, upper-cased."""
    key = f"INPUT_{name.replace(' ', '_').upper()}"
    return (environ.get(key) or "").strip()


def parse_bool(value: str, default: bool) -> bool:
    if not value:
        return default
    return value.lower() == "true"


def parse_metadata(raw: str) -> Dict[str, Any]:
    try:
        metadata = json.loads(raw or "{}")
    except ValueError as exc:
        raise InputValidationError(f"Invalid metadata JSON: {exc}") from exc

    if not isinstance(metadata, dict):
        raise InputValidationError("Invalid metadata JSON: Metadata must be a JSON object")
    return metadata


def read_action_inputs(
    environ: Optional[Mapping[str, str]] = None,
    settings: Optional[Settings] = None,
) -> ActionInputs:
    env = environ if environ is not None else os.environ

    default_api_url = str(settings.api_url) if settings and settings.api_url else DEFAULT_API_URL
    default_api_key = settings.api_key.get_secret_value() if settings and settings.api_key else ""

    event_type = get_input(env, "event_type") or "deployment"
    if event_type not in VALID_EVENT_TYPES:
        raise InputValidationError(
            f"Invalid event_type: '{event_type}'. Must be one of: {', '.join(VALID_EVENT_TYPES)}"
        )

    version = get_input(env, "version")
    if not version:
        raise InputValidationError("Input required and not supplied: version")

    fail_on_api_error_raw = get_input(env, "fail_on_api_error") or get_input(env, "fail_on_rejection")

    # Status is validated server-side; the API accepts many spellings
    # (success/completed/failed/in_progress/...).
    try:
        return ActionInputs(
            api_url=(get_input(env, "api_url") or default_api_url).rstrip("/"),
            api_key=get_input(env, "api_key") or default_api_key,
            event_type=event_type,
            product_name=get_input(env, "product_name"),
            version=version,
            environment=get_input(env, "environment"),
            status=get_input(env, "status") or "success",
            metadata=parse_metadata(get_input(env, "metadata")),
            fail_on_api_error=parse_bool(fail_on_api_error_raw, default=True),
            skip_preflight_checks=parse_bool(get_input(env, "skip_preflight_checks"), default=False),
        )
    except ValidationError as exc:
        raise InputValidationError(_first_error(exc)) from exc


def _first_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    msg = str(errors[0].get("msg", ""))
    # Pydantic prefixes custom ValueError messages with "Value error, ".
    return msg.removeprefix("Value error, ")
