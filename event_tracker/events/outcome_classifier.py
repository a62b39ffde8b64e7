"""
event_tracker/events/outcome_classifier.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single canonical rule* for turning the result of
the event POST into an outcome the step acts on.

DECISION ORDER (IMPORTANT)
--------------------------
1) 2xx                        -> Recorded
     Malformed or incomplete bodies are still Recorded; the problem is
     carried in `warnings`.
2) 409 / 423 / 428            -> Rejected
     Checked BEFORE fail_on_api_error and independent of it: server-side
     policy cannot be bypassed by a local flag.
3) anything else              -> Fatal      (fail_on_api_error=true)
                              -> NotRecorded (fail_on_api_error=false)

Rejected outcomes carry the rendered step-summary markdown, produced by
SummaryReporter.

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT:
- Perform HTTP calls
- Log, print, raise, or write files

It performs pure, deterministic mapping only: the same RawCallResult,
policy and context always give an equal outcome.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Type, Union

from pydantic import ValidationError

from event_schemas.outcome_schema import (
    REJECTION_STATUS_CODES,
    CallContext,
    ClassificationPolicy,
    ClassifiedOutcome,
    Fatal,
    NotRecorded,
    RawCallResult,
    Recorded,
    Rejected,
    RejectionCategory,
)
from event_schemas.output_schema import BuildEventResponse, DeploymentEventResponse
from event_tracker.events.summary_reporter import (
    APPROVAL_CODES,
    FLOW_VIOLATION,
    INSUFFICIENT_SOAK_TIME,
    SummaryReporter,
    rejection_heading,
)

UNKNOWN_ERROR_CODE = "UNKNOWN"
UNKNOWN_RULE = "Unknown Rule"

ResponseModel = Type[Union[BuildEventResponse, DeploymentEventResponse]]


def response_model_for(event_kind: str) -> ResponseModel:
    return BuildEventResponse if event_kind == "build" else DeploymentEventResponse


def classify_outcome(
    *,
    result: RawCallResult,
    policy: ClassificationPolicy,
    context: CallContext,
) -> ClassifiedOutcome:
    if result.is_success:
        return _recorded(result, context)

    # Policy rejections ignore fail_on_api_error entirely.
    category = rejection_category(result)
    if category is not None:
        return _rejected(result, category, context)

    message = api_error_message(result, context)
    if policy.fail_on_api_error:
        return Fatal(event_kind=context.event_kind, status_code=result.status_code, message=message)

    return NotRecorded(
        event_kind=context.event_kind,
        message=message,
        response=response_model_for(context.event_kind).not_recorded(version=context.version),
    )


def rejection_category(result: RawCallResult) -> Optional[RejectionCategory]:
    if result.transport_error is not None or result.status_code is None:
        return None
    return REJECTION_STATUS_CODES.get(result.status_code)


def api_error_message(result: RawCallResult, context: CallContext) -> str:
    """Actionable message for a non-policy failure (HTTP or transport)."""
    status = result.status_code
    kind = context.event_kind

    if result.transport_error is None:
        if status == 401:
            return "Authentication failed: Invalid API key. Please check your VERSIONER_API_KEY secret."
        if status == 403:
            return f"Authorization failed: API key does not have permission to create {kind} events."
        if status == 422:
            return f"Validation error: {_as_text(result.body)}"
        if status == 404:
            return f"API endpoint not found. Please check your api_url: {context.api_url}"

    if result.transport_error == "connection_refused":
        return f"Connection refused: Unable to connect to {context.api_url}. Please check the API URL."
    if result.transport_error == "timeout":
        return (
            f"Request timeout: The API did not respond within {context.timeout_seconds:g} seconds. "
            "Please try again."
        )

    reason = result.error_message or "Unknown error"
    response_data = f"\nResponse: {_as_text(result.body)}" if result.body else ""
    return f"Failed to send {kind} event (HTTP {status or 'unknown'}): {reason}{response_data}"


# ---------------------------------------------------------------------- #
# Internal helpers
# ---------------------------------------------------------------------- #
def _recorded(result: RawCallResult, context: CallContext) -> Recorded:
    model = response_model_for(context.event_kind)
    warnings: list[str] = []

    if isinstance(result.body, dict):
        try:
            response = model.model_validate(result.body)
        except ValidationError as exc:
            warnings.append(f"API response did not match the expected schema: {exc.error_count()} error(s)")
            response = model()
    else:
        warnings.append("API response body is not a JSON object")
        response = model()

    for field_name in response.missing_identifiers():
        warnings.append(f"API response is missing {field_name} field (HTTP {result.status_code})")

    return Recorded(event_kind=context.event_kind, response=response, warnings=tuple(warnings))


def _error_detail(body: Any) -> Dict[str, Any]:
    """
    Locate the structured error object.

    Shapes seen from the service:
      {"detail": {"code": ..., "message": ..., "details": {...}, "retry_after": ...}}
      {"detail": "text"}
      {"message": ..., "error": ...}
    """
    if not isinstance(body, dict):
        return {}
    detail = body.get("detail")
    if isinstance(detail, dict):
        return detail
    if isinstance(detail, str) and detail.strip():
        return {"message": detail.strip()}
    return body


def _text_field(source: Dict[str, Any], key: str) -> Optional[str]:
    value = source.get(key)
    if value is None or value == "":
        return None
    return str(value)


def _rejected(result: RawCallResult, category: RejectionCategory, context: CallContext) -> Rejected:
    detail = _error_detail(result.body)
    details = detail.get("details") if isinstance(detail.get("details"), dict) else None

    error_code = _text_field(detail, "code") or UNKNOWN_ERROR_CODE
    message = (
        _text_field(detail, "message")
        or _text_field(detail, "error")
        or f"{context.label} rejected by Versioner"
    )
    rule_name = (_text_field(details, "rule_name") if details else None) or UNKNOWN_RULE
    retry_after = _text_field(detail, "retry_after")

    rejected = Rejected(
        event_kind=context.event_kind,
        status_code=result.status_code,
        category=category,
        error_code=error_code,
        message=message,
        rule_name=rule_name,
        retry_after=retry_after,
        details=details,
        failure_message=_rejection_message(
            category=category,
            label=context.label,
            error_code=error_code,
            message=message,
            rule_name=rule_name,
            retry_after=retry_after,
            details=details,
        ),
    )
    return rejected.model_copy(update={"summary": SummaryReporter.render(rejected)})


def _precondition_hint(error_code: str, label: str) -> str:
    if error_code == FLOW_VIOLATION:
        return "Deploy to required environments first, then retry."
    if error_code == INSUFFICIENT_SOAK_TIME:
        return "Wait for soak time to complete, then retry."
    if error_code in APPROVAL_CODES:
        return (
            f"Approval required before {label.lower()} can proceed.\n"
            "Obtain approval via Versioner UI, then retry."
        )
    return "Resolve the issue described above, then retry."


def _rejection_message(
    *,
    category: RejectionCategory,
    label: str,
    error_code: str,
    message: str,
    rule_name: str,
    retry_after: Optional[str],
    details: Optional[Dict[str, Any]],
) -> str:
    text = f"{rejection_heading(category, label)}\n\n"

    if category is RejectionCategory.CONFLICT:
        text += f"{message}\n"
        text += f"Another {label.lower()} is in progress. Please wait and retry."
        return text

    if category is RejectionCategory.PRECONDITION_FAILED:
        text += f"Error: {error_code}\n"
    text += f"Rule: {rule_name}\n"
    text += f"{message}\n"
    if retry_after:
        text += f"\nRetry after: {retry_after}"

    if category is RejectionCategory.PRECONDITION_FAILED:
        text += f"\n\n{_precondition_hint(error_code, label)}"
        if details:
            text += f"\n\nDetails: {_as_text(details, indent=2)}"

    return text


def _as_text(value: Any, indent: Optional[int] = None) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=indent, default=str)
    return str(value)
