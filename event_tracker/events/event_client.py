"""
event_tracker/events/event_client.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *thin, synchronous client* that reports one build
or deployment event to the tracking API.

It is responsible for:
- Building the endpoint and headers (Bearer auth, JSON)
- Performing exactly ONE POST with a hard timeout (no retries)
- Converting network exceptions into a RawCallResult
- Running the outcome classifier
- Carrying out the outcome's side effects:
    Recorded     -> info log, warnings for incomplete responses
    NotRecorded  -> workflow warning, continue
    Rejected     -> step summary report, raise EventRejectedError
    Fatal        -> raise ApiCallError

CALL FLOW CONTEXT
-----------------
action.run()
  → EventClient.send_event(payload)
      → POST <api_url>/build-events/ | <api_url>/deployment-events/
      → classify_outcome()

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT:
- Decide outcomes itself (outcome_classifier.py owns that)
- Render markdown (summary_reporter.py)
- Set step outputs (action.py)
- Log the API key
"""

from __future__ import annotations

import errno
from typing import Any, Dict, List, Optional, Set, Union

import requests
import structlog

from event_schemas.event_schema import BuildEventPayload, DeploymentEventPayload
from event_schemas.outcome_schema import (
    CallContext,
    ClassificationPolicy,
    Fatal,
    NotRecorded,
    RawCallResult,
    Recorded,
    Rejected,
    TransportError,
)
from event_tracker.events.errors import ApiCallError, EventRejectedError
from event_tracker.events.outcome_classifier import classify_outcome
from event_tracker.utils.http_client import HttpClient
from event_tracker.utils.settings import Settings
from event_tracker.utils.workflow_commands import WorkflowCommands

logger = structlog.get_logger(__name__)

ENDPOINTS = {
    "build": "build-events/",
    "deployment": "deployment-events/",
}


class EventClient:
    """
    Reports events to the tracking API and applies the classified outcome.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        api_url: str,
        api_key: str,
        http: Optional[HttpClient] = None,
        commands: Optional[WorkflowCommands] = None,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required")

        self.settings = settings
        self.api_url = api_url.rstrip("/")
        self._api_key = api_key
        self.timeout_seconds = settings.request_timeout_seconds
        self.http = http or HttpClient(timeout_seconds=self.timeout_seconds)
        self.commands = commands or WorkflowCommands()

    def endpoint_for(self, event_kind: str) -> str:
        return f"{self.api_url}/{ENDPOINTS[event_kind]}"

    def send_build_event(
        self,
        payload: BuildEventPayload,
        *,
        fail_on_api_error: bool = True,
    ) -> Union[Recorded, NotRecorded]:
        return self._send("build", payload.to_request_body(), payload.version, fail_on_api_error)

    def send_deployment_event(
        self,
        payload: DeploymentEventPayload,
        *,
        fail_on_api_error: bool = True,
    ) -> Union[Recorded, NotRecorded]:
        return self._send("deployment", payload.to_request_body(), payload.version, fail_on_api_error)

    def send_event(
        self,
        payload: Union[BuildEventPayload, DeploymentEventPayload],
        *,
        fail_on_api_error: bool = True,
    ) -> Union[Recorded, NotRecorded]:
        if isinstance(payload, BuildEventPayload):
            return self.send_build_event(payload, fail_on_api_error=fail_on_api_error)
        return self.send_deployment_event(payload, fail_on_api_error=fail_on_api_error)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _send(
        self,
        event_kind: str,
        body: Dict[str, Any],
        version: str,
        fail_on_api_error: bool,
    ) -> Union[Recorded, NotRecorded]:
        endpoint = self.endpoint_for(event_kind)

        self.commands.info(f"Sending {event_kind} event to {endpoint}")
        logger.info("event_post_started", endpoint=endpoint, event_kind=event_kind)
        logger.debug("event_payload", payload=body)

        result = self._post(endpoint, body)

        outcome = classify_outcome(
            result=result,
            policy=ClassificationPolicy(fail_on_api_error=fail_on_api_error),
            context=CallContext(
                event_kind=event_kind,
                api_url=self.api_url,
                version=version,
                timeout_seconds=self.timeout_seconds,
            ),
        )
        return self._apply(outcome)

    def _post(self, endpoint: str, body: Dict[str, Any]) -> RawCallResult:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self._api_key}",
        }

        try:
            resp = self.http.post_json(endpoint, body, headers=headers)
        except requests.RequestException as exc:
            return RawCallResult(transport_error=transport_error_for(exc), error_message=str(exc))

        return RawCallResult(
            status_code=resp.status_code,
            body=_response_body(resp),
            error_message=resp.reason or None,
        )

    def _apply(
        self,
        outcome: Union[Recorded, NotRecorded, Rejected, Fatal],
    ) -> Union[Recorded, NotRecorded]:
        if isinstance(outcome, Recorded):
            logger.info(
                "event_recorded",
                event_kind=outcome.event_kind,
                event_id=outcome.response.id,
                warning_count=len(outcome.warnings),
            )
            self.commands.info(f"✅ {outcome.event_kind.capitalize()} event created successfully")
            for warning in outcome.warnings:
                self.commands.warning(f"⚠️ {warning}")
            return outcome

        if isinstance(outcome, Rejected):
            logger.error(
                "event_rejected",
                event_kind=outcome.event_kind,
                status_code=outcome.status_code,
                error_code=outcome.error_code,
                rule_name=outcome.rule_name,
                retry_after=outcome.retry_after,
            )
            if self.settings.write_step_summary:
                self.commands.append_summary(outcome.summary)
            raise EventRejectedError(outcome)

        if isinstance(outcome, Fatal):
            logger.error(
                "event_api_error",
                event_kind=outcome.event_kind,
                status_code=outcome.status_code,
                error=outcome.message,
            )
            raise ApiCallError(outcome)

        logger.warning(
            "api_error_demoted",
            event_kind=outcome.event_kind,
            error=outcome.message,
        )
        self.commands.warning(f"⚠️ {outcome.message}")
        self.commands.info("Continuing workflow (fail_on_api_error is false)")
        return outcome


def _response_body(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text or None


def transport_error_for(exc: requests.RequestException) -> TransportError:
    """
    Map a requests exception to the transport failure it represents.

    Only a refused TCP connection counts as `connection_refused`; TLS and
    name resolution failures are also ConnectionErrors but map to `network`.
    ConnectTimeout is both a Timeout and a ConnectionError; timeout wins.
    """
    if isinstance(exc, requests.Timeout):
        return "timeout"
    if isinstance(exc, requests.exceptions.SSLError):
        return "network"
    if isinstance(exc, requests.ConnectionError) and _is_connection_refused(exc):
        return "connection_refused"
    return "network"


def _is_connection_refused(exc: BaseException) -> bool:
    # requests wraps urllib3's MaxRetryError -> NewConnectionError -> OSError.
    pending: List[BaseException] = [exc]
    seen: Set[int] = set()
    while pending:
        current = pending.pop()
        if id(current) in seen:
            continue
        seen.add(id(current))

        if isinstance(current, ConnectionRefusedError):
            return True
        if getattr(current, "errno", None) == errno.ECONNREFUSED:
            return True

        linked = [current.__cause__, current.__context__, getattr(current, "reason", None), *current.args]
        pending.extend(item for item in linked if isinstance(item, BaseException))
    return False
