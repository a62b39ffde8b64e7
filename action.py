"""
action.py

WHAT THIS FILE IS FOR
---------------------
Entry point of the event tracker step. It sequences:

0) logging to stderr (before anything else can log)
1) settings (parameters/parameters.yaml + VERSIONER_* env)
2) action inputs (INPUT_* env)
3) CI context (GITHUB_* env)
4) payload construction
5) one POST to the tracking API + outcome classification (EventClient)
6) step outputs, notice annotation and step summary

FAILURE CONTRACT
----------------
Any EventTrackerError (invalid inputs, policy rejection, API failure with
fail_on_api_error=true) ends the step with ONE clear `::error::` line and
exit status 1; no stack trace is shown to the user.

A demoted API failure (fail_on_api_error=false) exits 0 with a warning
and empty identifier outputs.

It must NOT contain classification or rendering logic; those live in
event_tracker/events/*.
"""

from __future__ import annotations

import os
import sys
from typing import Mapping, Optional, Union

import structlog

from event_schemas.input_schema import ActionInputs, CIContext
from event_schemas.outcome_schema import NotRecorded, Recorded
from event_schemas.output_schema import DeploymentEventResponse
from event_tracker.events.ci_context import read_ci_context
from event_tracker.events.errors import ApiCallError, EventTrackerError
from event_tracker.events.event_client import EventClient
from event_tracker.events.inputs import read_action_inputs
from event_tracker.events.payload_builder import EventPayload, build_payload
from event_tracker.events.summary_reporter import SummaryReporter
from event_tracker.utils.http_client import HttpClient
from event_tracker.utils.logging_config import configure_logging
from event_tracker.utils.settings import Settings, get_settings
from event_tracker.utils.workflow_commands import WorkflowCommands

logger = structlog.get_logger(__name__)


def run(
    environ: Optional[Mapping[str, str]] = None,
    *,
    settings: Optional[Settings] = None,
    commands: Optional[WorkflowCommands] = None,
    http: Optional[HttpClient] = None,
) -> int:
    """Run the step once. Returns the process exit status."""
    env = environ if environ is not None else os.environ
    commands = commands or WorkflowCommands(environ=env)
    event_kind = (env.get("INPUT_EVENT_TYPE") or "deployment").strip() or "deployment"

    configure_logging(_log_level(env, env.get("VERSIONER_LOG_LEVEL") or "INFO"))

    try:
        settings = settings or get_settings()
        configure_logging(_log_level(env, settings.log_level))

        commands.info("📦 Versioner Event Tracker")
        commands.info("================================")

        inputs = read_action_inputs(env, settings)
        event_kind = inputs.event_type
        context = read_ci_context(env, source_system=settings.source_system)
        payload = build_payload(inputs, context)

        _announce(commands, inputs, payload, context)

        client = EventClient(
            settings,
            api_url=inputs.api_url,
            api_key=inputs.api_key.get_secret_value(),
            http=http,
            commands=commands,
        )
        outcome = client.send_event(payload, fail_on_api_error=inputs.fail_on_api_error)

        _publish(commands, settings, inputs, payload, context, outcome)
        return 0

    except ApiCallError as exc:
        if settings is not None and settings.write_step_summary:
            commands.append_summary(SummaryReporter.render(exc.outcome))
        commands.error(f"❌ Failed to track {event_kind}: {exc}")
        return 1
    except EventTrackerError as exc:
        commands.error(f"❌ Failed to track {event_kind}: {exc}")
        return 1
    except Exception as exc:  # noqa: BLE001
        logger.exception("event_tracker_unexpected_error", event_kind=event_kind)
        commands.error(f"❌ Failed to track {event_kind}: Unexpected error: {exc}")
        return 1


def _log_level(env: Mapping[str, str], configured: str) -> str:
    return "DEBUG" if env.get("RUNNER_DEBUG") == "1" else configured


def _announce(
    commands: WorkflowCommands,
    inputs: ActionInputs,
    payload: EventPayload,
    context: CIContext,
) -> None:
    commands.info(f"Event Type: {inputs.event_type}")
    commands.info(f"Product: {payload.product_name}")
    commands.info(f"Version: {inputs.version}")
    if inputs.environment:
        commands.info(f"Environment: {inputs.environment}")
    commands.info(f"Status: {inputs.status}")
    commands.info(f"Repository: {context.scm_repository}")
    commands.info(f"SHA: {context.scm_sha}")
    commands.info(f"Triggered by: {context.actor}")
    commands.info("")


def _publish(
    commands: WorkflowCommands,
    settings: Settings,
    inputs: ActionInputs,
    payload: EventPayload,
    context: CIContext,
    outcome: Union[Recorded, NotRecorded],
) -> None:
    response = outcome.response
    label = inputs.event_type.capitalize()

    if isinstance(response, DeploymentEventResponse):
        outputs = {
            "deployment_id": response.deployment_id,
            "event_id": response.id,
            "product_id": response.product_id,
        }
    else:
        outputs = {
            "build_id": response.id,
            "version_id": response.version_id,
            "product_id": response.product_id,
        }
    outputs["status"] = response.status or inputs.status

    for name, value in outputs.items():
        commands.set_output(name, value or "")

    if isinstance(outcome, NotRecorded):
        if settings.write_step_summary:
            commands.append_summary(SummaryReporter.render(outcome))
        return

    commands.info("")
    commands.info(f"✅ {label} tracked successfully!")
    for name, value in outputs.items():
        if name != "status":
            commands.info(f"   {name}: {value or '-'}")

    target = f" → {inputs.environment}" if inputs.event_type == "deployment" else ""
    commands.notice(f"{label} tracked: {payload.product_name}@{inputs.version}{target} ({inputs.status})")

    if settings.write_step_summary:
        commands.append_summary(
            SummaryReporter.render_recorded(
                outcome,
                version=inputs.version,
                status=inputs.status,
                scm_sha=context.scm_sha,
                api_url=inputs.api_url,
                environment=inputs.environment or None,
            )
        )


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
