"""
event_tracker/events/summary_reporter.py

WHAT THIS FILE IS FOR
---------------------
This module renders the markdown shown in the pipeline's step summary
(GITHUB_STEP_SUMMARY) for a classified outcome.

REJECTION REPORT FORMAT
-----------------------
    ## ❌ Deployment Rejected

    ### 🔒 Deployment Blocked by Schedule

    - **Error Code:** `NO_DEPLOY_WINDOW`
    - **Rule:** Friday freeze
    - **Message:** No-deploy window active
    - **Retry After:** `2025-01-06T08:00:00Z`

    **Action Required:**
    - Wait until `2025-01-06T08:00:00Z`
    - ...

    **Details:**
    ```json
    { ... }
    ```

Guidance is chosen by rejection category and, for precondition
failures, by error code. Unknown error codes get the generic
"resolve and retry" steps: the service adds new codes over time and a
report must never lose its guidance section.

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT:
- Write files or print (the caller owns the sink)
- Decide outcomes (outcome_classifier.py)

It is a pure transformation utility.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from event_schemas.outcome_schema import (
    Fatal,
    NotRecorded,
    Recorded,
    Rejected,
    RejectionCategory,
)
from event_schemas.output_schema import DeploymentEventResponse

SKIP_PREFLIGHT_HINT = "Or use `skip_preflight_checks: true` for emergencies"

FLOW_VIOLATION = "FLOW_VIOLATION"
INSUFFICIENT_SOAK_TIME = "INSUFFICIENT_SOAK_TIME"
APPROVAL_CODES = frozenset({"QUALITY_APPROVAL_REQUIRED", "APPROVAL_REQUIRED"})

_KNOWN_UI_HOSTS = {
    "api.versioner.io": "https://app.versioner.io",
    "development-api.versioner.io": "https://dev.versioner.io",
}

_STATUS_EMOJI = {
    "success": "✅",
    "failure": "❌",
    "in_progress": "🔄",
}


def rejection_heading(category: RejectionCategory, label: str) -> str:
    if category is RejectionCategory.CONFLICT:
        return f"⚠️ {label} Conflict"
    if category is RejectionCategory.LOCKED:
        return f"🔒 {label} Blocked by Schedule"
    return f"❌ {label} Precondition Failed"


def ui_base_url(api_url: str) -> str:
    """
    Map the API host to the web UI host.

    https://api.versioner.io -> https://app.versioner.io
    custom hosts: first "api" in the URL becomes "app"
    """
    host = urlparse(api_url).hostname or ""
    if host in _KNOWN_UI_HOSTS:
        return _KNOWN_UI_HOSTS[host]
    return api_url.rstrip("/").replace("api", "app", 1)


def status_emoji(status: str) -> str:
    return _STATUS_EMOJI.get(status, "⚠️")


class SummaryReporter:
    """
    Render step-summary markdown for classified outcomes.

    - render(): rejected / not recorded / fatal outcomes
    - render_recorded(): the success summary, which needs run facts the
      outcome itself does not carry
    """

    @staticmethod
    def render(outcome: NotRecorded | Rejected | Fatal) -> str:
        label = outcome.event_kind.capitalize()

        if isinstance(outcome, Rejected):
            return SummaryReporter._render_rejected(outcome, label)

        if isinstance(outcome, NotRecorded):
            return (
                f"## ⚠️ {label} Not Recorded\n\n"
                f"{outcome.message}\n\n"
                "The workflow continued because `fail_on_api_error` is false.\n"
            )

        return f"## ❌ {label} Event Failed\n\n{outcome.message}\n"

    @staticmethod
    def guidance_steps(
        category: RejectionCategory,
        error_code: str,
        retry_after: Optional[str] = None,
        event_kind: str = "deployment",
    ) -> List[str]:
        if category is RejectionCategory.CONFLICT:
            return [
                f"Wait for the current {event_kind} to complete",
                f"Retry this {event_kind}",
            ]

        if category is RejectionCategory.LOCKED:
            steps: List[str] = []
            if retry_after:
                steps.append(f"Wait until `{retry_after}`")
                steps.append("Retry automatically after the no-deploy window")
            steps.append(SKIP_PREFLIGHT_HINT)
            return steps

        if error_code == FLOW_VIOLATION:
            return [
                "Deploy to required environments first",
                f"Then retry this {event_kind}",
            ]

        if error_code == INSUFFICIENT_SOAK_TIME:
            steps = ["Wait for the soak time requirement to be met"]
            if retry_after:
                steps.append(f"Can deploy at: `{retry_after}`")
            steps.append(SKIP_PREFLIGHT_HINT)
            return steps

        if error_code in APPROVAL_CODES:
            return [
                "Obtain required approval via Versioner UI",
                f"Then retry this {event_kind}",
            ]

        return [
            "Resolve the issue described above",
            f"Then retry this {event_kind}",
            SKIP_PREFLIGHT_HINT,
        ]

    @staticmethod
    def render_recorded(
        outcome: Recorded,
        *,
        version: str,
        status: str,
        scm_sha: str,
        api_url: str,
        environment: Optional[str] = None,
    ) -> str:
        hostname = ui_base_url(api_url)
        response = outcome.response

        lines = ["## 🚀 Event Tracker Summary", ""]
        if isinstance(response, DeploymentEventResponse):
            view_url = f"{hostname}/deployments/{response.deployment_id or ''}"
            lines += ["**Action:** Deployment", "", f"**Environment:** {environment}", ""]
        else:
            view_url = f"{hostname}/manage/versions?view={response.version_id or ''}"
            lines += ["**Action:** Build", ""]

        lines += [
            f"**Status:** {status_emoji(status)} {status}",
            "",
            f"**Version:** `{version}`",
            "",
            f"**Git SHA:** `{scm_sha}`",
            "",
            f"[View in Versioner →]({view_url})",
        ]
        return "\n".join(lines) + "\n"

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _render_rejected(outcome: Rejected, label: str) -> str:
        lines: List[str] = [
            f"## ❌ {label} Rejected",
            "",
            f"### {rejection_heading(outcome.category, label)}",
            "",
            f"- **Error Code:** `{outcome.error_code}`",
            f"- **Rule:** {outcome.rule_name}",
            f"- **Message:** {outcome.message}",
        ]
        if outcome.retry_after:
            lines.append(f"- **Retry After:** `{outcome.retry_after}`")

        lines += ["", "**Action Required:**"]
        steps = SummaryReporter.guidance_steps(
            outcome.category,
            outcome.error_code,
            outcome.retry_after,
            event_kind=outcome.event_kind,
        )
        lines.extend(f"- {step}" for step in steps)

        if outcome.details:
            lines += ["", "**Details:**", "```json", _pretty(outcome.details), "```"]

        return "\n".join(lines) + "\n"


def _pretty(details: Dict[str, Any]) -> str:
    return json.dumps(details, indent=2, ensure_ascii=False, default=str)
