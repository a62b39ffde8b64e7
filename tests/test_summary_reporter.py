# tests/test_summary_reporter.py
from __future__ import annotations

from typing import Any, Dict, Optional

from event_schemas.outcome_schema import Fatal, NotRecorded, Recorded, Rejected, RejectionCategory
from event_schemas.output_schema import BuildEventResponse, DeploymentEventResponse
from event_tracker.events.summary_reporter import (
    SKIP_PREFLIGHT_HINT,
    SummaryReporter,
    status_emoji,
    ui_base_url,
)


def _rejected(
    category: RejectionCategory,
    error_code: str = "UNKNOWN",
    retry_after: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    event_kind: str = "deployment",
) -> Rejected:
    status = {RejectionCategory.CONFLICT: 409, RejectionCategory.LOCKED: 423}.get(category, 428)
    return Rejected(
        event_kind=event_kind,
        status_code=status,
        category=category,
        error_code=error_code,
        message="Rejected by policy",
        rule_name="Prod gate",
        retry_after=retry_after,
        details=details,
    )


def test_render_flow_violation_guidance() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.PRECONDITION_FAILED, "FLOW_VIOLATION"))

    assert "### ❌ Deployment Precondition Failed" in report
    assert "- **Error Code:** `FLOW_VIOLATION`" in report
    assert "- **Rule:** Prod gate" in report
    assert "- Deploy to required environments first" in report
    assert "- Then retry this deployment" in report


def test_render_soak_time_guidance_mentions_waiting() -> None:
    report = SummaryReporter.render(
        _rejected(
            RejectionCategory.PRECONDITION_FAILED,
            "INSUFFICIENT_SOAK_TIME",
            retry_after="2025-01-01T12:00:00Z",
        )
    )

    assert "- Wait for the soak time requirement to be met" in report
    assert "- Can deploy at: `2025-01-01T12:00:00Z`" in report
    assert "- **Retry After:** `2025-01-01T12:00:00Z`" in report


def test_render_unknown_code_falls_back_to_generic_guidance() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.PRECONDITION_FAILED, "SOME_NEW_CODE"))

    assert "**Action Required:**" in report
    assert "- Resolve the issue described above" in report
    assert "- Then retry this deployment" in report
    assert f"- {SKIP_PREFLIGHT_HINT}" in report


def test_render_approval_guidance() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.PRECONDITION_FAILED, "QUALITY_APPROVAL_REQUIRED"))
    assert "- Obtain required approval via Versioner UI" in report


def test_render_conflict_heading_and_guidance() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.CONFLICT, "DEPLOYMENT_IN_PROGRESS"))

    assert report.startswith("## ❌ Deployment Rejected\n")
    assert "### ⚠️ Deployment Conflict" in report
    assert "- Wait for the current deployment to complete" in report


def test_render_locked_without_retry_after_only_offers_skip() -> None:
    steps = SummaryReporter.guidance_steps(RejectionCategory.LOCKED, "NO_DEPLOY_WINDOW")
    assert steps == [SKIP_PREFLIGHT_HINT]

    report = SummaryReporter.render(_rejected(RejectionCategory.LOCKED, "NO_DEPLOY_WINDOW"))
    assert "### 🔒 Deployment Blocked by Schedule" in report
    assert "Retry After" not in report


def test_render_locked_with_retry_after() -> None:
    steps = SummaryReporter.guidance_steps(
        RejectionCategory.LOCKED, "NO_DEPLOY_WINDOW", retry_after="2025-01-06T08:00:00Z"
    )
    assert steps[0] == "Wait until `2025-01-06T08:00:00Z`"
    assert steps[-1] == SKIP_PREFLIGHT_HINT


def test_render_details_block_is_pretty_printed_json() -> None:
    report = SummaryReporter.render(
        _rejected(RejectionCategory.PRECONDITION_FAILED, "FLOW_VIOLATION", details={"required": ["staging"]})
    )

    assert "**Details:**\n```json\n{\n  \"required\": [\n    \"staging\"\n  ]\n}\n```" in report


def test_render_omits_details_block_when_empty() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.CONFLICT, details={}))
    assert "**Details:**" not in report


def test_render_uses_build_label_for_build_rejections() -> None:
    report = SummaryReporter.render(_rejected(RejectionCategory.CONFLICT, event_kind="build"))

    assert "## ❌ Build Rejected" in report
    assert "- Retry this build" in report


def test_render_not_recorded_and_fatal() -> None:
    not_recorded = NotRecorded(
        event_kind="build",
        message="Connection refused: Unable to connect",
        response=BuildEventResponse.not_recorded(version="1.0.0"),
    )
    fatal = Fatal(event_kind="deployment", status_code=401, message="Authentication failed")

    assert "## ⚠️ Build Not Recorded" in SummaryReporter.render(not_recorded)
    assert "Connection refused" in SummaryReporter.render(not_recorded)
    assert SummaryReporter.render(fatal) == "## ❌ Deployment Event Failed\n\nAuthentication failed\n"


def test_render_recorded_deployment_links_to_deployment() -> None:
    outcome = Recorded(
        event_kind="deployment",
        response=DeploymentEventResponse(id="evt-1", deployment_id="dep-9", product_id="p"),
    )

    report = SummaryReporter.render_recorded(
        outcome,
        version="1.2.3",
        status="success",
        scm_sha="abc123",
        api_url="https://api.versioner.io",
        environment="production",
    )

    assert report.startswith("## 🚀 Event Tracker Summary\n")
    assert "**Environment:** production" in report
    assert "**Status:** ✅ success" in report
    assert "[View in Versioner →](https://app.versioner.io/deployments/dep-9)" in report


def test_render_recorded_build_links_to_version() -> None:
    outcome = Recorded(
        event_kind="build",
        response=BuildEventResponse(id="b-1", version_id="ver-7", product_id="p"),
    )

    report = SummaryReporter.render_recorded(
        outcome,
        version="1.2.3",
        status="in_progress",
        scm_sha="abc123",
        api_url="https://development-api.versioner.io",
    )

    assert "**Action:** Build" in report
    assert "**Status:** 🔄 in_progress" in report
    assert "(https://dev.versioner.io/manage/versions?view=ver-7)" in report


def test_ui_base_url_for_custom_host() -> None:
    assert ui_base_url("https://api.example.com/") == "https://app.example.com"


def test_status_emoji_defaults_to_warning() -> None:
    assert status_emoji("success") == "✅"
    assert status_emoji("failure") == "❌"
    assert status_emoji("queued") == "⚠️"
