# tests/test_event_client.py
from __future__ import annotations

import errno
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest
import requests

from event_schemas.event_schema import BuildEventPayload, DeploymentEventPayload
from event_schemas.outcome_schema import NotRecorded, Recorded
from event_tracker.events.errors import ApiCallError, EventRejectedError
from event_tracker.events.event_client import EventClient, transport_error_for

API_URL = "https://api.versioner.io"


@dataclass
class _FakeSettings:
    request_timeout_seconds: float = 30.0
    write_step_summary: bool = True


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, reason: str = "", text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.reason = reason
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class _FakeHttp:
    """Records calls; returns a canned response or raises a canned exception."""

    def __init__(self, response: Optional[_FakeResponse] = None, exc: Optional[Exception] = None):
        self.response = response
        self.exc = exc
        self.calls: List[Dict[str, Any]] = []

    def post_json(self, url: str, json_body: Dict[str, Any], headers=None, timeout_seconds=None):
        self.calls.append({"url": url, "json": json_body, "headers": headers or {}})
        if self.exc is not None:
            raise self.exc
        return self.response


@dataclass
class _RecordingCommands:
    infos: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    summaries: List[str] = field(default_factory=list)

    def info(self, message: str) -> None:
        self.infos.append(message)

    def warning(self, message: str) -> None:
        self.warnings.append(message)

    def error(self, message: str) -> None:
        self.errors.append(message)

    def append_summary(self, markdown: str) -> bool:
        self.summaries.append(markdown)
        return True


DEPLOY_PAYLOAD = DeploymentEventPayload(
    product_name="test-product",
    version="1.0.0",
    environment_name="production",
    status="success",
)
BUILD_PAYLOAD = BuildEventPayload(product_name="test-product", version="1.0.0", status="success")


def _client(http: _FakeHttp, commands: _RecordingCommands, settings: Optional[_FakeSettings] = None) -> EventClient:
    return EventClient(
        settings or _FakeSettings(),  # type: ignore[arg-type]
        api_url=API_URL + "/",
        api_key="test-key",
        http=http,  # type: ignore[arg-type]
        commands=commands,  # type: ignore[arg-type]
    )


def test_posts_to_deployment_endpoint_with_bearer_auth() -> None:
    http = _FakeHttp(_FakeResponse(201, {"id": "evt-1", "deployment_id": "dep-1", "product_id": "p-1"}))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_event(DEPLOY_PAYLOAD)

    assert isinstance(outcome, Recorded)
    assert outcome.response.deployment_id == "dep-1"

    call = http.calls[0]
    assert call["url"] == "https://api.versioner.io/deployment-events/"
    assert call["headers"]["Authorization"] == "Bearer test-key"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["json"] == {
        "product_name": "test-product",
        "version": "1.0.0",
        "status": "success",
        "environment_name": "production",
    }
    assert commands.warnings == []


def test_posts_to_build_endpoint() -> None:
    http = _FakeHttp(_FakeResponse(201, {"id": "b-1", "version_id": "v-1", "product_id": "p-1"}))
    outcome = _client(http, _RecordingCommands()).send_build_event(BUILD_PAYLOAD)

    assert isinstance(outcome, Recorded)
    assert http.calls[0]["url"] == "https://api.versioner.io/build-events/"


def test_missing_identifier_on_success_is_a_warning_not_a_failure() -> None:
    http = _FakeHttp(_FakeResponse(200, {"deployment_id": "dep-1", "product_id": "p-1"}))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD)

    assert isinstance(outcome, Recorded)
    assert any("missing id field" in w for w in commands.warnings)


def test_non_json_success_body_is_a_warning() -> None:
    http = _FakeHttp(_FakeResponse(200, None, text="<html>ok</html>"))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_build_event(BUILD_PAYLOAD)

    assert isinstance(outcome, Recorded)
    assert any("not a JSON object" in w for w in commands.warnings)


def test_401_raises_when_fail_on_api_error_true() -> None:
    http = _FakeHttp(_FakeResponse(401, {}, reason="Unauthorized"))

    with pytest.raises(ApiCallError, match="Authentication failed"):
        _client(http, _RecordingCommands()).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=True)


def test_401_demoted_when_fail_on_api_error_false() -> None:
    http = _FakeHttp(_FakeResponse(401, {}, reason="Unauthorized"))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=False)

    assert isinstance(outcome, NotRecorded)
    assert outcome.response.status == "not_recorded"
    assert outcome.response.id == ""
    assert outcome.response.deployment_id == ""
    assert any("Authentication failed" in w for w in commands.warnings)
    assert "Continuing workflow (fail_on_api_error is false)" in commands.infos


def test_403_build_raises_authorization_failed() -> None:
    http = _FakeHttp(_FakeResponse(403, {}, reason="Forbidden"))

    with pytest.raises(ApiCallError, match="Authorization failed"):
        _client(http, _RecordingCommands()).send_build_event(BUILD_PAYLOAD, fail_on_api_error=True)


def test_404_build_demoted_echoes_version() -> None:
    http = _FakeHttp(_FakeResponse(404, {}, reason="Not Found"))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_build_event(BUILD_PAYLOAD, fail_on_api_error=False)

    assert isinstance(outcome, NotRecorded)
    assert outcome.response.version == "1.0.0"
    assert any("endpoint not found" in w for w in commands.warnings)


def _refused_error() -> requests.ConnectionError:
    try:
        try:
            raise ConnectionRefusedError(errno.ECONNREFUSED, "Connection refused")
        except ConnectionRefusedError as cause:
            raise requests.ConnectionError("Max retries exceeded with url: /deployment-events/") from cause
    except requests.ConnectionError as exc:
        return exc


def test_connection_refused_demoted() -> None:
    http = _FakeHttp(exc=_refused_error())
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=False)

    assert isinstance(outcome, NotRecorded)
    assert any("Connection refused: Unable to connect to https://api.versioner.io" in w for w in commands.warnings)


def test_refused_errno_on_wrapped_reason_is_connection_refused() -> None:
    reason = OSError(errno.ECONNREFUSED, "Connection refused")
    wrapped = requests.ConnectionError(reason)

    assert transport_error_for(wrapped) == "connection_refused"


def test_ssl_error_is_not_reported_as_connection_refused() -> None:
    http = _FakeHttp(exc=requests.exceptions.SSLError("certificate verify failed"))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=False)

    assert isinstance(outcome, NotRecorded)
    assert "Connection refused" not in outcome.message
    assert outcome.message.startswith("Failed to send deployment event (HTTP unknown)")
    assert "certificate verify failed" in outcome.message


def test_dns_failure_is_not_reported_as_connection_refused() -> None:
    dns_error = requests.ConnectionError(
        "Failed to resolve 'api.versionr.io' ([Errno -2] Name or service not known)"
    )

    with pytest.raises(ApiCallError) as excinfo:
        _client(_FakeHttp(exc=dns_error), _RecordingCommands()).send_build_event(BUILD_PAYLOAD)

    assert "Connection refused" not in str(excinfo.value)
    assert "Failed to resolve" in str(excinfo.value)
    assert transport_error_for(dns_error) == "network"


def test_timeout_demoted() -> None:
    http = _FakeHttp(exc=requests.Timeout("read timed out"))
    commands = _RecordingCommands()

    outcome = _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=False)

    assert isinstance(outcome, NotRecorded)
    assert any("timeout" in w for w in commands.warnings)


def test_connect_timeout_counts_as_timeout() -> None:
    http = _FakeHttp(exc=requests.ConnectTimeout("connect timed out"))

    with pytest.raises(ApiCallError, match="Request timeout"):
        _client(http, _RecordingCommands()).send_deployment_event(DEPLOY_PAYLOAD)


@pytest.mark.parametrize("fail_on_api_error", [True, False])
@pytest.mark.parametrize("status_code", [409, 423, 428])
def test_rejections_always_raise(status_code: int, fail_on_api_error: bool) -> None:
    http = _FakeHttp(_FakeResponse(status_code, {"detail": {"message": "No", "code": "X"}}))
    commands = _RecordingCommands()

    with pytest.raises(EventRejectedError):
        _client(http, commands).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=fail_on_api_error)

    assert len(commands.summaries) == 1
    assert commands.summaries[0].startswith("## ❌ Deployment Rejected")


def test_deployment_conflict_scenario_message() -> None:
    http = _FakeHttp(
        _FakeResponse(409, {"detail": {"message": "Deployment in progress", "code": "DEPLOYMENT_IN_PROGRESS"}})
    )

    with pytest.raises(EventRejectedError) as excinfo:
        _client(http, _RecordingCommands()).send_deployment_event(DEPLOY_PAYLOAD, fail_on_api_error=False)

    assert "Deployment Conflict" in str(excinfo.value)
    assert "Deployment in progress" in str(excinfo.value)
    assert excinfo.value.outcome.error_code == "DEPLOYMENT_IN_PROGRESS"


def test_build_rejection_always_raises() -> None:
    http = _FakeHttp(_FakeResponse(409, {"message": "Build rejected"}))

    with pytest.raises(EventRejectedError, match="Build rejected"):
        _client(http, _RecordingCommands()).send_build_event(BUILD_PAYLOAD, fail_on_api_error=False)


def test_rejection_summary_skipped_when_disabled() -> None:
    http = _FakeHttp(_FakeResponse(423, {}))
    commands = _RecordingCommands()

    with pytest.raises(EventRejectedError):
        _client(http, commands, _FakeSettings(write_step_summary=False)).send_deployment_event(DEPLOY_PAYLOAD)

    assert commands.summaries == []


def test_unexpected_status_includes_reason_and_body() -> None:
    http = _FakeHttp(_FakeResponse(502, {"error": "upstream"}, reason="Bad Gateway"))

    with pytest.raises(ApiCallError) as excinfo:
        _client(http, _RecordingCommands()).send_deployment_event(DEPLOY_PAYLOAD)

    message = str(excinfo.value)
    assert "HTTP 502" in message
    assert "Bad Gateway" in message
    assert "upstream" in message


def test_requires_api_key() -> None:
    with pytest.raises(ValueError):
        EventClient(_FakeSettings(), api_url=API_URL, api_key="")  # type: ignore[arg-type]
