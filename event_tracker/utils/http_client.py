"""
event_tracker/utils/http_client.py

WHAT THIS FILE IS FOR
---------------------
This module provides the synchronous transport that delivers exactly one
build/deployment event per run.

It exists to:
- Centralize the outbound POST + JSON call
- Always send the JSON content headers and the tracker's User-Agent
- Apply the hard request timeout (30 seconds by default)

WHAT THIS FILE IS NOT FOR
-------------------------
This module is NOT responsible for:
- Retry logic (one request per invocation, never retried)
- Interpreting status codes or error bodies
- Translating network errors into outcomes

Those responsibilities belong to EventClient and the outcome classifier.
"""

from __future__ import annotations

import requests
from typing import Any, Dict, Optional

USER_AGENT = "versioner-event-tracker/1.0.0"

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": USER_AGENT,
}


class HttpClient:
    """
    Single-request JSON client for the tracking API.

    Caller headers (e.g. Authorization) are layered over DEFAULT_HEADERS.
    4xx/5xx responses are returned, not raised; network errors propagate
    as `requests.RequestException`.
    """

    def __init__(self, timeout_seconds: float = 30.0):
        self.timeout_seconds = timeout_seconds

    def post_json(
        self,
        url: str,
        json_body: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        timeout_seconds: Optional[float] = None,
    ) -> requests.Response:
        return requests.post(
            url,
            json=json_body,
            headers={**DEFAULT_HEADERS, **(headers or {})},
            timeout=timeout_seconds or self.timeout_seconds,
        )
