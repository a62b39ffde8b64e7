"""
event_tracker/events/ci_context.py

WHAT THIS FILE IS FOR
---------------------
Reads ambient GitHub Actions metadata for the current run into a
CIContext:

    GITHUB_REPOSITORY   -> scm_repository ("owner/repo")
    GITHUB_SHA          -> scm_sha
    GITHUB_REF_NAME     -> scm_branch (fallback: GITHUB_REF minus refs/heads/)
    GITHUB_RUN_NUMBER   -> build_number
    GITHUB_RUN_ID       -> invoke_id
    GITHUB_SERVER_URL   -> build_url prefix (default https://github.com)
    GITHUB_ACTOR        -> actor
    GITHUB_EVENT_PATH   -> commit author name/email (head_commit.author,
                           falling back to pusher)

It also collects a few auto-detected metadata keys (workflow, job, event
name, ref, run attempt) which user-provided metadata overrides.

Missing variables yield empty strings, never errors: the step must still
report when run outside a full GitHub context.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import structlog

from event_schemas.input_schema import CIContext

logger = structlog.get_logger(__name__)

DEFAULT_SERVER_URL = "https://github.com"

# env var -> metadata key
_DETECTED_METADATA_KEYS: Tuple[Tuple[str, str], ...] = (
    ("GITHUB_WORKFLOW", "github_workflow"),
    ("GITHUB_JOB", "github_job"),
    ("GITHUB_EVENT_NAME", "github_event_name"),
    ("GITHUB_REF", "github_ref"),
    ("GITHUB_RUN_ATTEMPT", "github_run_attempt"),
)


def read_ci_context(
    environ: Optional[Mapping[str, str]] = None,
    source_system: str = "github",
) -> CIContext:
    env = environ if environ is not None else os.environ

    repository = env.get("GITHUB_REPOSITORY", "")
    run_id = env.get("GITHUB_RUN_ID", "")
    server_url = (env.get("GITHUB_SERVER_URL") or DEFAULT_SERVER_URL).rstrip("/")

    build_url = f"{server_url}/{repository}/actions/runs/{run_id}" if repository and run_id else ""

    author_name, author_email = _commit_author(env.get("GITHUB_EVENT_PATH"))

    detected: Dict[str, Any] = {}
    for env_name, key in _DETECTED_METADATA_KEYS:
        value = env.get(env_name)
        if value:
            detected[key] = value

    return CIContext(
        scm_repository=repository,
        scm_sha=env.get("GITHUB_SHA", ""),
        scm_branch=_branch(env),
        source_system=source_system,
        build_number=env.get("GITHUB_RUN_NUMBER", ""),
        invoke_id=run_id,
        build_url=build_url,
        actor=env.get("GITHUB_ACTOR", ""),
        actor_name=author_name,
        actor_email=author_email,
        detected_metadata=detected,
    )


def _branch(env: Mapping[str, str]) -> str:
    ref_name = env.get("GITHUB_REF_NAME")
    if ref_name:
        return ref_name
    ref = env.get("GITHUB_REF", "")
    prefix = "refs/heads/"
    return ref[len(prefix):] if ref.startswith(prefix) else ""


def _commit_author(event_path: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Best-effort (name, email) from the webhook event JSON."""
    if not event_path:
        return None, None

    try:
        with Path(event_path).open("r", encoding="utf-8") as f:
            event = json.load(f)
    except (OSError, ValueError) as exc:
        logger.debug("github_event_unreadable", path=event_path, error=str(exc))
        return None, None

    if not isinstance(event, dict):
        return None, None

    head_commit = event.get("head_commit")
    author = head_commit.get("author") if isinstance(head_commit, dict) else None
    if not isinstance(author, dict):
        author = event.get("pusher") if isinstance(event.get("pusher"), dict) else {}

    name = author.get("name") or None
    email = author.get("email") or None
    return name, email
