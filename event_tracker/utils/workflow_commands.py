"""
event_tracker/utils/workflow_commands.py

WHAT THIS FILE IS FOR
---------------------
Thin sinks for the GitHub Actions runner:

- annotations (`::warning::`, `::error::`, `::notice::`) written to stdout
- step outputs appended to the file named by GITHUB_OUTPUT
- markdown appended to the file named by GITHUB_STEP_SUMMARY

Annotations are how demoted API failures stay visibly distinct from
ordinary log lines in the run UI.

WHAT THIS FILE IS NOT FOR
-------------------------
- Deciding what to report (EventClient / action.py)
- Rendering markdown (SummaryReporter)
"""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path
from typing import Mapping, Optional, TextIO

import structlog

logger = structlog.get_logger(__name__)


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class WorkflowCommands:
    """
    Writes workflow commands and file-based outputs for one step.

    `environ` and `stream` are injectable so tests never touch the real
    process environment or stdout.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        stream: Optional[TextIO] = None,
    ) -> None:
        self._environ = environ if environ is not None else os.environ
        self._stream = stream

    # ------------------------------------------------------------------ #
    # Annotations
    # ------------------------------------------------------------------ #
    def warning(self, message: str) -> None:
        self._issue("warning", message)

    def error(self, message: str) -> None:
        self._issue("error", message)

    def notice(self, message: str) -> None:
        self._issue("notice", message)

    def info(self, message: str) -> None:
        self._write(message)

    # ------------------------------------------------------------------ #
    # File-based commands
    # ------------------------------------------------------------------ #
    def set_output(self, name: str, value: str) -> None:
        """
        Append `name=value` to GITHUB_OUTPUT.

        Multi-line values use the heredoc delimiter form.
        """
        if "\n" in value or "\r" in value:
            delimiter = f"ghadelimiter_{uuid.uuid4()}"
            entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
        else:
            entry = f"{name}={value}\n"

        if not self._append("GITHUB_OUTPUT", entry):
            # Legacy runners without the output file.
            self._write(f"::set-output name={name}::{_escape_data(value)}")

    def append_summary(self, markdown: str) -> bool:
        """Append markdown to GITHUB_STEP_SUMMARY. Returns False when unavailable."""
        written = self._append("GITHUB_STEP_SUMMARY", markdown)
        if written:
            logger.debug("step_summary_written", length=len(markdown))
        return written

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _issue(self, command: str, message: str) -> None:
        self._write(f"::{command}::{_escape_data(message)}")

    def _write(self, line: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(line + "\n")
        stream.flush()

    def _append(self, env_name: str, text: str) -> bool:
        target = self._environ.get(env_name)
        if not target:
            logger.debug("workflow_file_unavailable", env_name=env_name)
            return False

        try:
            with Path(target).open("a", encoding="utf-8") as f:
                f.write(text)
        except OSError as exc:
            self.warning(f"Failed to write {env_name}: {exc}")
            return False
        return True
