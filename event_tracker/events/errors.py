"""
event_tracker/events/errors.py

Exceptions that end a step as failed. Each carries a message that is
shown verbatim as the step's failure reason, so keep them human-readable.
"""

from __future__ import annotations

from event_schemas.outcome_schema import Fatal, Rejected


class EventTrackerError(RuntimeError):
    """Base class for failures surfaced to the pipeline."""


class InputValidationError(EventTrackerError):
    """Action inputs or configuration are invalid."""


class ApiCallError(EventTrackerError):
    """API/transport failure while fail_on_api_error is true."""

    def __init__(self, outcome: Fatal) -> None:
        super().__init__(outcome.message)
        self.outcome = outcome


class EventRejectedError(EventTrackerError):
    """The tracking service refused the event by policy (409/423/428)."""

    def __init__(self, outcome: Rejected) -> None:
        super().__init__(outcome.failure_message or outcome.message)
        self.outcome = outcome
