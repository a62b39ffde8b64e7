# -------------------------------------------------------------------
# event_schemas/outcome_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# Value types flowing through the outcome classifier:
#
#   RawCallResult  --classify_outcome()-->  ClassifiedOutcome
#
# ClassifiedOutcome is a tagged union on `kind`:
#
#   recorded      event accepted; carries the server identifiers
#   not_recorded  API/transport error demoted to a warning
#                 (only when fail_on_api_error is false)
#   rejected      server-side policy refused the event (409/423/428);
#                 ALWAYS a failure, whatever the local flags say
#   fatal         any other failure with fail_on_api_error true
#
# All models are frozen: classifying the same input twice yields equal
# values.
# -------------------------------------------------------------------

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from event_schemas.input_schema import EventKind
from event_schemas.output_schema import BuildEventResponse, DeploymentEventResponse

TransportError = Literal["connection_refused", "timeout", "network"]

EventResponse = Union[BuildEventResponse, DeploymentEventResponse]


class RejectionCategory(str, Enum):
    CONFLICT = "conflict"
    LOCKED = "locked"
    PRECONDITION_FAILED = "precondition_failed"


REJECTION_STATUS_CODES: Dict[int, RejectionCategory] = {
    409: RejectionCategory.CONFLICT,
    423: RejectionCategory.LOCKED,
    428: RejectionCategory.PRECONDITION_FAILED,
}


class RawCallResult(BaseModel):
    """
    What came back from the single POST.

    - status_code is None when the request never reached the server
      (transport_error is then set)
    - body is the parsed JSON when possible, else the raw text, else None
    """

    model_config = ConfigDict(frozen=True)

    status_code: Optional[int] = None
    body: Any = None
    transport_error: Optional[TransportError] = None
    error_message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return (
            self.transport_error is None
            and self.status_code is not None
            and 200 <= self.status_code < 300
        )


class ClassificationPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    fail_on_api_error: bool = True


class CallContext(BaseModel):
    """Request facts the classifier needs to word its messages."""

    model_config = ConfigDict(frozen=True)

    event_kind: EventKind
    api_url: str
    version: str
    timeout_seconds: float = 30.0

    @property
    def label(self) -> str:
        """Capitalized kind, e.g. "Deployment"."""
        return self.event_kind.capitalize()


class _OutcomeBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_kind: EventKind


class Recorded(_OutcomeBase):
    kind: Literal["recorded"] = "recorded"
    response: EventResponse
    warnings: Tuple[str, ...] = ()


class NotRecorded(_OutcomeBase):
    kind: Literal["not_recorded"] = "not_recorded"
    message: str
    response: EventResponse


class Rejected(_OutcomeBase):
    kind: Literal["rejected"] = "rejected"
    status_code: int
    category: RejectionCategory
    error_code: str = "UNKNOWN"
    message: str
    rule_name: str = "Unknown Rule"
    retry_after: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    # Single-block failure reason for the step
    failure_message: str = ""
    # Markdown report for the step summary
    summary: str = ""


class Fatal(_OutcomeBase):
    kind: Literal["fatal"] = "fatal"
    status_code: Optional[int] = None
    message: str


ClassifiedOutcome = Annotated[
    Union[Recorded, NotRecorded, Rejected, Fatal],
    Field(discriminator="kind"),
]
