# -------------------------------------------------------------------
# event_schemas/output_schema.py
#
# WHAT THIS FILE IS FOR
# --------------------
# Response records returned by the tracking API on success, modelled as
# ONE stable, versionless schema per event kind.
#
# The remote contract is trusted optimistically:
# - every field is optional at the model level
# - unknown extra fields are kept (extra="allow")
# - numeric identifiers are coerced to strings
#
# Which identifiers are *expected* is declared per model
# (EXPECTED_IDENTIFIERS); a missing one is reported as a warning by the
# classifier, never as a failure.
#
# NOT RECORDED PLACEHOLDER
# ------------------------
# When an API error is demoted (fail_on_api_error=false) the step still
# returns a response-shaped record: identifiers are "", status is
# "not_recorded" and `version` echoes the input version. Build it with
# `<Model>.not_recorded(version=...)`.
# -------------------------------------------------------------------

from __future__ import annotations

from typing import ClassVar, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

NOT_RECORDED_STATUS = "not_recorded"


class _EventResponseBase(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        coerce_numbers_to_str=True,
        populate_by_name=True,
    )

    EXPECTED_IDENTIFIERS: ClassVar[Tuple[str, ...]] = ("id",)

    # Older deployment responses name the event identifier "event_id".
    id: Optional[str] = Field(default=None, validation_alias=AliasChoices("id", "event_id"))
    product_id: Optional[str] = None
    version_id: Optional[str] = None
    version: Optional[str] = None
    status: Optional[str] = None

    def missing_identifiers(self) -> Tuple[str, ...]:
        return tuple(name for name in self.EXPECTED_IDENTIFIERS if not getattr(self, name, None))

    @property
    def is_recorded(self) -> bool:
        return self.status != NOT_RECORDED_STATUS


class BuildEventResponse(_EventResponseBase):
    EXPECTED_IDENTIFIERS: ClassVar[Tuple[str, ...]] = ("id", "version_id", "product_id")

    started_at: Optional[str] = None

    @classmethod
    def not_recorded(cls, *, version: str) -> "BuildEventResponse":
        return cls(
            id="",
            version_id="",
            product_id="",
            version=version,
            status=NOT_RECORDED_STATUS,
        )


class DeploymentEventResponse(_EventResponseBase):
    EXPECTED_IDENTIFIERS: ClassVar[Tuple[str, ...]] = ("id", "deployment_id", "product_id")

    deployment_id: Optional[str] = None
    environment_id: Optional[str] = None
    environment_name: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def not_recorded(cls, *, version: str) -> "DeploymentEventResponse":
        return cls(
            id="",
            deployment_id="",
            product_id="",
            version_id="",
            environment_id="",
            version=version,
            status=NOT_RECORDED_STATUS,
        )
