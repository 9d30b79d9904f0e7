"""Input models for the gateway core.

Field names on ProfileUpdate follow the ROOK wire format
(`height_cm_int`, `sex_string`, ...) because the validated payload is
forwarded upstream as-is; `to_profile_fields` maps them onto columns.

Design principles:
- Validation happens before any network or store call
- NULL = "not supplied", never "clear the stored value"
- Unknown keys are rejected rather than silently forwarded
"""

import re
from datetime import date, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

USER_ID_PATTERN = r"^[a-zA-Z0-9-]{1,50}$"
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
SUBTYPE_PATTERN = r"^[a-z][a-z0-9_]{0,49}$"

_DATE_RE = re.compile(DATE_PATTERN)

# ROOK wire name -> user_profiles column
_PROFILE_WIRE_FIELDS = {
    "date_of_birth_string": "date_of_birth",
    "height_cm_int": "height_cm",
    "weight_kg_float": "weight_kg",
    "bmi_float": "bmi",
    "sex_string": "sex",
}


def is_calendar_date(v: str) -> bool:
    """Exactly YYYY-MM-DD and a real day (no 2024-13-45, no trailing newline)."""
    if not _DATE_RE.fullmatch(v):
        return False
    try:
        date.fromisoformat(v)
    except ValueError:
        return False
    return True


def _check_calendar_date(v: str | None) -> str | None:
    if v is None:
        return None
    if not is_calendar_date(v):
        raise ValueError("must be a calendar date in YYYY-MM-DD form")
    return v


class HealthCategory(StrEnum):
    PHYSICAL = "physical"
    SLEEP = "sleep"
    BODY = "body"


class ProfileUpdate(BaseModel):
    """Partial user profile as submitted to POST /users/info."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    recorded_at: str = Field(..., alias="datetime")
    user_id: str = Field(..., pattern=USER_ID_PATTERN)
    date_of_birth_string: str | None = None
    # strict: no bools, no numeric strings; ints are still valid floats
    height_cm_int: int | None = Field(None, gt=0, le=300, strict=True)
    weight_kg_float: float | None = Field(None, gt=0, le=700, strict=True)
    bmi_float: float | None = Field(None, gt=0, le=200, strict=True)
    sex_string: Literal["female", "male"] | None = None

    @field_validator("recorded_at")
    @classmethod
    def validate_iso_datetime(cls, v: str) -> str:
        datetime.fromisoformat(v)
        return v

    @field_validator("date_of_birth_string")
    @classmethod
    def validate_date_of_birth(cls, v: str | None) -> str | None:
        return _check_calendar_date(v)

    def upstream_payload(self) -> dict[str, Any]:
        """The payload as received, for forwarding to ROOK."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

    def to_profile_fields(self) -> dict[str, Any]:
        """Supplied, non-null fields keyed by column name."""
        return {
            column: getattr(self, wire)
            for wire, column in _PROFILE_WIRE_FIELDS.items()
            if getattr(self, wire) is not None
        }


class TimeZoneUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: str = Field(..., pattern=USER_ID_PATTERN)
    time_zone: str = Field(..., min_length=1, max_length=64)
    offset: str | None = Field(None, pattern=r"^[+-]\d{2}:\d{2}$")

    def to_profile_fields(self) -> dict[str, Any]:
        fields = {"time_zone": self.time_zone, "offset": self.offset}
        return {k: v for k, v in fields.items() if v is not None}


class ProfileQuery(BaseModel):
    user_id: str = Field(..., pattern=USER_ID_PATTERN)
    date: str | None = None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str | None) -> str | None:
        return _check_calendar_date(v)


class SnapshotQuery(BaseModel):
    """One cache key: (user_id, <category>_<subtype or "summary">, date)."""

    user_id: str = Field(..., pattern=USER_ID_PATTERN)
    category: HealthCategory
    subtype: str | None = Field(None, pattern=SUBTYPE_PATTERN)
    date: str

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        return _check_calendar_date(v)

    @model_validator(mode="after")
    def reject_summary_subtype(self) -> "SnapshotQuery":
        # events/summary would share a cache key with the summary resource
        if self.subtype == "summary":
            raise ValueError("subtype 'summary' is reserved; omit the subtype instead")
        return self

    @property
    def data_type(self) -> str:
        return f"{self.category.value}_{self.subtype or 'summary'}"

    @property
    def resource_path(self) -> str:
        base = f"/v2/processed_data/{self.category.value}_health"
        if self.subtype is None:
            return f"{base}/summary"
        return f"{base}/events/{self.subtype}"
