"""Child model — children enrolled in the kindergarten.

Names and the birthdate are PII. The birthdate is stored encrypted in its
own text column (``birthdate_encrypted``); admission and enrollment dates
are not identifying on their own and stay plain.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated

from pydantic import BaseModel, model_validator
from pydantic import Field as SchemaField
from sqlmodel import Field, SQLModel

from kitadoc.models.classification import CONFIDENTIAL, confidential

MAX_CHILD_AGE_DAYS = 8 * 365


class Child(BaseModel):
    id: int | None = None
    first_name: Annotated[str, CONFIDENTIAL]
    last_name: Annotated[str, CONFIDENTIAL]
    birthdate: Annotated[datetime, confidential(target="birthdate_encrypted")]
    admission_date: datetime | None = None
    expected_school_enrollment: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ChildRow(SQLModel, table=True):
    __tablename__ = "children"

    id: int | None = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    birthdate_encrypted: str  # hex ciphertext of the RFC 3339 birthdate
    admission_date: datetime | None = Field(default=None)
    expected_school_enrollment: datetime | None = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic schemas ---


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def check_child_dates(birthdate: datetime, expected_school_enrollment: datetime | None = None) -> None:
    """Raise ValueError unless the birthdate and enrollment date are plausible."""
    now = datetime.now(timezone.utc)
    birthdate = _aware(birthdate)
    if not now - timedelta(days=MAX_CHILD_AGE_DAYS) < birthdate < now:
        raise ValueError("birthdate must be in the past and at most 8 years ago")
    if expected_school_enrollment is not None and _aware(expected_school_enrollment) <= birthdate:
        raise ValueError("expected_school_enrollment must be after birthdate")


class ChildCreate(BaseModel):
    first_name: str = SchemaField(min_length=1, max_length=100)
    last_name: str = SchemaField(min_length=1, max_length=100)
    birthdate: datetime
    admission_date: datetime | None = None
    expected_school_enrollment: datetime | None = None

    @model_validator(mode="after")
    def _check_dates(self) -> ChildCreate:
        check_child_dates(self.birthdate, self.expected_school_enrollment)
        return self


class ChildUpdate(BaseModel):
    first_name: str | None = SchemaField(default=None, min_length=1, max_length=100)
    last_name: str | None = SchemaField(default=None, min_length=1, max_length=100)
    birthdate: datetime | None = None
    admission_date: datetime | None = None
    expected_school_enrollment: datetime | None = None


class ChildRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    birthdate: datetime
    admission_date: datetime | None
    expected_school_enrollment: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
