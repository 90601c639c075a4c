"""Teacher model — kindergarten staff members."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel
from pydantic import Field as SchemaField
from sqlmodel import Field, SQLModel

from kitadoc.models.classification import CONFIDENTIAL, confidential


class Teacher(BaseModel):
    id: int | None = None
    first_name: Annotated[str, CONFIDENTIAL]
    last_name: Annotated[str, CONFIDENTIAL]
    username: Annotated[str, confidential(index="username_hmac")]
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TeacherRow(SQLModel, table=True):
    __tablename__ = "teachers"

    id: int | None = Field(default=None, primary_key=True)
    first_name: str
    last_name: str
    username: str
    username_hmac: str = Field(index=True, unique=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic schemas ---


class TeacherCreate(BaseModel):
    first_name: str = SchemaField(min_length=1, max_length=100)
    last_name: str = SchemaField(min_length=1, max_length=100)
    username: str = SchemaField(min_length=1, max_length=100)


class TeacherUpdate(BaseModel):
    first_name: str | None = SchemaField(default=None, min_length=1, max_length=100)
    last_name: str | None = SchemaField(default=None, min_length=1, max_length=100)
    username: str | None = SchemaField(default=None, min_length=1, max_length=100)


class TeacherRead(BaseModel):
    id: int
    first_name: str
    last_name: str
    username: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
