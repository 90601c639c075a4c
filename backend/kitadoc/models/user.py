"""User model — login accounts. The username is encrypted and blind-indexed."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal

from pydantic import BaseModel
from pydantic import Field as SchemaField
from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from kitadoc.models.classification import confidential

RoleType = Literal["teacher", "admin"]


class User(BaseModel):
    """Plaintext user as handlers and services see it."""

    id: int | None = None
    username: Annotated[str, confidential(index="username_hmac")]
    password_hash: str = ""
    role: str = "teacher"
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserRow(SQLModel, table=True):
    """Sealed user as stored in the users table."""
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('teacher', 'admin')", name="ck_users_role"),
    )

    id: int | None = Field(default=None, primary_key=True)
    username: str  # hex ciphertext
    username_hmac: str = Field(index=True, unique=True)  # HMAC-SHA256 of normalized username
    password_hash: str
    role: str = Field(default="teacher")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Pydantic schemas ---


class UserCreate(BaseModel):
    username: str = SchemaField(min_length=3, max_length=100)
    password: str
    role: RoleType = "teacher"


class UserRead(BaseModel):
    id: int
    username: str
    role: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
