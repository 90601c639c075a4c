from __future__ import annotations

import os

# Set test environment BEFORE importing kitadoc modules.
# kitadoc.db creates the engine at module level using get_settings().db_url,
# so we must override the env vars before any kitadoc imports.
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("ENCRYPTION_KEY", "0123456789abcdef0123456789abcdef")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from kitadoc.db import get_session
from kitadoc.dependencies import get_encryption_key
from kitadoc.main import app as fastapi_app
from kitadoc.services.encryption import FieldCipher, LookupHasher
from kitadoc.services.sealing import SealingEngine


# ── Database fixtures ─────────────────────────────────────────────────


@pytest.fixture(name="engine")
def engine_fixture():
    """Create an in-memory SQLite engine for testing.

    Uses StaticPool so every connection shares the same in-memory database.
    Recreates tables per test for full isolation.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    """Provide a fresh session per test."""
    with Session(engine) as session:
        yield session


# ── Encryption fixtures ───────────────────────────────────────────────


@pytest.fixture(name="key")
def key_fixture() -> bytes:
    """The documented example key (32 ASCII bytes)."""
    return b"0123456789abcdef0123456789abcdef"


@pytest.fixture(name="other_key")
def other_key_fixture() -> bytes:
    return os.urandom(32)


@pytest.fixture(name="cipher")
def cipher_fixture() -> FieldCipher:
    return FieldCipher()


@pytest.fixture(name="hasher")
def hasher_fixture() -> LookupHasher:
    return LookupHasher()


@pytest.fixture(name="sealing_engine")
def sealing_engine_fixture() -> SealingEngine:
    return SealingEngine()


# ── HTTP client fixtures ──────────────────────────────────────────────


@pytest.fixture(name="client")
def client_fixture(session, key):
    """FastAPI TestClient with overridden DB session and key."""

    def _get_session_override():
        yield session

    def _get_key_override() -> bytes:
        return key

    fastapi_app.dependency_overrides[get_session] = _get_session_override
    fastapi_app.dependency_overrides[get_encryption_key] = _get_key_override
    with TestClient(fastapi_app) as client:
        yield client
    fastapi_app.dependency_overrides.clear()
