"""FastAPI dependency injection for the encryption key and sealing engine."""

from __future__ import annotations

from functools import lru_cache

from kitadoc.config import get_settings
from kitadoc.services.sealing import SealingEngine


def get_encryption_key() -> bytes:
    """Inject the PII key from settings. Override in tests."""
    return get_settings().encryption_key_bytes()


@lru_cache
def get_sealing_engine() -> SealingEngine:
    """Inject the shared SealingEngine. It holds no key, so one instance serves every request."""
    return SealingEngine()
