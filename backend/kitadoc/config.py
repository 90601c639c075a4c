from __future__ import annotations

from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENCRYPTION_KEY_BYTES = 32


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    domain: str = "localhost"
    db_url: str = "sqlite:///./kitadoc.db"
    # AES-256 / HMAC key for PII columns (raw UTF-8 bytes). Never log it.
    encryption_key: str = ""
    min_password_length: int = 8

    @model_validator(mode="after")
    def _check_encryption_key(self) -> Settings:
        self.encryption_key = self.encryption_key.strip()
        if not self.encryption_key:
            raise ValueError(
                "ENCRYPTION_KEY is not set. PII columns cannot be sealed without it. "
                f"Set ENCRYPTION_KEY in .env to a {ENCRYPTION_KEY_BYTES}-byte value."
            )
        size = len(self.encryption_key.encode("utf-8"))
        if size != ENCRYPTION_KEY_BYTES:
            raise ValueError(
                f"ENCRYPTION_KEY must be exactly {ENCRYPTION_KEY_BYTES} bytes, got {size}. "
                "Keys are never padded or truncated."
            )
        return self

    def encryption_key_bytes(self) -> bytes:
        return self.encryption_key.encode("utf-8")


@lru_cache
def get_settings() -> Settings:
    return Settings()
