"""Error taxonomy for field encryption and record sealing.

None of these carry plaintext. Messages name the record type and field,
never the value being processed.
"""

from __future__ import annotations


class PIIError(Exception):
    """Base class for every error raised while protecting PII fields."""


class InvalidKeyError(PIIError, ValueError):
    """Raised when a key is not a 32-byte sequence. Fix the configuration."""


class CipherError(PIIError):
    """Encryption setup failed, or decryption failed authentication.

    Covers tampered ciphertext, the wrong key, malformed hex and values
    shorter than the nonce. Never retried.
    """


class DigestError(PIIError):
    """The keyed lookup digest could not be computed."""


class TransformError(PIIError):
    """A record could not be sealed or opened.

    Wraps a field-level CipherError/DigestError (available as __cause__),
    a classified field holding an unsupported value, or an unparseable
    timestamp after decryption.
    """

    def __init__(self, message: str, *, record_type: str | None = None, field: str | None = None) -> None:
        self.record_type = record_type
        self.field = field
        if record_type and field:
            message = f"{record_type}.{field}: {message}"
        super().__init__(message)


class ClassificationError(TransformError):
    """A record type's field classification or sealed mapping is invalid.

    Raised when the descriptor table or mapping is built, before any value
    is touched.
    """
