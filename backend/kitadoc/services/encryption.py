"""Field-level encryption and blind-index lookup for KitaDoc.

Two deliberately different primitives over single string values:

- FieldCipher: AES-256-GCM with a fresh random nonce per call. Sealing the
  same value twice yields two different strings.
- LookupHasher: HMAC-SHA256 over a normalized value. Hashing the same value
  twice yields the same token, which is what makes equality lookups on
  encrypted columns possible.

Both take the key on every call and hold no key state.
"""

from __future__ import annotations

from cryptography.exceptions import InvalidTag

from kitadoc.services.errors import CipherError, DigestError, InvalidKeyError
from kitadoc.utils.crypto import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    hmac_sha256,
    key_is_valid,
)


def require_key(key: bytes) -> bytes:
    """Return ``key`` as bytes, or raise InvalidKeyError if it is not 32 bytes."""
    if not key_is_valid(key):
        size = len(key) if isinstance(key, (bytes, bytearray, memoryview)) else None
        raise InvalidKeyError(
            f"Encryption key must be exactly {KEY_SIZE} bytes, "
            f"got {size if size is not None else type(key).__name__}"
        )
    return bytes(key)


class FieldCipher:
    """Authenticated encryption of one string value.

    Wire format: hex(nonce (12B) || ciphertext || tag (16B)).
    The empty string is the "no value" sentinel and is never encrypted.
    """

    __slots__ = ()

    def seal(self, plaintext: str, key: bytes) -> str:
        key = require_key(key)
        if plaintext == "":
            return ""
        try:
            data = plaintext.encode("utf-8")
        except UnicodeEncodeError:
            raise CipherError("Value cannot be encoded as UTF-8") from None
        return aes_gcm_encrypt(key, data).hex()

    def open(self, value: str, key: bytes) -> str:
        """Decrypt a value produced by seal().

        Raises CipherError on malformed hex, truncated data, or a failed
        authentication check (tampering or wrong key).
        """
        key = require_key(key)
        if value == "":
            return ""
        try:
            data = bytes.fromhex(value)
        except ValueError:
            raise CipherError("Encrypted value is not valid hex") from None
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise CipherError("Ciphertext too short")
        try:
            plaintext = aes_gcm_decrypt(key, data)
        except InvalidTag:
            raise CipherError(
                "Decryption failed: ciphertext was tampered with or the key is wrong"
            ) from None
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise CipherError("Decrypted value is not valid UTF-8") from None


class LookupHasher:
    """Deterministic keyed digest for equality search.

    One-way: the plaintext cannot be recovered from a token. The same
    normalization runs when writing and when querying, otherwise lookups
    silently miss.
    """

    __slots__ = ()

    @staticmethod
    def normalize(value: str) -> str:
        return value.strip().lower()

    def digest(self, value: str, key: bytes) -> str:
        key = require_key(key)
        normalized = self.normalize(value)
        if normalized == "":
            return ""
        try:
            return hmac_sha256(key, normalized.encode("utf-8"))
        except (UnicodeEncodeError, TypeError, ValueError) as exc:
            raise DigestError(f"Lookup digest failed: {type(exc).__name__}") from None
