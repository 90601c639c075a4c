"""Low-level cryptographic primitives for KitaDoc.

Pure functions with no domain knowledge. Everything above this module
works with hex strings; everything in here works with bytes.
"""

from __future__ import annotations

import hashlib
import hmac
import os

from argon2 import PasswordHasher
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96-bit GCM nonce
TAG_SIZE = 16  # 128-bit GCM tag

_password_hasher = PasswordHasher()


def key_is_valid(key: object) -> bool:
    """True if ``key`` is a byte sequence of exactly KEY_SIZE bytes."""
    return isinstance(key, (bytes, bytearray, memoryview)) and len(key) == KEY_SIZE


def generate_key() -> bytes:
    """Generate a fresh random 256-bit key."""
    return AESGCM.generate_key(bit_length=256)


def aes_gcm_encrypt(key: bytes, plaintext: bytes, aad: bytes | None = None) -> bytes:
    """Encrypt plaintext with AES-256-GCM.

    Returns nonce (12 bytes) || ciphertext+tag.
    """
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(bytes(key))
    ciphertext = aesgcm.encrypt(nonce, plaintext, aad)
    return nonce + ciphertext


def aes_gcm_decrypt(key: bytes, data: bytes, aad: bytes | None = None) -> bytes:
    """Decrypt data produced by aes_gcm_encrypt.

    Splits data into nonce (first 12 bytes) and ciphertext+tag.
    Raises cryptography.exceptions.InvalidTag on tampered data.
    """
    nonce = data[:NONCE_SIZE]
    ciphertext = data[NONCE_SIZE:]
    aesgcm = AESGCM(bytes(key))
    return aesgcm.decrypt(nonce, ciphertext, aad)


def hmac_sha256(key: bytes, data: bytes) -> str:
    """Compute HMAC-SHA256(key, data). Returns hex-encoded digest."""
    return hmac.new(bytes(key), data, hashlib.sha256).hexdigest()


def hash_password(password: str) -> str:
    """Hash a login password with Argon2id (PHC string format)."""
    return _password_hasher.hash(password)

