"""Tests for kitadoc/utils/crypto.py — low-level primitives."""

from __future__ import annotations

import os

import pytest
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError
from cryptography.exceptions import InvalidTag

from kitadoc.utils.crypto import (
    KEY_SIZE,
    NONCE_SIZE,
    TAG_SIZE,
    aes_gcm_decrypt,
    aes_gcm_encrypt,
    generate_key,
    hash_password,
    hmac_sha256,
    key_is_valid,
)


class TestKeyIsValid:
    def test_accepts_32_bytes(self) -> None:
        assert key_is_valid(os.urandom(KEY_SIZE))

    def test_accepts_bytearray(self) -> None:
        assert key_is_valid(bytearray(KEY_SIZE))

    @pytest.mark.parametrize("size", [0, 16, 24, 31, 33, 64])
    def test_rejects_other_lengths(self, size: int) -> None:
        assert not key_is_valid(os.urandom(size))

    def test_rejects_str(self) -> None:
        """A 32-character str is not a key; callers must encode it."""
        assert not key_is_valid("0123456789abcdef0123456789abcdef")


class TestAesGcm:
    def test_roundtrip(self) -> None:
        key = generate_key()
        data = aes_gcm_encrypt(key, b"Hello, KitaDoc!")
        assert aes_gcm_decrypt(key, data) == b"Hello, KitaDoc!"

    def test_layout(self) -> None:
        """Output is nonce || ciphertext || tag."""
        key = generate_key()
        data = aes_gcm_encrypt(key, b"12345")
        assert len(data) == NONCE_SIZE + 5 + TAG_SIZE

    def test_different_nonces(self) -> None:
        key = generate_key()
        assert aes_gcm_encrypt(key, b"same")[:NONCE_SIZE] != aes_gcm_encrypt(key, b"same")[:NONCE_SIZE]

    def test_tampered_ciphertext(self) -> None:
        key = generate_key()
        tampered = bytearray(aes_gcm_encrypt(key, b"test data"))
        tampered[-1] ^= 0xFF
        with pytest.raises(InvalidTag):
            aes_gcm_decrypt(key, bytes(tampered))

    def test_wrong_key(self) -> None:
        data = aes_gcm_encrypt(generate_key(), b"secret")
        with pytest.raises(InvalidTag):
            aes_gcm_decrypt(generate_key(), data)


class TestHmacSha256:
    def test_known_vector(self) -> None:
        """RFC 4231 test case 2."""
        expected = "5bdcc146bf60754e6a042426089575c75a003f089d2739839dec58b964ec3843"
        assert hmac_sha256(b"Jefe", b"what do ya want for nothing?") == expected

    def test_deterministic(self) -> None:
        key = os.urandom(32)
        assert hmac_sha256(key, b"data") == hmac_sha256(key, b"data")

    def test_different_keys(self) -> None:
        assert hmac_sha256(os.urandom(32), b"data") != hmac_sha256(os.urandom(32), b"data")


class TestPasswordHashing:
    def test_argon2id_hash(self) -> None:
        hashed = hash_password("correct horse battery")
        assert hashed.startswith("$argon2id$")
        assert PasswordHasher().verify(hashed, "correct horse battery")

    def test_wrong_password_rejected(self) -> None:
        with pytest.raises(VerifyMismatchError):
            PasswordHasher().verify(hash_password("one password"), "another password")

    def test_salted(self) -> None:
        assert hash_password("same") != hash_password("same")
