"""Tests for document encryption."""
import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from errors import AuthFailure
from crypto.passphrase import KdfParams
from crypto.vault import DocumentCipher, SealedDocument

FAST_KDF = KdfParams(algorithm="pbkdf2-sha256", iterations=1000, key_length=32)


@pytest.fixture
def key():
    return os.urandom(32)


class TestDocumentCipher:
    @pytest.mark.parametrize("plaintext", ["# Title\n\nbody", "ünïcødé ✓ 日本語", "x" * 10_000])
    def test_round_trip(self, key, plaintext):
        payload = DocumentCipher.encrypt(plaintext, key)
        assert DocumentCipher.decrypt(payload.ciphertext, payload.iv, payload.tag, key) == plaintext

    def test_sizes(self, key):
        payload = DocumentCipher.encrypt("hello", key)
        assert len(payload.iv) == 12
        assert len(payload.tag) == 16
        assert len(payload.ciphertext) == len(b"hello")

    def test_fresh_iv_per_encryption(self, key):
        first = DocumentCipher.encrypt("same", key)
        second = DocumentCipher.encrypt("same", key)
        assert first.iv != second.iv
        assert first.ciphertext != second.ciphertext

    def test_wrong_key(self, key):
        payload = DocumentCipher.encrypt("secret", key)
        with pytest.raises(AuthFailure):
            DocumentCipher.decrypt(payload.ciphertext, payload.iv, payload.tag, os.urandom(32))

    def test_tampered_ciphertext(self, key):
        payload = DocumentCipher.encrypt("secret", key)
        tampered = bytes([payload.ciphertext[0] ^ 1]) + payload.ciphertext[1:]
        with pytest.raises(AuthFailure):
            DocumentCipher.decrypt(tampered, payload.iv, payload.tag, key)

    def test_tampered_tag(self, key):
        payload = DocumentCipher.encrypt("secret", key)
        with pytest.raises(AuthFailure):
            DocumentCipher.decrypt(payload.ciphertext, payload.iv, b"\x00" * 16, key)

    def test_malformed_iv(self, key):
        payload = DocumentCipher.encrypt("secret", key)
        with pytest.raises(AuthFailure):
            DocumentCipher.decrypt(payload.ciphertext, payload.iv[:8], payload.tag, key)

    def test_invalid_utf8_is_an_auth_failure(self, key):
        iv = os.urandom(12)
        combined = AESGCM(key).encrypt(iv, b"\xff\xfe\xfd", None)
        with pytest.raises(AuthFailure) as exc_info:
            DocumentCipher.decrypt(combined[:-16], iv, combined[-16:], key)
        assert exc_info.value.message == AuthFailure().message

    def test_failures_are_indistinguishable(self, key):
        payload = DocumentCipher.encrypt("secret", key)
        messages = set()
        for args in (
            (payload.ciphertext, payload.iv, payload.tag, os.urandom(32)),
            (payload.ciphertext, payload.iv, b"\x00" * 16, key),
        ):
            with pytest.raises(AuthFailure) as exc_info:
                DocumentCipher.decrypt(*args)
            messages.add((exc_info.value.code, exc_info.value.message))
        assert len(messages) == 1


class TestSealAndOpen:
    def test_round_trip(self):
        sealed = DocumentCipher.seal("# Notes", "hunter2hunter2", FAST_KDF)
        assert len(sealed.salt) == 16
        assert DocumentCipher.open(sealed, "hunter2hunter2", FAST_KDF) == "# Notes"

    def test_wrong_password(self):
        sealed = DocumentCipher.seal("# Notes", "right", FAST_KDF)
        with pytest.raises(AuthFailure):
            DocumentCipher.open(sealed, "wrong", FAST_KDF)

    def test_empty_password(self):
        sealed = DocumentCipher.seal("# Notes", "right", FAST_KDF)
        with pytest.raises(AuthFailure):
            DocumentCipher.open(sealed, "", FAST_KDF)

    def test_wire_format(self):
        sealed = DocumentCipher.seal("# Notes", "pw", FAST_KDF)
        data = sealed.to_dict()
        assert set(data) == {"ciphertextB64", "ivB64", "saltB64", "authTagB64"}
        assert SealedDocument.from_dict(data) == sealed
