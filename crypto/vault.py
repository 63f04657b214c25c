"""
Authenticated encryption for shared documents.

Uses AES-256-GCM with a fresh 96-bit IV per encryption and a 128-bit tag.
The tag is kept apart from the ciphertext so each blob can be stored and
transported on its own.
"""

import os
import base64
from typing import Any
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from errors import AuthFailure
from .passphrase import DEFAULT_KDF_PARAMS, KdfParams, PassphraseDeriver


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def b64decode(data: str) -> bytes:
    return base64.b64decode(data, validate=True)


@dataclass(frozen=True)
class EncryptedPayload:
    """Output of a single encryption."""
    ciphertext: bytes
    iv: bytes
    tag: bytes


@dataclass(frozen=True)
class SealedDocument:
    """Encrypted document plus the salt its key was derived with."""
    ciphertext: bytes
    iv: bytes
    salt: bytes
    auth_tag: bytes

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON wire format."""
        return {
            "ciphertextB64": b64encode(self.ciphertext),
            "ivB64": b64encode(self.iv),
            "saltB64": b64encode(self.salt),
            "authTagB64": b64encode(self.auth_tag),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SealedDocument":
        """Reconstruct from the JSON wire format."""
        return cls(
            ciphertext=b64decode(data["ciphertextB64"]),
            iv=b64decode(data["ivB64"]),
            salt=b64decode(data["saltB64"]),
            auth_tag=b64decode(data["authTagB64"]),
        )


class DocumentCipher:
    """Encrypts and decrypts document text."""

    IV_LEN = 12  # 96 bits for AES-GCM
    TAG_LEN = 16  # 128 bits

    @classmethod
    def encrypt(cls, plaintext: str, key: bytes) -> EncryptedPayload:
        """
        Encrypt UTF-8 text under ``key``.

        Args:
            plaintext: Document text
            key: 256-bit key

        Returns:
            EncryptedPayload with ciphertext, iv and tag
        """
        iv = os.urandom(cls.IV_LEN)
        aesgcm = AESGCM(key)
        combined = aesgcm.encrypt(iv, plaintext.encode("utf-8"), None)

        # AESGCM appends the tag to the ciphertext
        return EncryptedPayload(
            ciphertext=combined[:-cls.TAG_LEN],
            iv=iv,
            tag=combined[-cls.TAG_LEN:],
        )

    @classmethod
    def decrypt(cls, ciphertext: bytes, iv: bytes, tag: bytes, key: bytes) -> str:
        """
        Decrypt and verify a payload.

        Raises:
            AuthFailure: For any failure: bad tag, malformed iv/tag, bad UTF-8
        """
        try:
            if len(iv) != cls.IV_LEN or len(tag) != cls.TAG_LEN:
                raise InvalidTag()
            aesgcm = AESGCM(key)
            plaintext = aesgcm.decrypt(iv, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError):
            # UnicodeDecodeError is a ValueError
            raise AuthFailure() from None

    @classmethod
    def seal(cls, plaintext: str, password: str, params: KdfParams = DEFAULT_KDF_PARAMS) -> SealedDocument:
        """Derive a key from ``password`` with a fresh salt and encrypt."""
        salt = PassphraseDeriver.new_salt()
        key = PassphraseDeriver.derive_key(password, salt, params)
        payload = cls.encrypt(plaintext, key)
        return SealedDocument(
            ciphertext=payload.ciphertext,
            iv=payload.iv,
            salt=salt,
            auth_tag=payload.tag,
        )

    @classmethod
    def open(cls, sealed: SealedDocument, password: str, params: KdfParams = DEFAULT_KDF_PARAMS) -> str:
        """
        Decrypt a sealed document with its password.

        Raises:
            AuthFailure: Wrong password or corrupted data
        """
        if not password or len(sealed.salt) != PassphraseDeriver.SALT_LEN:
            raise AuthFailure()
        key = PassphraseDeriver.derive_key(password, sealed.salt, params)
        return cls.decrypt(sealed.ciphertext, sealed.iv, sealed.auth_tag, key)
