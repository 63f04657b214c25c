"""
Key derivation for document passwords.

Two paths:
- password + per-document salt -> AES-256 key (PBKDF2-HMAC-SHA256 by default,
  Argon2id when a record says so)
- content fingerprint -> deterministic password (HKDF-SHA256), so anyone
  holding the same normalized content arrives at the same password
"""

import os
import hashlib
from dataclasses import dataclass
from typing import Any

from argon2.low_level import hash_secret_raw, Type
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from errors import ConfigurationError
from .random_strings import PASSWORD_CHARSET, PASSWORD_LENGTH, map_bytes_to_charset

PBKDF2_SHA256 = "pbkdf2-sha256"
ARGON2ID = "argon2id"

MIN_PBKDF2_ITERATIONS = 300_000


@dataclass(frozen=True)
class KdfParams:
    """KDF parameters stored with every document."""
    algorithm: str
    iterations: int
    key_length: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "iterations": self.iterations,
            "keyLength": self.key_length,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "KdfParams":
        return cls(
            algorithm=data["algorithm"],
            iterations=int(data["iterations"]),
            key_length=int(data["keyLength"]),
        )


DEFAULT_KDF_PARAMS = KdfParams(algorithm=PBKDF2_SHA256, iterations=310_000, key_length=32)


class PassphraseDeriver:
    """Derives AES keys from document passwords."""

    SALT_LEN = 16  # 128 bits

    # Argon2id parameters; the time cost travels as KdfParams.iterations
    ARGON2_MEMORY_COST = 65536  # 64 MB
    ARGON2_PARALLELISM = 4

    @classmethod
    def new_salt(cls) -> bytes:
        """Fresh random per-document salt."""
        return os.urandom(cls.SALT_LEN)

    @classmethod
    def derive_key(cls, password: str, salt: bytes, params: KdfParams = DEFAULT_KDF_PARAMS) -> bytes:
        """
        Derive a symmetric key from a password and salt.

        Args:
            password: The document password
            salt: 16-byte salt stored with the document
            params: KDF parameters recorded when the document was created

        Returns:
            ``params.key_length`` key bytes

        Raises:
            ConfigurationError: On an empty password, a bad salt or unknown params
        """
        if not password:
            raise ConfigurationError("Key derivation requires a non-empty password")
        if len(salt) != cls.SALT_LEN:
            raise ConfigurationError(f"Key derivation requires a {cls.SALT_LEN}-byte salt")
        if params.iterations < 1 or params.key_length < 16:
            raise ConfigurationError("Invalid KDF parameters")

        secret = password.encode("utf-8")

        if params.algorithm == PBKDF2_SHA256:
            return hashlib.pbkdf2_hmac("sha256", secret, salt, params.iterations, dklen=params.key_length)

        if params.algorithm == ARGON2ID:
            return hash_secret_raw(
                secret=secret,
                salt=salt,
                time_cost=params.iterations,
                memory_cost=cls.ARGON2_MEMORY_COST,
                parallelism=cls.ARGON2_PARALLELISM,
                hash_len=params.key_length,
                type=Type.ID,
            )

        raise ConfigurationError(f"Unsupported KDF algorithm: {params.algorithm}")


# Fixed labels for the content-derived password. Changing any of them
# changes every content-addressed password, so old links stop working.
CONTENT_HKDF_SALT = b"sealdrop-v2"
CONTENT_HKDF_INFO = b"password-derivation"
CONTENT_HKDF_EXTRA_SALT = b"sealdrop-v2-extra"


def _hkdf_round(key_material: bytes, salt: bytes, info: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        info=info,
    ).derive(key_material)


def derive_content_password(fingerprint: str, length: int = PASSWORD_LENGTH) -> str:
    """
    Derive the deterministic password for a content fingerprint.

    The hex fingerprint (as text) is the HKDF input key material. Derived
    bytes are mapped onto the password charset with the same rejection rule
    as random strings; if 32 bytes are not enough, further rounds are derived
    with numbered info labels.

    Args:
        fingerprint: SHA-256 of the normalized content, lowercase hex
        length: Password length

    Returns:
        The password; identical fingerprints always give identical output
    """
    if not fingerprint:
        raise ConfigurationError("Content password derivation requires a fingerprint")

    key_material = fingerprint.encode("utf-8")
    result: list[str] = []

    map_bytes_to_charset(
        _hkdf_round(key_material, CONTENT_HKDF_SALT, CONTENT_HKDF_INFO),
        PASSWORD_CHARSET, length, result,
    )

    round_number = 0
    while len(result) < length:
        round_number += 1
        info = CONTENT_HKDF_INFO + f"-{round_number}".encode("ascii")
        map_bytes_to_charset(
            _hkdf_round(key_material, CONTENT_HKDF_EXTRA_SALT, info),
            PASSWORD_CHARSET, length, result,
        )

    return "".join(result)
