"""
Input normalization and validation for document submissions.

normalize_markdown must stay byte-for-byte identical on every side that
fingerprints content, or content-addressed passwords will not match.
"""

import re
import binascii
from dataclasses import dataclass
from typing import Any

from errors import ValidationError
from crypto.dedupe import FINGERPRINT_PATTERN
from crypto.passphrase import PassphraseDeriver
from crypto.vault import DocumentCipher, SealedDocument

MAX_CONTENT_BYTES = 200 * 1024  # 200 KB

# C0 controls except \t \n \r
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F]")


def normalize_markdown(text: str) -> str:
    """CRLF -> LF, strip control chars (keeping \\n and \\t), trim."""
    return _CONTROL_CHARS.sub("", text.replace("\r\n", "\n")).strip()


def _too_large(byte_length: int, max_bytes: int) -> ValidationError:
    return ValidationError(
        "too_large",
        f"Content is too large ({byte_length / 1024:.1f} KB). Maximum is {max_bytes // 1024} KB.",
    )


def validate_markdown(raw: Any, max_bytes: int = MAX_CONTENT_BYTES) -> str:
    """
    Normalize and check markdown for the plaintext create flow.

    Returns:
        The normalized text

    Raises:
        ValidationError: invalid_format, empty or too_large
    """
    if not isinstance(raw, str):
        raise ValidationError("invalid_format", "Markdown must be a string.")

    markdown = normalize_markdown(raw)
    if not markdown:
        raise ValidationError("empty", "Markdown content cannot be empty.")

    byte_length = len(markdown.encode("utf-8"))
    if byte_length > max_bytes:
        raise _too_large(byte_length, max_bytes)

    return markdown


def validate_password(raw: Any) -> str:
    if not isinstance(raw, str) or not raw:
        raise ValidationError("empty", "Password is required.")
    return raw


@dataclass(frozen=True)
class EncryptedSubmission:
    """A client-encrypted payload for the content-addressed flow."""
    sealed: SealedDocument
    content_hash: str
    content_length: int


def validate_submission(body: Any, max_bytes: int = MAX_CONTENT_BYTES) -> EncryptedSubmission:
    """
    Check a client-encrypted payload.

    Expects ciphertextB64, ivB64, saltB64, authTagB64, contentHash and
    contentLength, as sent by the uploader.
    """
    if not isinstance(body, dict):
        raise ValidationError("invalid_format", "Invalid request body.")

    blob_fields = ("ciphertextB64", "ivB64", "saltB64", "authTagB64")
    if any(not isinstance(body.get(name), str) or not body.get(name) for name in blob_fields):
        raise ValidationError("invalid_format", "Missing or invalid encryption fields.")

    content_hash = body.get("contentHash")
    if not isinstance(content_hash, str) or not FINGERPRINT_PATTERN.match(content_hash):
        raise ValidationError("invalid_format", "Invalid content hash.")

    content_length = body.get("contentLength")
    # bool is an int subclass
    if isinstance(content_length, bool) or not isinstance(content_length, int) or content_length <= 0:
        raise ValidationError("invalid_format", "Invalid content length.")
    if content_length > max_bytes:
        raise _too_large(content_length, max_bytes)

    try:
        sealed = SealedDocument.from_dict(body)
    except (binascii.Error, ValueError):
        raise ValidationError("invalid_format", "Missing or invalid encryption fields.") from None

    if (
        len(sealed.iv) != DocumentCipher.IV_LEN
        or len(sealed.salt) != PassphraseDeriver.SALT_LEN
        or len(sealed.auth_tag) != DocumentCipher.TAG_LEN
    ):
        raise ValidationError("invalid_format", "Missing or invalid encryption fields.")

    # GCM ciphertext is exactly as long as the plaintext
    if len(sealed.ciphertext) != content_length:
        raise ValidationError("invalid_format", "Content length does not match the ciphertext.")

    return EncryptedSubmission(sealed=sealed, content_hash=content_hash, content_length=content_length)
