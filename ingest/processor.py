"""
Client-side preparation of content-addressed documents.

The pipeline:
1. Normalize the markdown exactly as the server does
2. Fingerprint it (SHA-256, hex)
3. Derive the deterministic password from the fingerprint
4. Seal the text with PBKDF2 + AES-256-GCM

The server only ever receives the sealed payload, the fingerprint and
the byte length.
"""

from typing import Any
from dataclasses import dataclass

from crypto.dedupe import content_fingerprint
from crypto.passphrase import DEFAULT_KDF_PARAMS, KdfParams, derive_content_password
from crypto.vault import DocumentCipher, SealedDocument
from documents.validation import MAX_CONTENT_BYTES, validate_markdown


@dataclass
class PreparedDocument:
    """A document ready for upload. ``password`` never leaves the client."""
    password: str
    fingerprint: str
    content_length: int
    sealed: SealedDocument

    def to_payload(self) -> dict[str, Any]:
        """Request body for the content-addressed create endpoint."""
        return {
            **self.sealed.to_dict(),
            "contentHash": self.fingerprint,
            "contentLength": self.content_length,
        }


class DocumentPreparer:
    """Prepares markdown for a content-addressed upload."""

    def __init__(self, kdf_params: KdfParams = DEFAULT_KDF_PARAMS, max_content_bytes: int = MAX_CONTENT_BYTES):
        """
        Initialize the preparer.

        Args:
            kdf_params: Must match the server's KDF parameters
            max_content_bytes: Size limit checked before encryption
        """
        self.kdf_params = kdf_params
        self.max_content_bytes = max_content_bytes

    def prepare(self, markdown: str) -> PreparedDocument:
        """
        Normalize, fingerprint, derive the password and seal.

        Raises:
            ValidationError: Empty or oversized content
        """
        text = validate_markdown(markdown, self.max_content_bytes)
        fingerprint = content_fingerprint(text)
        password = derive_content_password(fingerprint)
        sealed = DocumentCipher.seal(text, password, self.kdf_params)

        return PreparedDocument(
            password=password,
            fingerprint=fingerprint,
            content_length=len(text.encode("utf-8")),
            sealed=sealed,
        )
