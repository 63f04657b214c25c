"""
Cryptographic module for sealdrop.

Handles:
- Secure random ids and passwords (rejection sampling)
- Key derivation (PBKDF2-HMAC-SHA256, Argon2id) and content-derived passwords (HKDF)
- Document encryption (AES-256-GCM)
- Blinded dedupe tags (HMAC-SHA256 with a server pepper)
"""

from .random_strings import secure_random_string, generate_password, generate_document_id
from .passphrase import PassphraseDeriver, KdfParams, DEFAULT_KDF_PARAMS, derive_content_password
from .vault import DocumentCipher, EncryptedPayload, SealedDocument
from .dedupe import DedupeTagger, content_fingerprint

__all__ = [
    "secure_random_string",
    "generate_password",
    "generate_document_id",
    "PassphraseDeriver",
    "KdfParams",
    "DEFAULT_KDF_PARAMS",
    "derive_content_password",
    "DocumentCipher",
    "EncryptedPayload",
    "SealedDocument",
    "DedupeTagger",
    "content_fingerprint",
]
