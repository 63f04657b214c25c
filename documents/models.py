"""
The persisted encrypted document record.

Binary fields are raw bytes in memory and base64 at the storage/API
boundary. ``created_at`` is authoritative for expiry; liveness is always
computed, never stored.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from crypto.passphrase import KdfParams
from crypto.vault import SealedDocument, b64decode, b64encode


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """
    ISO-8601 UTC with millisecond precision and a ``Z`` suffix.

    The fixed width keeps stored timestamps string-sortable.
    """
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def from_iso(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class EncryptedDocument:
    """An immutable encrypted document. Never holds plaintext."""
    id: str
    ciphertext: bytes
    iv: bytes
    salt: bytes
    auth_tag: bytes
    kdf: KdfParams
    created_at: datetime
    content_length: int
    dedupe_tag: Optional[str] = None

    def is_live(self, now: datetime, expiry: timedelta) -> bool:
        """A document is live while its age is below the expiry window."""
        return now - self.created_at < expiry

    @property
    def sealed(self) -> SealedDocument:
        return SealedDocument(
            ciphertext=self.ciphertext,
            iv=self.iv,
            salt=self.salt,
            auth_tag=self.auth_tag,
        )

    def to_row(self) -> dict[str, Any]:
        """Logical storage columns."""
        return {
            "id": self.id,
            "ciphertext_b64": b64encode(self.ciphertext),
            "iv_b64": b64encode(self.iv),
            "salt_b64": b64encode(self.salt),
            "auth_tag_b64": b64encode(self.auth_tag),
            "kdf_algorithm": self.kdf.algorithm,
            "kdf_iterations": self.kdf.iterations,
            "kdf_key_length": self.kdf.key_length,
            "created_at_iso": to_iso(self.created_at),
            "content_length": self.content_length,
            "dedupe_tag": self.dedupe_tag or "",
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "EncryptedDocument":
        return cls(
            id=row["id"],
            ciphertext=b64decode(row["ciphertext_b64"]),
            iv=b64decode(row["iv_b64"]),
            salt=b64decode(row["salt_b64"]),
            auth_tag=b64decode(row["auth_tag_b64"]),
            kdf=KdfParams(
                algorithm=row["kdf_algorithm"],
                iterations=int(row["kdf_iterations"]),
                key_length=int(row["kdf_key_length"]),
            ),
            created_at=from_iso(row["created_at_iso"]),
            content_length=int(row["content_length"]),
            dedupe_tag=row.get("dedupe_tag") or None,
        )

    def to_public_dict(self) -> dict[str, Any]:
        """What a reader needs to decrypt client-side. No tag, no timestamps."""
        return {
            **self.sealed.to_dict(),
            "kdf": self.kdf.to_dict(),
        }
