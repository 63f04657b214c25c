"""Document store interface and an in-memory implementation.

The store is the only source of truth for id uniqueness and liveness.
Implementations must make ``put`` a single atomic insert.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from errors import DuplicateId
from .models import EncryptedDocument


@runtime_checkable
class DocumentStore(Protocol):
    """Key-value store with a secondary index on dedupe_tag."""

    async def exists(self, document_id: str) -> bool: ...
    async def get(self, document_id: str) -> EncryptedDocument | None: ...
    async def put(self, doc: EncryptedDocument) -> None: ...
    async def find_live_by_dedupe_tag(self, tag: str, not_before: datetime) -> EncryptedDocument | None: ...
    async def delete_older_than(self, cutoff: datetime) -> int: ...


class InMemoryDocumentStore:
    """Dict-backed store for tests and local development. Nothing persists."""

    def __init__(self) -> None:
        self._documents: dict[str, EncryptedDocument] = {}

    def __len__(self) -> int:
        return len(self._documents)

    async def exists(self, document_id: str) -> bool:
        return document_id in self._documents

    async def get(self, document_id: str) -> EncryptedDocument | None:
        return self._documents.get(document_id)

    async def put(self, doc: EncryptedDocument) -> None:
        if doc.id in self._documents:
            raise DuplicateId(doc.id)
        self._documents[doc.id] = doc

    async def find_live_by_dedupe_tag(self, tag: str, not_before: datetime) -> EncryptedDocument | None:
        matches = [
            doc for doc in self._documents.values()
            if doc.dedupe_tag == tag and doc.created_at > not_before
        ]
        if not matches:
            return None
        return max(matches, key=lambda doc: doc.created_at)

    async def delete_older_than(self, cutoff: datetime) -> int:
        expired = [doc_id for doc_id, doc in self._documents.items() if doc.created_at < cutoff]
        for doc_id in expired:
            del self._documents[doc_id]
        return len(expired)
