"""
Document lifecycle module for sealdrop.

Handles:
- Input normalization and validation
- Deduplication of content-addressed submissions
- Collision-safe id allocation
- Persistence through an injected store
- Expiry-based purge
"""

from .models import EncryptedDocument
from .store import DocumentStore, InMemoryDocumentStore
from .lifecycle import DocumentService, CreateOptions

__all__ = [
    "EncryptedDocument",
    "DocumentStore",
    "InMemoryDocumentStore",
    "DocumentService",
    "CreateOptions",
]
