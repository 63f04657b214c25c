"""
Client-side module for sealdrop.

Handles:
- Normalization and fingerprinting of markdown
- Deterministic password derivation and local encryption
- Upload and retrieval through the documents API
"""

from .processor import DocumentPreparer, PreparedDocument
from .uploader import DocumentUploader, ShareResult

__all__ = ["DocumentPreparer", "PreparedDocument", "DocumentUploader", "ShareResult"]
