"""
HTTP client for a sealdrop server.

Handles:
- Content-addressed upload of client-encrypted documents
- Fetching encrypted documents and opening them locally
- Server-side decryption requests
"""

import asyncio
import logging
from typing import Any, Optional
from dataclasses import dataclass, field

import httpx

from errors import SealdropError
from crypto.passphrase import KdfParams
from crypto.vault import DocumentCipher, SealedDocument
from .processor import DocumentPreparer

logger = logging.getLogger(__name__)


@dataclass
class ShareResult:
    """Result of a share operation."""
    success: bool
    message: str
    document_id: Optional[str] = None
    read_url: Optional[str] = None
    password: Optional[str] = None
    deduplicated: bool = False
    errors: list[str] = field(default_factory=list)


class DocumentUploader:
    """Talks to the sealdrop documents API."""

    def __init__(
        self,
        api_base_url: str,
        preparer: Optional[DocumentPreparer] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the uploader.

        Args:
            api_base_url: Base URL of the sealdrop server
            preparer: Client-side encryption pipeline
            transport: Optional httpx transport (e.g. ASGITransport in tests)
        """
        self.api_base_url = api_base_url.rstrip("/")
        self.preparer = preparer or DocumentPreparer()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_base_url,
                timeout=30.0,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text
        return data.get("error", "") if isinstance(data, dict) else ""

    async def share(self, markdown: str) -> ShareResult:
        """
        Encrypt markdown locally and upload it.

        Args:
            markdown: Document text

        Returns:
            ShareResult with the document id and the content-derived password
        """
        result = ShareResult(success=False, message="")

        try:
            prepared = await asyncio.to_thread(self.preparer.prepare, markdown)
        except SealdropError as e:
            result.errors.append(f"{e.code}: {e.message}")
            result.message = e.message
            return result

        client = await self._get_client()

        try:
            response = await client.post("/api/documents", json=prepared.to_payload())
            logger.debug("Upload response status: %s", response.status_code)

            if response.status_code in (200, 201):
                data = response.json()
                result.success = True
                result.document_id = data["documentId"]
                result.read_url = data.get("readUrl")
                result.deduplicated = bool(data.get("deduplicated", False))
                result.password = prepared.password
                result.message = "Document shared" if not result.deduplicated else "Existing document reused"
            else:
                error_msg = f"Failed to share document: {response.status_code}"
                detail = self._error_detail(response)
                if detail:
                    error_msg += f" - {detail}"
                result.errors.append(error_msg)
                result.message = error_msg

        except httpx.RequestError as e:
            logger.warning("Network error during upload: %s", e)
            result.errors.append(f"Network error: {str(e)}")
            result.message = "Network error during upload"

        return result

    async def fetch_document(self, document_id: str) -> tuple[Optional[dict[str, Any]], Optional[str]]:
        """
        Download an encrypted document.

        Returns:
            Tuple of (document_data, error_message)
        """
        client = await self._get_client()

        try:
            response = await client.get(f"/api/documents/{document_id}")

            if response.status_code == 200:
                return response.json(), None
            elif response.status_code == 404:
                return None, "Document not found"
            else:
                return None, f"Failed to fetch document: {response.status_code}"

        except httpx.RequestError as e:
            return None, f"Network error: {str(e)}"

    async def open_document(self, document_id: str, password: str) -> tuple[Optional[str], Optional[str]]:
        """
        Fetch a document and decrypt it locally.

        Returns:
            Tuple of (markdown, error_message)
        """
        data, error = await self.fetch_document(document_id)
        if data is None:
            return None, error

        try:
            sealed = SealedDocument.from_dict(data)
            params = KdfParams.from_dict(data["kdf"])
            markdown = await asyncio.to_thread(DocumentCipher.open, sealed, password, params)
        except SealdropError as e:
            return None, e.message
        except (KeyError, ValueError):
            return None, "Malformed document response"

        return markdown, None

    async def decrypt_remote(self, document_id: str, password: str) -> tuple[Optional[str], Optional[str]]:
        """
        Ask the server to decrypt a document.

        Returns:
            Tuple of (markdown, error_message)
        """
        client = await self._get_client()

        try:
            response = await client.post(
                f"/api/documents/{document_id}/decrypt",
                json={"password": password},
            )

            if response.status_code == 200:
                return response.json()["markdown"], None
            return None, self._error_detail(response) or f"Failed to decrypt: {response.status_code}"

        except httpx.RequestError as e:
            return None, f"Network error: {str(e)}"
