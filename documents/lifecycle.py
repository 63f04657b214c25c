"""
Document lifecycle: create, read, decrypt and purge.

A submission moves through Validating -> Deduplicating -> AllocatingId ->
Persisting, exiting early with a typed error at any gate. The service keeps
no state of its own beyond pending background purges; the injected store is
the source of truth for uniqueness and liveness.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from errors import AllocationExhausted, DocumentNotFound, DuplicateId, ValidationError
from crypto.dedupe import DedupeTagger, content_fingerprint
from crypto.passphrase import DEFAULT_KDF_PARAMS, KdfParams, derive_content_password
from crypto.random_strings import generate_document_id, generate_password
from crypto.vault import DocumentCipher
from .models import EncryptedDocument, utcnow
from .store import DocumentStore
from .validation import (
    MAX_CONTENT_BYTES,
    validate_markdown,
    validate_password,
    validate_submission,
)

logger = logging.getLogger(__name__)

DEFAULT_EXPIRY = timedelta(hours=48)
MAX_ID_ATTEMPTS = 5


@dataclass(frozen=True)
class CreateOptions:
    """
    Options for the plaintext create flow.

    ``password`` and ``content_addressed`` are mutually exclusive: a
    content-addressed document always uses the content-derived password.
    """
    password: Optional[str] = None
    content_addressed: bool = False


@dataclass(frozen=True)
class PlaintextCreateResult:
    id: str
    password: str
    deduplicated: bool = False


@dataclass(frozen=True)
class EncryptedCreateResult:
    id: str
    deduplicated: bool = False


class DocumentService:
    """Orchestrates the encrypted document lifecycle."""

    def __init__(
        self,
        store: DocumentStore,
        tagger: DedupeTagger,
        kdf_params: KdfParams = DEFAULT_KDF_PARAMS,
        expiry: timedelta = DEFAULT_EXPIRY,
        max_content_bytes: int = MAX_CONTENT_BYTES,
        max_id_attempts: int = MAX_ID_ATTEMPTS,
        id_generator: Callable[[], str] = generate_document_id,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize the service.

        Args:
            store: Document store
            tagger: Dedupe tagger holding the server pepper
            kdf_params: KDF parameters recorded on new documents
            expiry: Age after which a document is no longer live
            max_content_bytes: Plaintext size limit
            max_id_attempts: Id candidates tried before giving up
            id_generator: Source of candidate ids
            clock: Returns the current UTC time
        """
        self.store = store
        self.tagger = tagger
        self.kdf_params = kdf_params
        self.expiry = expiry
        self.max_content_bytes = max_content_bytes
        self.max_id_attempts = max_id_attempts
        self._id_generator = id_generator
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    def _now(self) -> datetime:
        # Stored timestamps have millisecond precision
        now = self._clock()
        return now.replace(microsecond=now.microsecond // 1000 * 1000)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_from_plaintext(
        self, markdown: Any, options: Optional[CreateOptions] = None
    ) -> PlaintextCreateResult:
        """
        Encrypt plaintext server-side and store it.

        With ``content_addressed`` the password is derived from the content
        and an identical live document is returned instead of a new one.
        Otherwise the caller's password, or a fresh random one, is used.
        """
        options = options or CreateOptions()
        if options.content_addressed and options.password is not None:
            raise ValidationError(
                "invalid_format", "A password cannot be combined with content addressing."
            )
        text = validate_markdown(markdown, self.max_content_bytes)

        dedupe_tag = None
        if options.content_addressed:
            fingerprint = content_fingerprint(text)
            password = derive_content_password(fingerprint)
            dedupe_tag = self.tagger.tag(fingerprint)
            existing = await self._find_live_duplicate(dedupe_tag)
            if existing:
                self.schedule_purge()
                return PlaintextCreateResult(id=existing.id, password=password, deduplicated=True)
        elif options.password is not None:
            password = validate_password(options.password)
        else:
            password = generate_password()

        sealed = await asyncio.to_thread(DocumentCipher.seal, text, password, self.kdf_params)

        document_id = await self._insert(
            ciphertext=sealed.ciphertext,
            iv=sealed.iv,
            salt=sealed.salt,
            auth_tag=sealed.auth_tag,
            kdf=self.kdf_params,
            created_at=self._now(),
            content_length=len(text.encode("utf-8")),
            dedupe_tag=dedupe_tag,
        )

        self.schedule_purge()
        return PlaintextCreateResult(id=document_id, password=password)

    async def create_from_encrypted_payload(self, body: Any) -> EncryptedCreateResult:
        """
        Store a payload the client already encrypted with the content password.

        Args:
            body: Wire-format dict with ciphertextB64, ivB64, saltB64,
                authTagB64, contentHash and contentLength

        Returns:
            The new id, or the id of the newest live document with the same
            content flagged as deduplicated
        """
        submission = validate_submission(body, self.max_content_bytes)

        dedupe_tag = self.tagger.tag(submission.content_hash)
        existing = await self._find_live_duplicate(dedupe_tag)
        if existing:
            # The caller can rebuild the password from the content
            self.schedule_purge()
            return EncryptedCreateResult(id=existing.id, deduplicated=True)

        sealed = submission.sealed
        document_id = await self._insert(
            ciphertext=sealed.ciphertext,
            iv=sealed.iv,
            salt=sealed.salt,
            auth_tag=sealed.auth_tag,
            kdf=self.kdf_params,
            created_at=self._now(),
            content_length=submission.content_length,
            dedupe_tag=dedupe_tag,
        )

        self.schedule_purge()
        return EncryptedCreateResult(id=document_id)

    async def _find_live_duplicate(self, dedupe_tag: str) -> Optional[EncryptedDocument]:
        not_before = self._now() - self.expiry
        return await self.store.find_live_by_dedupe_tag(dedupe_tag, not_before)

    async def allocate_id(self) -> str:
        """
        Draw an id that no stored record uses.

        Raises:
            AllocationExhausted: After ``max_id_attempts`` collisions
        """
        for attempt in range(1, self.max_id_attempts + 1):
            candidate = self._id_generator()
            if not await self.store.exists(candidate):
                return candidate
            logger.warning("Document id collision (attempt %d/%d)", attempt, self.max_id_attempts)

        logger.error("Document id allocation exhausted after %d attempts", self.max_id_attempts)
        raise AllocationExhausted()

    async def _insert(self, **fields: Any) -> str:
        """
        Allocate an id and write the record under it.

        The existence check can race with another writer, so a DuplicateId
        from the store counts as a collision and a new id is drawn. Both
        kinds of collision share the ``max_id_attempts`` bound.
        """
        for attempt in range(1, self.max_id_attempts + 1):
            candidate = self._id_generator()
            if await self.store.exists(candidate):
                logger.warning("Document id collision (attempt %d/%d)", attempt, self.max_id_attempts)
                continue
            try:
                await self.store.put(EncryptedDocument(id=candidate, **fields))
            except DuplicateId:
                logger.warning("Document id taken before insert (attempt %d/%d)", attempt, self.max_id_attempts)
                continue
            return candidate

        logger.error("Document id allocation exhausted after %d attempts", self.max_id_attempts)
        raise AllocationExhausted()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def read_ciphertext(self, document_id: str) -> Optional[EncryptedDocument]:
        """Return the live document with this id, or None."""
        doc = await self.store.get(document_id)
        if doc is None or not doc.is_live(self._now(), self.expiry):
            return None
        return doc

    async def decrypt(self, document_id: str, password: Any) -> str:
        """
        Decrypt a stored document server-side.

        Raises:
            ValidationError: Missing password
            DocumentNotFound: Unknown, expired or purged id
            AuthFailure: Wrong password or corrupted data
        """
        password = validate_password(password)
        doc = await self.read_ciphertext(document_id)
        if doc is None:
            raise DocumentNotFound()
        return await asyncio.to_thread(DocumentCipher.open, doc.sealed, password, doc.kdf)

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    async def purge(self, now: Optional[datetime] = None) -> int:
        """Delete every record older than the expiry window. Returns the count."""
        cutoff = (now or self._now()) - self.expiry
        deleted = await self.store.delete_older_than(cutoff)
        if deleted:
            logger.info("Purged %d expired document(s)", deleted)
        return deleted

    def schedule_purge(self) -> None:
        """Run a purge in the background. Failures are logged, never raised."""
        task = asyncio.create_task(self.purge(self._now()))
        self._background.add(task)
        task.add_done_callback(self._on_purge_done)

    def _on_purge_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background purge failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for pending background purges."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
