"""
SQL-backed document store (SQLAlchemy).

One row per document using the logical column layout. Timestamps are
stored as fixed-width ISO-8601 UTC strings and compared as strings.
Blocking session work runs in a worker thread.
"""

import asyncio
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Integer, String, Text, create_engine, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker

from errors import DuplicateId
from .models import EncryptedDocument, to_iso

Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"
    id             = Column(String(32), primary_key=True)
    ciphertext_b64 = Column(Text, nullable=False)
    iv_b64         = Column(String(32), nullable=False)
    salt_b64       = Column(String(32), nullable=False)
    auth_tag_b64   = Column(String(32), nullable=False)
    kdf_algorithm  = Column(String(32), nullable=False)
    kdf_iterations = Column(Integer, nullable=False)
    kdf_key_length = Column(Integer, nullable=False)
    created_at_iso = Column(String(32), nullable=False, index=True)
    content_length = Column(Integer, nullable=False)
    dedupe_tag     = Column(String(64), nullable=False, default="", index=True)

    def as_dict(self) -> dict:
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}


class SqlDocumentStore:
    """DocumentStore over any SQLAlchemy database URL."""

    def __init__(self, database_url: str, **engine_kwargs):
        """
        Initialize the store and create the table if needed.

        Args:
            database_url: SQLAlchemy URL, e.g. ``sqlite:///data/documents.db``
            engine_kwargs: Extra arguments for ``create_engine``
        """
        if database_url.startswith("sqlite"):
            engine_kwargs.setdefault("connect_args", {"check_same_thread": False})
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)

    def dispose(self) -> None:
        self.engine.dispose()

    # Sync implementations -------------------------------------------------

    def _exists(self, document_id: str) -> bool:
        with self._sessions() as session:
            return session.get(DocumentRow, document_id) is not None

    def _get(self, document_id: str) -> Optional[EncryptedDocument]:
        with self._sessions() as session:
            row = session.get(DocumentRow, document_id)
            return EncryptedDocument.from_row(row.as_dict()) if row else None

    def _put(self, doc: EncryptedDocument) -> None:
        with self._sessions() as session:
            session.add(DocumentRow(**doc.to_row()))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise DuplicateId(doc.id) from None

    def _find_live_by_dedupe_tag(self, tag: str, not_before: datetime) -> Optional[EncryptedDocument]:
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.dedupe_tag == tag)
            .where(DocumentRow.created_at_iso > to_iso(not_before))
            .order_by(DocumentRow.created_at_iso.desc())
            .limit(1)
        )
        with self._sessions() as session:
            row = session.execute(stmt).scalars().first()
            return EncryptedDocument.from_row(row.as_dict()) if row else None

    def _delete_older_than(self, cutoff: datetime) -> int:
        stmt = delete(DocumentRow).where(DocumentRow.created_at_iso < to_iso(cutoff))
        with self._sessions() as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount or 0

    # DocumentStore ---------------------------------------------------------

    async def exists(self, document_id: str) -> bool:
        return await asyncio.to_thread(self._exists, document_id)

    async def get(self, document_id: str) -> Optional[EncryptedDocument]:
        return await asyncio.to_thread(self._get, document_id)

    async def put(self, doc: EncryptedDocument) -> None:
        await asyncio.to_thread(self._put, doc)

    async def find_live_by_dedupe_tag(self, tag: str, not_before: datetime) -> Optional[EncryptedDocument]:
        if not tag:
            return None
        return await asyncio.to_thread(self._find_live_by_dedupe_tag, tag, not_before)

    async def delete_older_than(self, cutoff: datetime) -> int:
        return await asyncio.to_thread(self._delete_older_than, cutoff)
