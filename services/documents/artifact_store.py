"""
Artifact Store & History Index

Persists rendered artifacts to blob storage and records each one in an
append-only history index.

Persist steps, in order:
    1. upload the bytes          (PersistError step=UploadFailed)
    2. resolve a retrieval URL   (PersistError step=UrlResolutionFailed)
    3. insert the index row      (PersistError step=IndexWriteFailed)

A failure after step 1 leaves the blob in place and unindexed. The error
carries its storage path so it can still be fetched with fetch_blob().
"""

import logging
from datetime import datetime
from typing import List, Optional

import pytz
from sqlalchemy.exc import SQLAlchemyError

from services.supabase_storage import generate_document_storage_path
from .exceptions import EntityNotFoundError, PersistError, PersistStep
from .types import DocumentType, HistoryEntry, RenderedArtifact

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 200


def _utc_naive(value: datetime) -> datetime:
    """Index timestamps are stored as naive UTC, like every other table."""
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


class SqlAlchemyHistoryIndex:
    """History index stored in the generated_documents table."""

    def add(self, entry: HistoryEntry) -> None:
        from models import db, GeneratedDocument

        row = GeneratedDocument(
            id=entry.document_id,
            company_id=entry.company_id,
            document_type=entry.document_type.value,
            title=entry.title,
            url=entry.url,
            storage_path=entry.storage_path,
            size_bytes=entry.size_bytes,
            created_at=entry.created_at
        )
        try:
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def list(self, owner: Optional[str] = None, document_type: Optional[DocumentType] = None,
             limit: int = DEFAULT_HISTORY_LIMIT) -> List[HistoryEntry]:
        from models import GeneratedDocument

        query = GeneratedDocument.query
        if owner is not None:
            query = query.filter_by(company_id=owner)
        if document_type is not None:
            query = query.filter_by(document_type=document_type.value)
        rows = query.order_by(
            GeneratedDocument.created_at.desc(),
            GeneratedDocument.id.desc()
        ).limit(limit).all()
        return [self._to_entry(row) for row in rows]

    def get(self, document_id: str, owner: str) -> Optional[HistoryEntry]:
        from models import GeneratedDocument

        row = GeneratedDocument.query.filter_by(id=document_id, company_id=owner).first()
        return self._to_entry(row) if row else None

    @staticmethod
    def _to_entry(row) -> HistoryEntry:
        return HistoryEntry(
            document_id=row.id,
            company_id=row.company_id,
            document_type=DocumentType(row.document_type),
            title=row.title,
            url=row.url,
            storage_path=row.storage_path,
            size_bytes=row.size_bytes,
            created_at=row.created_at
        )


class ArtifactStore:
    """
    Blob storage plus history index.

    Usage:
        store = ArtifactStore(SupabaseBlobStorage(bucket), SqlAlchemyHistoryIndex())
        entry = store.persist(artifact, owner=current_user.company_id)
    """

    def __init__(self, storage, index, default_limit: int = DEFAULT_HISTORY_LIMIT,
                 max_limit: int = MAX_HISTORY_LIMIT):
        self.storage = storage
        self.index = index
        self.default_limit = default_limit
        self.max_limit = max_limit

    def persist(self, artifact: RenderedArtifact, owner: str) -> HistoryEntry:
        """
        Store an artifact and index it. Every call creates a new entry.

        Raises:
            PersistError naming the step that failed
        """
        created_at = _utc_naive(artifact.created_at)
        storage_path = generate_document_storage_path(
            owner, artifact.document_type.value, artifact.document_id, created_at
        )

        try:
            self.storage.upload(storage_path, artifact.data, artifact.mime_type)
        except Exception as e:
            logger.exception(f"Upload failed for document {artifact.document_id} at {storage_path}")
            raise PersistError(
                f"Could not upload document {artifact.document_id}",
                step=PersistStep.UPLOAD
            ) from e

        try:
            url = self.storage.signed_url(storage_path)
        except Exception as e:
            logger.exception(f"URL resolution failed for {storage_path}; blob left unindexed")
            raise PersistError(
                f"Could not resolve a URL for document {artifact.document_id}",
                step=PersistStep.URL_RESOLUTION,
                storage_path=storage_path
            ) from e

        entry = HistoryEntry(
            document_id=artifact.document_id,
            company_id=owner,
            document_type=artifact.document_type,
            title=artifact.title,
            url=url,
            storage_path=storage_path,
            size_bytes=artifact.size_bytes,
            created_at=created_at
        )

        try:
            self.index.add(entry)
        except Exception as e:
            logger.exception(f"Index write failed for {storage_path}; blob left unindexed")
            raise PersistError(
                f"Could not record document {artifact.document_id} in history",
                step=PersistStep.INDEX_WRITE,
                storage_path=storage_path,
                url=url
            ) from e

        return entry

    def list_history(self, owner: Optional[str] = None, document_type: Optional[DocumentType] = None,
                     limit: Optional[int] = None) -> List[HistoryEntry]:
        """Entries newest first. `limit` is clamped to 1..max_limit."""
        if limit is None:
            limit = self.default_limit
        limit = max(1, min(int(limit), self.max_limit))
        return self.index.list(owner=owner, document_type=document_type, limit=limit)

    def get_entry(self, document_id: str, owner: str) -> Optional[HistoryEntry]:
        return self.index.get(document_id, owner)

    def _require_entry(self, document_id: str, owner: str) -> HistoryEntry:
        entry = self.index.get(document_id, owner)
        if entry is None:
            raise EntityNotFoundError('document', document_id)
        return entry

    def retrieve(self, document_id: str, owner: str) -> bytes:
        """Bytes of an indexed document."""
        entry = self._require_entry(document_id, owner)
        return self.storage.download(entry.storage_path)

    def fresh_url(self, document_id: str, owner: str) -> str:
        """Re-sign an indexed document's path; stored URLs expire."""
        entry = self._require_entry(document_id, owner)
        return self.storage.signed_url(entry.storage_path)

    def fetch_blob(self, storage_path: str) -> bytes:
        """Read a blob by direct reference, including unindexed ones left by a failed persist."""
        return self.storage.download(storage_path)
