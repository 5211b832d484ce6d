"""
Document store adapters.

The authorization core reads two collections (roles and role permission
overrides) and one settings document. Documents are plain JSON objects
addressed by (collection, key).
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from rolegate.core.logging import store_logger
from rolegate.db.database import async_session
from rolegate.db.models import DocumentRecord
from rolegate.permissions.exceptions import DocumentStoreError


@dataclass(frozen=True)
class Document:
    key: str
    data: Dict[str, Any] = field(default_factory=dict)


class DocumentStore:
    async def list_documents(self, collection: str) -> List[Document]:
        raise NotImplementedError

    async def get_document(self, collection: str, key: str) -> Optional[Document]:
        raise NotImplementedError

    async def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store. Set `available = False` to simulate an outage."""

    def __init__(self, collections: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {
            name: {key: dict(data) for key, data in docs.items()}
            for name, docs in (collections or {}).items()
        }
        self.available = True

    def _check(self, collection: str) -> None:
        if not self.available:
            raise DocumentStoreError(f"collection {collection} unavailable")

    async def list_documents(self, collection: str) -> List[Document]:
        self._check(collection)
        docs = self._collections.get(collection, {})
        return [Document(key, dict(data)) for key, data in docs.items()]

    async def get_document(self, collection: str, key: str) -> Optional[Document]:
        self._check(collection)
        data = self._collections.get(collection, {}).get(key)
        if data is None:
            return None
        return Document(key, dict(data))

    async def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._check(collection)
        docs = self._collections.setdefault(collection, {})
        if merge and key in docs:
            docs[key] = {**docs[key], **data}
        else:
            docs[key] = dict(data)

    def remove_document(self, collection: str, key: str) -> None:
        self._collections.get(collection, {}).pop(key, None)


class SqlDocumentStore(DocumentStore):
    """Documents kept in the `documents` table via SQLAlchemy's asyncio extension."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or async_session

    async def list_documents(self, collection: str) -> List[Document]:
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    select(DocumentRecord)
                    .where(DocumentRecord.collection == collection)
                    .order_by(DocumentRecord.key)
                )
                return [Document(r.key, dict(r.data or {})) for r in result.scalars().all()]
        except SQLAlchemyError as e:
            store_logger.error("list_documents failed", error=e, collection=collection)
            raise DocumentStoreError(f"could not list {collection}") from e

    async def get_document(self, collection: str, key: str) -> Optional[Document]:
        try:
            async with self._session_factory() as db:
                record = await self._find(db, collection, key)
                if record is None:
                    return None
                return Document(record.key, dict(record.data or {}))
        except SQLAlchemyError as e:
            store_logger.error("get_document failed", error=e, collection=collection, key=key)
            raise DocumentStoreError(f"could not read {collection}/{key}") from e

    async def set_document(self, collection: str, key: str, data: Dict[str, Any], merge: bool = False) -> None:
        try:
            async with self._session_factory() as db:
                record = await self._find(db, collection, key)
                if record is None:
                    db.add(DocumentRecord(collection=collection, key=key, data=dict(data)))
                elif merge:
                    # Reassign so the JSON column is flagged dirty
                    record.data = {**(record.data or {}), **data}
                else:
                    record.data = dict(data)
                await db.commit()
        except SQLAlchemyError as e:
            store_logger.error("set_document failed", error=e, collection=collection, key=key)
            raise DocumentStoreError(f"could not write {collection}/{key}") from e

    @staticmethod
    async def _find(db, collection: str, key: str) -> Optional[DocumentRecord]:
        result = await db.execute(
            select(DocumentRecord).where(
                DocumentRecord.collection == collection,
                DocumentRecord.key == key,
            )
        )
        return result.scalar_one_or_none()
