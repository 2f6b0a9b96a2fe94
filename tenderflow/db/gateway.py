"""Collection-oriented persistence gateway.

The lifecycle services never touch SQLAlchemy directly. They talk to a
``PersistenceGateway``: get/query/create/update/delete over named
collections, with documents exchanged as plain dicts. Instants are written
as ISO-8601 strings and parsed back by the pydantic schemas.
"""

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from typing import Any, Protocol

from pydantic_core import to_jsonable_python
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenderflow.exceptions import ConflictError, DependencyError, NotFoundError
from tenderflow.models import StoredDocument, generate_id

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class PersistenceGateway(Protocol):
    """Document store contract consumed by the core."""

    async def get(self, collection: str, doc_id: str) -> Document | None: ...

    async def query(
        self, collection: str, predicates: Mapping[str, Any] | None = None
    ) -> list[Document]: ...

    async def create(self, collection: str, data: Mapping[str, Any]) -> Document: ...

    async def update(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> Document: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...


class SqlDocumentStore:
    """PersistenceGateway backed by the ``documents`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str, collection: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(f"Document store {operation} on '{collection}' failed: {e}")
            raise DependencyError(f"Kunne ikke lese eller lagre data ({collection}).") from e

    @staticmethod
    def _to_dict(row: StoredDocument) -> Document:
        return {**row.data, "id": row.id}

    @staticmethod
    def _encode(data: Mapping[str, Any]) -> dict[str, Any]:
        payload = to_jsonable_python(dict(data))
        payload.pop("id", None)
        return payload

    async def get(self, collection: str, doc_id: str) -> Document | None:
        if not doc_id:
            return None
        async with self._session("get", collection) as session:
            row = await session.get(StoredDocument, doc_id)
            if row is None or row.collection != collection:
                return None
            return self._to_dict(row)

    async def query(
        self, collection: str, predicates: Mapping[str, Any] | None = None
    ) -> list[Document]:
        """
        Equality query over top-level fields.

        String and boolean predicates are pushed down to SQL; anything else is
        matched in memory. Result order is unspecified.
        """
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        in_memory: dict[str, Any] = {}

        for field, value in to_jsonable_python(dict(predicates or {})).items():
            element = StoredDocument.data[field]
            if isinstance(value, bool):
                stmt = stmt.where(element.as_boolean() == value)
            elif isinstance(value, str):
                stmt = stmt.where(element.as_string() == value)
            else:
                in_memory[field] = value

        async with self._session("query", collection) as session:
            result = await session.execute(stmt)
            documents = [self._to_dict(row) for row in result.scalars().all()]

        return [
            doc for doc in documents
            if all(doc.get(key) == value for key, value in in_memory.items())
        ]

    async def create(self, collection: str, data: Mapping[str, Any]) -> Document:
        doc_id = data.get("id") or generate_id()
        payload = self._encode(data)
        async with self._session("create", collection) as session:
            session.add(StoredDocument(id=doc_id, collection=collection, data=payload))
            await session.commit()
        logger.debug(f"Created {collection}/{doc_id}")
        return {**payload, "id": doc_id}

    async def update(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        expected: Mapping[str, Any] | None = None,
    ) -> Document:
        """
        Merge ``data`` into the stored document.

        When ``expected`` is given, every listed field must still hold the
        given value at write time, otherwise ``ConflictError`` is raised and
        nothing is written.
        """
        async with self._session("update", collection) as session:
            result = await session.execute(
                select(StoredDocument)
                .where(StoredDocument.id == doc_id, StoredDocument.collection == collection)
                .with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFoundError(f"Dokumentet finnes ikke ({collection}).", doc_id=doc_id)

            if expected:
                current = dict(row.data)
                for key, value in to_jsonable_python(dict(expected)).items():
                    if current.get(key) != value:
                        await session.rollback()
                        raise ConflictError(field=key, expected=value, actual=current.get(key))

            row.data = {**row.data, **self._encode(data)}
            await session.commit()
            return self._to_dict(row)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._session("delete", collection) as session:
            await session.execute(
                delete(StoredDocument).where(
                    StoredDocument.id == doc_id,
                    StoredDocument.collection == collection,
                )
            )
            await session.commit()
