"""Stored document model backing the collection-oriented gateway."""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .base import BaseModel


class StoredDocument(BaseModel):
    """
    One document in a named collection.

    Tenders, contracts, users, notifications, document versions and outbox
    entries all live here; ``data`` holds the JSON dump of the domain model.
    """

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )

    __table_args__ = (Index("ix_documents_collection_created", "collection", "created_at"),)

    def __repr__(self) -> str:
        return f"<StoredDocument(id={self.id}, collection={self.collection})>"
