"""SQLAlchemy models."""

from .base import Base, generate_id
from .document import StoredDocument

__all__ = [
    "Base",
    "StoredDocument",
    "generate_id",
]
