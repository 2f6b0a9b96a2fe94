"""Database module."""

from .gateway import Document, PersistenceGateway, SqlDocumentStore
from .session import AsyncSessionLocal, build_engine, build_session_factory, engine, get_db

__all__ = [
    "AsyncSessionLocal",
    "Document",
    "PersistenceGateway",
    "SqlDocumentStore",
    "build_engine",
    "build_session_factory",
    "engine",
    "get_db",
]
