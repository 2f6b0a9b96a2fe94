"""Uploaded files and their version history."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


@dataclass
class FileUpload:
    """A file handed to the core for storage."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class StoredBlob:
    url: str
    path: str
    name: str
    size: int
    type: str


class DocumentChange(BaseModel):
    type: str  # created | modified | replaced
    field: str
    old_value: Any = None
    new_value: Any = None
    description: str = ""


class DocumentVersion(BaseModel):
    id: Optional[str] = None
    document_id: str
    version_number: int
    name: str
    url: Optional[str] = None
    storage_path: Optional[str] = None
    size: int = 0
    type: str = "file"
    context: str = "tender"
    context_id: Optional[str] = None
    uploaded_by: Optional[str] = None
    uploaded_by_name: Optional[str] = None
    uploaded_at: datetime
    change_reason: Optional[str] = None
    changes: list[DocumentChange] = Field(default_factory=list)
    is_current: bool = True
