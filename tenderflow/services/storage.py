"""Blob storage for tender and bid attachments."""

import logging
import re
import time
from pathlib import Path
from typing import Protocol

from tenderflow.config import settings
from tenderflow.exceptions import DependencyError
from tenderflow.models import generate_id
from tenderflow.schemas import FileUpload, StoredBlob

logger = logging.getLogger(__name__)


def _safe_name(name: str) -> str:
    return re.sub(r"[^\w.\-]+", "_", name).strip("._") or "file"


def _stamp() -> str:
    """Unique prefix for an uploaded file name."""
    return f"{int(time.time() * 1000)}_{generate_id()[:8]}"


def tender_document_path(tender_id: str, file_name: str) -> str:
    return f"tenders/{tender_id}/documents/{_stamp()}_{_safe_name(file_name)}"


def bid_document_path(tender_id: str, bid_id: str, file_name: str) -> str:
    return f"tenders/{tender_id}/bids/{bid_id}/documents/{_stamp()}_{_safe_name(file_name)}"


class BlobStorage(Protocol):
    async def upload(self, upload: FileUpload, path: str) -> StoredBlob: ...

    async def delete(self, path: str) -> None: ...


class LocalBlobStorage:
    """Stores blobs under a local directory and serves them from ``/files``."""

    def __init__(self, root: str | Path | None = None, base_url: str | None = None):
        self.root = Path(root or settings.storage_root)
        self.base_url = (base_url if base_url is not None else settings.app_base_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root.resolve()):
            raise DependencyError("Ugyldig filsti.", path=path)
        return target

    async def upload(self, upload: FileUpload, path: str) -> StoredBlob:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(upload.content)
        except OSError as e:
            logger.error(f"Error uploading file {path}: {e}")
            raise DependencyError(f"Kunne ikke laste opp fil: {upload.name}") from e

        logger.debug(f"Stored {upload.size} bytes at {path}")
        return StoredBlob(
            url=f"{self.base_url}/files/{path}",
            path=path,
            name=upload.name,
            size=upload.size,
            type=upload.content_type,
        )

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except OSError as e:
            logger.error(f"Error deleting file {path}: {e}")
            raise DependencyError("Kunne ikke slette fil.", path=path) from e
