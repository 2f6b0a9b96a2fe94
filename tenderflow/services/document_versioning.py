"""Version history for uploaded documents."""

import logging

from tenderflow.clock import Clock, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.schemas import DocumentChange, DocumentVersion, StoredBlob, User

logger = logging.getLogger(__name__)


def format_file_size(size: int | None) -> str:
    if not size:
        return "0 B"
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def calculate_changes(previous: DocumentVersion, blob: StoredBlob) -> list[DocumentChange]:
    """Field-level differences between the last version and a new upload."""
    changes = []

    if previous.name != blob.name:
        changes.append(DocumentChange(
            type="modified",
            field="name",
            old_value=previous.name,
            new_value=blob.name,
            description=f'Navn endret fra "{previous.name}" til "{blob.name}"',
        ))

    if previous.size != blob.size:
        changes.append(DocumentChange(
            type="modified",
            field="size",
            old_value=format_file_size(previous.size),
            new_value=format_file_size(blob.size),
            description=(
                f"Størrelse endret fra {format_file_size(previous.size)} "
                f"til {format_file_size(blob.size)}"
            ),
        ))

    if previous.type != blob.type:
        changes.append(DocumentChange(
            type="modified",
            field="type",
            old_value=previous.type,
            new_value=blob.type,
            description=f"Filtype endret fra {previous.type} til {blob.type}",
        ))

    if previous.url != blob.url or previous.storage_path != blob.path:
        changes.append(DocumentChange(
            type="replaced",
            field="file",
            old_value=previous.url,
            new_value=blob.url,
            description="Fil erstattet med ny versjon",
        ))

    return changes


class DocumentVersioningService:
    """Keeps one version chain per logical document id in ``document_versions``."""

    collection = "document_versions"

    def __init__(self, gateway: PersistenceGateway, clock: Clock = utcnow):
        self.gateway = gateway
        self.clock = clock

    async def get_versions(self, document_id: str) -> list[DocumentVersion]:
        """Newest version first."""
        documents = await self.gateway.query(self.collection, {"document_id": document_id})
        versions = [DocumentVersion.model_validate(doc) for doc in documents]
        versions.sort(key=lambda v: v.version_number, reverse=True)
        return versions

    async def get_current_version(self, document_id: str) -> DocumentVersion | None:
        return next((v for v in await self.get_versions(document_id) if v.is_current), None)

    async def create_version(
        self,
        document_id: str,
        blob: StoredBlob,
        user: User | None,
        context: str,
        context_id: str | None,
        change_reason: str | None = None,
    ) -> DocumentVersion:
        """
        Append a version and make it current.

        The first version records a single ``created`` change; later ones
        record the differences from the previous current version.
        """
        existing = await self.get_versions(document_id)

        if existing:
            changes = calculate_changes(existing[0], blob)
        else:
            changes = [DocumentChange(
                type="created",
                field="document",
                new_value=blob.name,
                description="Dokument opprettet",
            )]

        version = DocumentVersion(
            document_id=document_id,
            version_number=len(existing) + 1,
            name=blob.name,
            url=blob.url,
            storage_path=blob.path,
            size=blob.size,
            type=blob.type,
            context=context,
            context_id=context_id,
            uploaded_by=user.id if user else None,
            uploaded_by_name=(user.name or user.email) if user else None,
            uploaded_at=self.clock(),
            change_reason=change_reason,
            changes=changes,
            is_current=True,
        )

        for previous in existing:
            if previous.is_current:
                await self.gateway.update(self.collection, previous.id, {"is_current": False})

        created = await self.gateway.create(self.collection, version.model_dump(exclude={"id"}))
        logger.info(f"Document {document_id} now at version {version.version_number}")
        return DocumentVersion.model_validate(created)
