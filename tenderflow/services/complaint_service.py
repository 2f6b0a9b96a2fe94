"""Complaints: filing, case handling and the submitter's notifications."""

import logging
from typing import Any

from tenderflow.clock import Clock, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.exceptions import NotFoundError, ValidationError
from tenderflow.models import generate_id
from tenderflow.schemas import (
    Complaint,
    ComplaintComment,
    ComplaintCreate,
    ComplaintHistoryEntry,
    ComplaintStatus,
    User,
)

from .notification_service import NotificationService, deliver_safely
from .tender_service import EPOCH, TENDERS

logger = logging.getLogger(__name__)

COMPLAINTS = "complaints"


def _display_name(user: User) -> str | None:
    return user.name or user.email


class ComplaintService:
    """
    Complaints filed by suppliers, typically against an award while the
    standstill period is running.

    Every change appends to the complaint's history. The submitter is
    notified when the complaint is received and when its status changes.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        notifications: NotificationService,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.notifications = notifications
        self.clock = clock

    def _history(self, action: str, user: User, note: str) -> ComplaintHistoryEntry:
        return ComplaintHistoryEntry(
            action=action,
            timestamp=self.clock(),
            user_id=user.id,
            user_name=_display_name(user),
            note=note,
        )

    async def _save(self, complaint: Complaint, changes: dict[str, Any]) -> Complaint:
        await self.gateway.update(
            COMPLAINTS,
            complaint.id,
            changes,
            expected={"status": complaint.status, "updated_at": complaint.updated_at},
        )
        return complaint.model_copy(update=changes)

    # ============== Reads ==============

    async def get_complaint(self, complaint_id: str) -> Complaint:
        document = await self.gateway.get(COMPLAINTS, complaint_id) if complaint_id else None
        if not document:
            raise NotFoundError("Klage ikke funnet", complaint_id=complaint_id)
        return Complaint.model_validate(document)

    async def list_complaints(
        self,
        status: ComplaintStatus | None = None,
        category: str | None = None,
        priority: str | None = None,
        company_id: str | None = None,
        user_id: str | None = None,
        tender_id: str | None = None,
    ) -> list[Complaint]:
        """Complaints matching all given filters, newest first."""
        predicates: dict[str, Any] = {}
        if status:
            predicates["status"] = status
        if category:
            predicates["category"] = category
        if priority:
            predicates["priority"] = priority
        if company_id:
            predicates["submitted_by_company_id"] = company_id
        if user_id:
            predicates["submitted_by"] = user_id
        if tender_id:
            predicates["related_tender_id"] = tender_id

        complaints = [Complaint.model_validate(doc) for doc in await self.gateway.query(COMPLAINTS, predicates)]
        complaints.sort(key=lambda c: c.created_at or EPOCH, reverse=True)
        return complaints

    # ============== Case handling ==============

    async def create_complaint(self, data: ComplaintCreate, user: User) -> Complaint:
        title = data.title.strip()
        if not title:
            raise ValidationError("Tittel er påkrevd")
        description = data.description.strip()
        if not description:
            raise ValidationError("Beskrivelse er påkrevd")
        if data.related_tender_id and not await self.gateway.get(TENDERS, data.related_tender_id):
            raise NotFoundError("Anskaffelse ikke funnet", tender_id=data.related_tender_id)

        now = self.clock()
        complaint = Complaint(
            id=generate_id(),
            title=title,
            description=description,
            category=data.category or "general",
            priority=data.priority or "medium",
            submitted_by=user.id,
            submitted_by_company_id=user.company_id or user.id,
            submitted_by_name=_display_name(user),
            submitted_by_email=user.email,
            created_at=now,
            updated_at=now,
            related_tender_id=data.related_tender_id,
            related_project_id=data.related_project_id,
            related_contract_id=data.related_contract_id,
            history=[self._history("submitted", user, "Klage innsendt")],
        )
        await self.gateway.create(COMPLAINTS, complaint.model_dump())
        logger.info(f"Complaint {complaint.id} submitted by {user.id} (tender {complaint.related_tender_id})")

        await deliver_safely(
            self.notifications.notify_complaint_submitted(user.id, complaint),
            f"Complaint receipt for {user.id}",
        )
        return complaint

    async def update_complaint_status(
        self,
        complaint_id: str,
        status: ComplaintStatus | str,
        user: User,
        note: str | None = None,
    ) -> Complaint:
        try:
            status = ComplaintStatus(status)
        except ValueError:
            raise ValidationError("Ugyldig status", status=status) from None
        complaint = await self.get_complaint(complaint_id)

        now = self.clock()
        changes: dict[str, Any] = {"status": status, "updated_at": now}
        if status == ComplaintStatus.RESOLVED:
            changes["resolved_at"] = now
            changes["resolved_by"] = user.id
        changes["history"] = [
            *complaint.history,
            self._history(f"status_changed_to_{status.value}", user, note or f"Status endret til {status.value}"),
        ]
        complaint = await self._save(complaint, changes)
        logger.info(f"Complaint {complaint_id} set to {status.value} by {user.id}")

        await deliver_safely(
            self.notifications.notify_complaint_status_update(complaint.submitted_by, complaint, status),
            f"Complaint status notification for {complaint.submitted_by}",
        )
        return complaint

    async def add_complaint_resolution(self, complaint_id: str, resolution: str, user: User) -> Complaint:
        """Record the outcome. The complaint becomes ``resolved``."""
        text = (resolution or "").strip()
        if not text:
            raise ValidationError("Løsning er påkrevd")
        complaint = await self.get_complaint(complaint_id)

        now = self.clock()
        changes = {
            "resolution": text,
            "resolved_at": now,
            "resolved_by": user.id,
            "status": ComplaintStatus.RESOLVED,
            "updated_at": now,
            "history": [*complaint.history, self._history("resolution_added", user, "Løsning lagt til")],
        }
        complaint = await self._save(complaint, changes)
        logger.info(f"Complaint {complaint_id} resolved by {user.id}")

        await deliver_safely(
            self.notifications.notify_complaint_status_update(
                complaint.submitted_by, complaint, ComplaintStatus.RESOLVED
            ),
            f"Complaint resolution notification for {complaint.submitted_by}",
        )
        return complaint

    async def add_complaint_comment(self, complaint_id: str, comment: str, user: User) -> Complaint:
        text = (comment or "").strip()
        if not text:
            raise ValidationError("Kommentar er påkrevd")
        complaint = await self.get_complaint(complaint_id)

        now = self.clock()
        entry = ComplaintComment(
            text=text,
            user_id=user.id,
            user_name=_display_name(user),
            user_email=user.email,
            created_at=now,
        )
        changes = {
            "comments": [*complaint.comments, entry],
            "updated_at": now,
            "history": [*complaint.history, self._history("comment_added", user, "Kommentar lagt til")],
        }
        return await self._save(complaint, changes)

    async def assign_complaint(self, complaint_id: str, assignee_id: str | None, user: User) -> Complaint:
        """Assigning moves the complaint to ``in_progress``; ``None`` unassigns."""
        complaint = await self.get_complaint(complaint_id)

        if assignee_id:
            entry = self._history("assigned", user, f"Klage tildelt til {assignee_id}")
        else:
            entry = self._history("unassigned", user, "Tildeling fjernet")
        changes = {
            "assigned_to": assignee_id,
            "status": ComplaintStatus.IN_PROGRESS if assignee_id else complaint.status,
            "updated_at": self.clock(),
            "history": [*complaint.history, entry],
        }
        return await self._save(complaint, changes)
