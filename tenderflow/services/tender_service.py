"""Tender lifecycle: drafting, publishing, invitations, Q&A and documents."""

import logging
from datetime import datetime, timezone
from functools import partial
from typing import Any

from tenderflow.clock import Clock, ensure_aware, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.exceptions import (
    ConflictError,
    NotFoundError,
    PolicyViolationError,
    ValidationError,
)
from tenderflow.models import generate_id
from tenderflow.schemas import (
    FanoutReport,
    FileUpload,
    Invitation,
    InvitationCreate,
    InvitationStatus,
    NotificationType,
    Question,
    Tender,
    TenderCreate,
    TenderDocument,
    TenderStatus,
    User,
)

from .document_versioning import DocumentVersioningService
from .email_service import EmailService
from .notification_service import NotificationService, deliver_safely
from .storage import BlobStorage, tender_document_path

logger = logging.getLogger(__name__)

TENDERS = "tenders"
EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class TenderService:
    """
    Owns tender state transitions other than award.

    Lifecycle: draft -> open <-> closed, then awarded via ``AwardService``.
    Notification side effects never fail the operation that triggered them.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        notifications: NotificationService,
        email_service: EmailService,
        storage: BlobStorage,
        versioning: DocumentVersioningService,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.notifications = notifications
        self.email_service = email_service
        self.storage = storage
        self.versioning = versioning
        self.clock = clock

    # ============== Reads ==============

    async def get_tender(self, tender_id: str) -> Tender:
        document = await self.gateway.get(TENDERS, tender_id) if tender_id else None
        if not document:
            raise NotFoundError("Anskaffelse ikke funnet", tender_id=tender_id)
        return Tender.model_validate(document)

    async def list_tenders(
        self,
        status: TenderStatus | None = None,
        project_id: str | None = None,
        created_by: str | None = None,
    ) -> list[Tender]:
        """Tenders matching all given filters, newest first."""
        predicates: dict[str, Any] = {}
        if status:
            predicates["status"] = status
        if project_id:
            predicates["project_id"] = project_id
        if created_by:
            predicates["created_by"] = created_by

        tenders = [Tender.model_validate(doc) for doc in await self.gateway.query(TENDERS, predicates)]
        tenders.sort(key=lambda t: ensure_aware(t.created_at) if t.created_at else EPOCH, reverse=True)
        return tenders

    async def get_invitations_for_supplier(self, supplier_id: str | None, email: str | None = None) -> list[Tender]:
        """Published tenders the supplier is invited to, by id or email."""
        tenders = await self.list_tenders()
        return [
            tender for tender in tenders
            if tender.status != TenderStatus.DRAFT
            and any(inv.matches(supplier_id, email) for inv in tender.invited_suppliers)
        ]

    # ============== Create / publish ==============

    async def create_tender(self, data: TenderCreate, user: User) -> Tender:
        title = data.title.strip()
        if not title:
            raise ValidationError("Tittel er påkrevd.")
        if data.deadline is None:
            raise ValidationError("Frist er påkrevd.")
        if data.status not in (TenderStatus.DRAFT, TenderStatus.OPEN):
            raise ValidationError(
                "En ny anskaffelse må opprettes som utkast eller åpen.", status=data.status.value
            )

        now = self.clock()
        invitations = [
            inv.model_copy(update={
                "invited_at": inv.invited_at or now,
                "status": inv.status or InvitationStatus.INVITED,
            })
            for inv in data.invited_suppliers
        ]

        tender = Tender(
            id=generate_id(),
            project_id=data.project_id,
            title=title,
            description=data.description.strip(),
            contract_standard=data.contract_standard,
            standard_terms=data.standard_terms,
            created_by=user.id,
            created_at=now,
            deadline=data.deadline,
            publish_date=data.publish_date,
            question_deadline=data.question_deadline,
            price=data.price,
            entrepriseform=data.entrepriseform,
            cpv=data.cpv,
            evaluation_criteria=data.evaluation_criteria,
            status=data.status,
            invited_suppliers=invitations,
            invited_supplier_ids=[inv.supplier_id for inv in invitations if inv.supplier_id],
        )
        await self.gateway.create(TENDERS, tender.model_dump())
        logger.info(f"Created tender {tender.id} ({tender.status.value}) by {user.id}")

        if tender.status != TenderStatus.DRAFT:
            await self._send_invitation_emails(tender)
        return tender

    async def publish_tender(self, tender_id: str) -> tuple[Tender, FanoutReport]:
        """Move a draft to open and email every invited supplier."""
        tender = await self.get_tender(tender_id)
        if tender.status != TenderStatus.DRAFT:
            raise PolicyViolationError("Bare utkast kan publiseres.", status=tender.status.value)

        now = self.clock()
        await self.gateway.update(
            TENDERS,
            tender_id,
            {"status": TenderStatus.OPEN, "publish_date": tender.publish_date or now},
            expected={"status": TenderStatus.DRAFT},
        )
        tender = tender.model_copy(update={"status": TenderStatus.OPEN, "publish_date": tender.publish_date or now})
        logger.info(f"Published tender {tender_id}")

        report = await self._send_invitation_emails(tender)
        return tender, report

    async def _send_invitation_emails(self, tender: Tender) -> FanoutReport:
        report = FanoutReport()
        for invitation in tender.invited_suppliers:
            if not invitation.email:
                continue
            result = await self._email_invitation(tender, invitation)
            report.record(invitation.email, result, supplier_id=invitation.supplier_id)

        if report.failed:
            logger.warning(f"Invitation emails for tender {tender.id}: {report.failed} failed")
        return report

    async def _email_invitation(self, tender: Tender, invitation: Invitation):
        builder = partial(
            self.email_service.send_tender_invitation_email,
            tender=tender,
            supplier_name=invitation.company_name or None,
        )
        return await deliver_safely(
            self.notifications.send_email_gated(
                invitation.supplier_id,
                NotificationType.TENDER_INVITATION,
                builder,
                to_email=invitation.email,
            ),
            f"Invitation email to {invitation.email}",
        )

    # ============== Open / close ==============

    async def close_tender(self, tender_id: str) -> Tender:
        tender = await self.get_tender(tender_id)
        if tender.status == TenderStatus.CLOSED:
            return tender
        if tender.status != TenderStatus.OPEN:
            raise PolicyViolationError(
                "Bare åpne anskaffelser kan lukkes.", status=tender.status.value
            )

        await self.gateway.update(
            TENDERS, tender_id, {"status": TenderStatus.CLOSED}, expected={"status": TenderStatus.OPEN}
        )
        logger.info(f"Closed tender {tender_id}")
        return tender.model_copy(update={"status": TenderStatus.CLOSED})

    async def reopen_tender(self, tender_id: str) -> Tender:
        tender = await self.get_tender(tender_id)
        if tender.status == TenderStatus.OPEN:
            return tender
        if tender.status != TenderStatus.CLOSED:
            raise PolicyViolationError(
                "Bare lukkede anskaffelser kan åpnes igjen.", status=tender.status.value
            )

        await self.gateway.update(
            TENDERS, tender_id, {"status": TenderStatus.OPEN}, expected={"status": TenderStatus.CLOSED}
        )
        logger.info(f"Reopened tender {tender_id}")
        return tender.model_copy(update={"status": TenderStatus.OPEN})

    async def close_expired_tenders(self, created_by: str | None = None) -> dict:
        """
        Close every open tender whose deadline has passed.

        Safe to run repeatedly: a tender already closed is not touched again.

        Returns:
            ``{"closed": int, "errors": [{"tender_id", "error"}]}``
        """
        now = self.clock()
        closed = 0
        errors: list[dict] = []

        for tender in await self.list_tenders(status=TenderStatus.OPEN, created_by=created_by):
            if tender.deadline is None or ensure_aware(tender.deadline) >= now:
                continue
            try:
                await self.gateway.update(
                    TENDERS, tender.id, {"status": TenderStatus.CLOSED}, expected={"status": TenderStatus.OPEN}
                )
                closed += 1
                logger.info(f"Closed expired tender {tender.id} (deadline {tender.deadline})")
            except ConflictError:
                logger.debug(f"Tender {tender.id} changed during sweep, skipped")
            except Exception as e:
                logger.error(f"Error closing tender {tender.id}: {e}")
                errors.append({"tender_id": tender.id, "error": str(e)})

        return {"closed": closed, "errors": errors}

    async def delete_tender(self, tender_id: str) -> None:
        """Hard delete. Operator action only."""
        await self.get_tender(tender_id)
        await self.gateway.delete(TENDERS, tender_id)
        logger.warning(f"Deleted tender {tender_id}")

    # ============== Invitations ==============

    async def invite_supplier(self, tender_id: str, data: InvitationCreate) -> Tender:
        """
        Add or update an invitation.

        An existing entry is matched by supplier id or email; updating it
        keeps ``invited_at``, ``status`` and ``viewed_at``. A new entry on a
        published tender triggers one in-app notification and one email.
        """
        if not data.supplier_id and not data.email:
            raise ValidationError("Leverandør eller e-post er påkrevd.")

        tender = await self.get_tender(tender_id)
        invitations = list(tender.invited_suppliers)
        supplier_ids = list(tender.invited_supplier_ids)
        index = next(
            (i for i, inv in enumerate(invitations) if inv.matches(data.supplier_id, data.email)),
            None,
        )

        if index is not None:
            current = invitations[index]
            invitations[index] = current.model_copy(update={
                "supplier_id": data.supplier_id or current.supplier_id,
                "company_id": data.company_id or current.company_id,
                "company_name": data.company_name or current.company_name,
                "org_number": data.org_number or current.org_number,
                "email": data.email or current.email,
            })
            invitation = invitations[index]
        else:
            invitation = Invitation(**data.model_dump(), invited_at=self.clock(), status=InvitationStatus.INVITED)
            invitations.append(invitation)

        if invitation.supplier_id and invitation.supplier_id not in supplier_ids:
            supplier_ids.append(invitation.supplier_id)

        await self.gateway.update(
            TENDERS, tender_id, {"invited_suppliers": invitations, "invited_supplier_ids": supplier_ids}
        )
        tender = tender.model_copy(update={"invited_suppliers": invitations, "invited_supplier_ids": supplier_ids})

        is_new = index is None
        action = "Invited" if is_new else "Updated invitation for"
        logger.info(f"{action} {invitation.email or invitation.supplier_id} on tender {tender_id}")

        if is_new and tender.status != TenderStatus.DRAFT:
            if invitation.supplier_id:
                await deliver_safely(
                    self.notifications.notify_tender_invitation(invitation.supplier_id, tender),
                    f"Invitation notification to {invitation.supplier_id}",
                )
            if invitation.email:
                await self._email_invitation(tender, invitation)

        return tender

    async def mark_invitation_viewed(self, tender_id: str, supplier_id: str | None, email: str | None = None) -> Tender:
        """First view of a tender by an invited supplier."""
        tender = await self.get_tender(tender_id)
        invitations = list(tender.invited_suppliers)
        for i, inv in enumerate(invitations):
            if inv.matches(supplier_id, email) and inv.status == InvitationStatus.INVITED:
                invitations[i] = inv.model_copy(update={"status": InvitationStatus.VIEWED, "viewed_at": self.clock()})
                await self.gateway.update(TENDERS, tender_id, {"invited_suppliers": invitations})
                return tender.model_copy(update={"invited_suppliers": invitations})
        return tender

    # ============== Questions ==============

    async def ask_question(self, tender_id: str, text: str, user: User) -> Question:
        tender = await self.get_tender(tender_id)
        if tender.status == TenderStatus.DRAFT:
            raise PolicyViolationError(
                "Du kan ikke stille spørsmål før anskaffelsen er publisert."
            )
        if not text or not text.strip():
            raise ValidationError("Spørsmålet kan ikke være tomt.")

        question = Question(
            tender_id=tender_id,
            question=text.strip(),
            asked_by=user.id,
            asked_by_company=user.company_name or "",
            asked_at=self.clock(),
        )
        await self.gateway.update(TENDERS, tender_id, {"qa": [*tender.qa, question]})

        if tender.created_by:
            await deliver_safely(
                self.notifications.notify_question_asked(tender.created_by, tender, question),
                f"Question notification for tender {tender_id}",
            )
        return question

    async def answer_question(self, tender_id: str, question_id: str, answer: str, user: User) -> Question:
        tender = await self.get_tender(tender_id)
        if tender.status == TenderStatus.DRAFT:
            raise PolicyViolationError(
                "Du kan ikke besvare spørsmål før anskaffelsen er publisert."
            )
        if not answer or not answer.strip():
            raise ValidationError("Svaret kan ikke være tomt.")

        qa = list(tender.qa)
        index = next((i for i, q in enumerate(qa) if q.id == question_id), None)
        if index is None:
            raise NotFoundError("Spørsmål ikke funnet", question_id=question_id)

        answered = qa[index].model_copy(update={
            "answer": answer.strip(),
            "answered_by": user.id,
            "answered_at": self.clock(),
        })
        qa[index] = answered
        await self.gateway.update(TENDERS, tender_id, {"qa": qa})

        if answered.asked_by:
            await deliver_safely(
                self.notifications.notify_question_answered(answered.asked_by, tender, answered),
                f"Answer notification for question {question_id}",
            )
        return answered

    # ============== Documents ==============

    async def add_documents(self, tender_id: str, files: list[FileUpload], user: User) -> list[TenderDocument]:
        """
        Upload files and record a new version for each.

        A file with the same name as an existing document becomes a new
        version of that document instead of a new entry.
        """
        tender = await self.get_tender(tender_id)
        documents = list(tender.documents)

        for upload in files:
            blob = await self.storage.upload(upload, tender_document_path(tender_id, upload.name))
            index = next((i for i, doc in enumerate(documents) if doc.name == upload.name), None)
            document_id = documents[index].id if index is not None else f"doc_{generate_id()}"

            await self.versioning.create_version(
                document_id,
                blob,
                user,
                context="tender",
                context_id=tender_id,
                change_reason="Dokument oppdatert" if index is not None else "Dokument opprettet",
            )

            document = TenderDocument(
                id=document_id,
                name=blob.name,
                type=blob.type or ("pdf" if upload.name.lower().endswith(".pdf") else "file"),
                size=blob.size,
                url=blob.url,
                storage_path=blob.path,
                uploaded_at=self.clock(),
                uploaded_by=user.id,
            )
            if index is not None:
                documents[index] = document
            else:
                documents.append(document)

        await self.gateway.update(TENDERS, tender_id, {"documents": documents})
        logger.info(f"Added {len(files)} document(s) to tender {tender_id}")
        return documents

    async def remove_document(self, tender_id: str, document_id: str) -> Tender:
        """Remove a document. A failing blob delete is logged, not raised."""
        tender = await self.get_tender(tender_id)
        document = next((doc for doc in tender.documents if doc.id == document_id), None)
        if document is None:
            raise NotFoundError("Dokument ikke funnet", document_id=document_id)

        if document.storage_path:
            try:
                await self.storage.delete(document.storage_path)
            except Exception as e:
                logger.warning(f"Error deleting file {document.storage_path} from storage: {e}")

        documents = [doc for doc in tender.documents if doc.id != document_id]
        await self.gateway.update(TENDERS, tender_id, {"documents": documents})
        return tender.model_copy(update={"documents": documents})
