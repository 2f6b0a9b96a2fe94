"""In-app notifications and preference-gated email fan-out."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tenderflow.clock import Clock, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.schemas import (
    Bid,
    Complaint,
    ComplaintStatus,
    Contract,
    DeliveryResult,
    InAppNotification,
    NotificationType,
    Question,
    Tender,
    User,
)

from .email_service import EmailService, days_text
from .preferences import NotificationPreferenceGate

logger = logging.getLogger(__name__)

EmailBuilder = Callable[[str], Awaitable[DeliveryResult]]


CONTRACT_UPDATE_MESSAGES = {
    "generated": "En kontrakt har blitt generert",
    "amended": "En kontrakt har blitt endret",
    "signed": "En kontrakt har blitt signert",
}

COMPLAINT_STATUS_MESSAGES = {
    ComplaintStatus.SUBMITTED: "Din klage har blitt mottatt",
    ComplaintStatus.IN_PROGRESS: "Din klage er under behandling",
    ComplaintStatus.RESOLVED: "Din klage har blitt løst",
    ComplaintStatus.CLOSED: "Din klage har blitt lukket",
    ComplaintStatus.REJECTED: "Din klage har blitt avvist",
}


async def deliver_safely(action: Awaitable[DeliveryResult], description: str) -> DeliveryResult:
    """Await a send; an unexpected exception becomes a failed result."""
    try:
        return await action
    except Exception as e:
        logger.warning(f"{description} failed: {e}")
        return DeliveryResult.failed(str(e) or e.__class__.__name__)


class NotificationService:
    """
    Delivers notifications to users.

    In-app notifications are documents in the ``notifications`` collection.
    Emails go through ``EmailService`` after the preference gate. Nothing
    here raises for a failed delivery; callers get a ``DeliveryResult``.
    """

    collection = "notifications"

    def __init__(
        self,
        gateway: PersistenceGateway,
        email_service: EmailService,
        gate: NotificationPreferenceGate,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.email_service = email_service
        self.gate = gate
        self.clock = clock

    # ============== In-app ==============

    async def create_notification(
        self,
        user_id: str | None,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
        action_url: str | None = None,
        skip_preference_check: bool = False,
    ) -> DeliveryResult:
        if not skip_preference_check and not await self.gate.should_send_in_app(user_id, notification_type):
            return DeliveryResult.skipped()
        if not user_id:
            return DeliveryResult.failed("User id is required")

        notification = InAppNotification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            metadata=metadata or {},
            action_url=action_url,
            created_at=self.clock(),
        )
        try:
            created = await self.gateway.create(self.collection, notification.model_dump(exclude={"id"}))
        except Exception as e:
            logger.warning(f"Could not create {notification_type.value} notification for {user_id}: {e}")
            return DeliveryResult.failed("Kunne ikke opprette varsel")
        return DeliveryResult.delivered(created["id"])

    async def get_notifications_for_user(
        self,
        user_id: str,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> list[InAppNotification]:
        """Newest first."""
        if not user_id:
            return []
        predicates: dict[str, Any] = {"user_id": user_id}
        if unread_only:
            predicates["read"] = False
        documents = await self.gateway.query(self.collection, predicates)
        notifications = [InAppNotification.model_validate(doc) for doc in documents]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications[:limit] if limit else notifications

    async def get_unread_count(self, user_id: str) -> int:
        return len(await self.get_notifications_for_user(user_id, unread_only=True))

    async def mark_as_read(self, notification_id: str) -> None:
        await self.gateway.update(self.collection, notification_id, {"read": True, "read_at": self.clock()})

    async def mark_all_as_read(self, user_id: str) -> int:
        unread = await self.get_notifications_for_user(user_id, unread_only=True)
        for notification in unread:
            await self.mark_as_read(notification.id)
        return len(unread)

    async def delete_notification(self, notification_id: str) -> None:
        await self.gateway.delete(self.collection, notification_id)

    # ============== Email ==============

    async def resolve_email(self, user_id: str | None) -> str | None:
        if not user_id:
            return None
        document = await self.gateway.get(self.gate.users_collection, user_id)
        if not document:
            return None
        return User.model_validate(document).email

    async def send_to_user(self, user_id: str | None, builder: EmailBuilder) -> DeliveryResult:
        """Look up the user's email address and hand it to ``builder``."""
        try:
            email = await self.resolve_email(user_id)
        except Exception as e:
            logger.warning(f"Could not resolve email for user {user_id}: {e}")
            return DeliveryResult.failed("Kunne ikke hente brukerens e-postadresse")
        if not email:
            return DeliveryResult.failed(f"No email address for user {user_id}")
        return await builder(email)

    async def send_email_gated(
        self,
        user_id: str | None,
        notification_type: NotificationType,
        builder: EmailBuilder,
        to_email: str | None = None,
    ) -> DeliveryResult:
        """
        Send an email if the recipient's preferences allow it.

        With ``to_email`` the address is used as given; otherwise it is
        resolved from the user profile.
        """
        if not await self.gate.should_send_email(user_id, notification_type):
            logger.info(f"Email {notification_type.value} to {user_id or to_email} blocked by preferences")
            return DeliveryResult.skipped()
        if to_email:
            return await builder(to_email)
        return await self.send_to_user(user_id, builder)

    # ============== Domain notifications ==============

    async def notify_tender_invitation(self, supplier_id: str, tender: Tender) -> DeliveryResult:
        return await self.create_notification(
            supplier_id,
            NotificationType.TENDER_INVITATION,
            "Ny invitasjon til anskaffelse",
            f'Du har blitt invitert til å gi tilbud på "{tender.title}"',
            metadata={"tender_id": tender.id, "tender_title": tender.title},
            action_url=f"/tenders/{tender.id}",
        )

    async def notify_new_bid(self, sender_id: str, tender: Tender, bid: Bid) -> DeliveryResult:
        return await self.create_notification(
            sender_id,
            NotificationType.NEW_BID,
            "Nytt tilbud mottatt",
            f'{bid.company_name or "En leverandør"} har sendt inn et tilbud på "{tender.title}"',
            metadata={
                "tender_id": tender.id,
                "bid_id": bid.id,
                "tender_title": tender.title,
                "company_name": bid.company_name,
            },
            action_url=f"/tenders/{tender.id}",
        )

    async def notify_deadline_reminder(self, user_id: str, tender: Tender, days_until_deadline: int) -> DeliveryResult:
        return await self.create_notification(
            user_id,
            NotificationType.DEADLINE_REMINDER,
            "Påminnelse om frist",
            f'Fristen for "{tender.title}" utløper om {days_text(days_until_deadline)}',
            metadata={
                "tender_id": tender.id,
                "tender_title": tender.title,
                "days_until_deadline": days_until_deadline,
            },
            action_url=f"/tenders/{tender.id}",
        )

    async def notify_question_asked(self, sender_id: str, tender: Tender, question: Question) -> DeliveryResult:
        return await self.create_notification(
            sender_id,
            NotificationType.QUESTION_ASKED,
            "Nytt spørsmål",
            f'{question.asked_by_company or "En leverandør"} har stilt et spørsmål om "{tender.title}"',
            metadata={"tender_id": tender.id, "question_id": question.id, "tender_title": tender.title},
            action_url=f"/tenders/{tender.id}",
        )

    async def notify_question_answered(self, supplier_id: str, tender: Tender, question: Question) -> DeliveryResult:
        return await self.create_notification(
            supplier_id,
            NotificationType.QUESTION_ANSWERED,
            "Spørsmål besvart",
            f'Ditt spørsmål om "{tender.title}" har blitt besvart',
            metadata={"tender_id": tender.id, "question_id": question.id, "tender_title": tender.title},
            action_url=f"/tenders/{tender.id}",
        )

    async def notify_contract_update(self, user_id: str, contract: Contract, update_type: str) -> DeliveryResult:
        """``update_type`` is one of generated, amended, signed."""
        signed = update_type == "signed"
        return await self.create_notification(
            user_id,
            NotificationType.CONTRACT_SIGNED if signed else NotificationType.CONTRACT_UPDATED,
            "Kontrakt signert" if signed else "Kontrakt oppdatert",
            CONTRACT_UPDATE_MESSAGES.get(update_type, "En kontrakt har blitt oppdatert"),
            metadata={"contract_id": contract.id, "tender_id": contract.tender_id, "update_type": update_type},
            action_url=f"/tenders/{contract.tender_id}/contract",
        )

    async def notify_complaint_submitted(self, user_id: str, complaint: Complaint) -> DeliveryResult:
        """Receipt to the submitter."""
        return await self.create_notification(
            user_id,
            NotificationType.COMPLAINT_SUBMITTED,
            "Klage innsendt",
            f'Din klage "{complaint.title}" har blitt innsendt og vil bli behandlet',
            metadata={"complaint_id": complaint.id, "complaint_title": complaint.title},
            action_url=f"/complaints/{complaint.id}",
        )

    async def notify_complaint_status_update(
        self, user_id: str, complaint: Complaint, status: ComplaintStatus
    ) -> DeliveryResult:
        return await self.create_notification(
            user_id,
            NotificationType.COMPLAINT_STATUS_UPDATE,
            "Klage status oppdatert",
            COMPLAINT_STATUS_MESSAGES.get(
                status, f'Status for "{complaint.title}" har blitt oppdatert til {status.value}'
            ),
            metadata={"complaint_id": complaint.id, "complaint_title": complaint.title, "status": status.value},
            action_url=f"/complaints/{complaint.id}",
        )
