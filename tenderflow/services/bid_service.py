"""Bid submission."""

import logging
from functools import partial

from tenderflow.clock import Clock, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.exceptions import PolicyViolationError
from tenderflow.models import generate_id
from tenderflow.schemas import (
    Bid,
    BidCreate,
    BidDocument,
    FileUpload,
    InvitationStatus,
    NotificationType,
    TenderStatus,
    User,
)

from .email_service import EmailService
from .notification_service import NotificationService, deliver_safely
from .storage import BlobStorage, bid_document_path
from .tender_service import TENDERS, TenderService

logger = logging.getLogger(__name__)


class BidService:
    """Appends bids to open tenders and tells the tender owner."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        tenders: TenderService,
        notifications: NotificationService,
        email_service: EmailService,
        storage: BlobStorage,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.tenders = tenders
        self.notifications = notifications
        self.email_service = email_service
        self.storage = storage
        self.clock = clock

    async def submit_bid(
        self,
        tender_id: str,
        data: BidCreate,
        user: User,
        files: list[FileUpload] | None = None,
    ) -> Bid:
        """
        Submit a bid on an open tender.

        Attachments are uploaded before the bid is written. The matching
        invitation, if any, is marked ``submitted``.
        """
        tender = await self.tenders.get_tender(tender_id)
        if tender.status != TenderStatus.OPEN:
            raise PolicyViolationError(
                "Anskaffelsen tar ikke imot tilbud.", status=tender.status.value
            )

        bid_id = f"bid_{generate_id()}"
        documents = []
        for upload in files or []:
            blob = await self.storage.upload(upload, bid_document_path(tender_id, bid_id, upload.name))
            documents.append(BidDocument(
                name=blob.name,
                type=blob.type or "file",
                size=blob.size,
                url=blob.url,
                storage_path=blob.path,
            ))

        bid = Bid(
            id=bid_id,
            tender_id=tender_id,
            supplier_id=user.id,
            company_id=user.company_id,
            company_name=user.company_name or "",
            submitted_at=self.clock(),
            price=data.price,
            price_structure=data.price_structure or "fastpris",
            hourly_rate=data.hourly_rate,
            estimated_hours=data.estimated_hours,
            documents=documents,
            notes=data.notes,
        )

        invitations = [
            inv.model_copy(update={"status": InvitationStatus.SUBMITTED})
            if inv.matches(user.id, user.email) else inv
            for inv in tender.invited_suppliers
        ]

        await self.gateway.update(
            TENDERS,
            tender_id,
            {"bids": [*tender.bids, bid], "invited_suppliers": invitations},
            expected={"status": TenderStatus.OPEN},
        )
        logger.info(f"Bid {bid.id} submitted on tender {tender_id} by {user.id}")

        if tender.created_by:
            await deliver_safely(
                self.notifications.notify_new_bid(tender.created_by, tender, bid),
                f"New bid notification for tender {tender_id}",
            )
            result = await deliver_safely(
                self.notifications.send_email_gated(
                    tender.created_by,
                    NotificationType.NEW_BID,
                    partial(self.email_service.send_bid_submission_email, tender=tender, bid=bid),
                ),
                f"New bid email for tender {tender_id}",
            )
            if not result.success:
                logger.warning(f"New bid email for tender {tender_id} not delivered: {result.error}")

        return bid
