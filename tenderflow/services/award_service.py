"""Awarding a tender and the standstill period that follows."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from tenderflow.clock import Clock, ensure_aware, local_zone, utcnow
from tenderflow.config import settings
from tenderflow.db import PersistenceGateway
from tenderflow.exceptions import ConflictError, NotFoundError, PolicyViolationError
from tenderflow.schemas import (
    AwardedTo,
    AwardLetter,
    Bid,
    BidStatus,
    DeliveryResult,
    FanoutReport,
    Project,
    Tender,
    TenderStatus,
    User,
)

from .email_service import EmailService
from .notification_service import deliver_safely
from .tender_service import TENDERS, TenderService

logger = logging.getLogger(__name__)

PROJECTS = "projects"
USERS = "users"


def calculate_standstill_end_date(award_date: datetime, days: int | None = None) -> datetime:
    """
    Last instant of the standstill period.

    ``days`` calendar days after the award date in the local timezone, at
    23:59:59.999 of that day.
    """
    if days is None:
        days = settings.standstill_period_days
    local = ensure_aware(award_date).astimezone(local_zone())
    end = local + timedelta(days=days)
    return end.replace(hour=23, minute=59, second=59, microsecond=999000)


def is_standstill_over(end_date: datetime | None, now: datetime | None = None) -> bool:
    """A tender without a standstill end date is treated as past standstill."""
    if end_date is None:
        return True
    return (now or utcnow()) >= ensure_aware(end_date)


def remaining_standstill_days(end_date: datetime | None, now: datetime | None = None) -> int | None:
    if end_date is None:
        return None
    now = now or utcnow()
    end = ensure_aware(end_date)
    if now >= end:
        return 0
    return math.ceil((end - now).total_seconds() / 86400)


@dataclass
class AwardOutcome:
    tender: Tender
    award_letter: AwardLetter
    report: FanoutReport


class AwardService:
    """Picks the winning bid, rejects the rest and starts the standstill period."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        tenders: TenderService,
        email_service: EmailService,
        clock: Clock = utcnow,
        standstill_period_days: int | None = None,
    ):
        self.gateway = gateway
        self.tenders = tenders
        self.email_service = email_service
        self.clock = clock
        self.standstill_period_days = (
            settings.standstill_period_days if standstill_period_days is None else standstill_period_days
        )

    def build_award_letter(
        self,
        tender: Tender,
        bid: Bid,
        project: Project | None,
        award_date: datetime,
    ) -> AwardLetter:
        return AwardLetter(
            tender_id=tender.id,
            bid_id=bid.id,
            project_id=project.id if project else tender.project_id,
            awarded_to=AwardedTo(
                company_id=bid.company_id,
                company_name=bid.company_name,
                supplier_id=bid.supplier_id,
            ),
            awarded_at=award_date,
            standstill_start_date=award_date,
            standstill_end_date=calculate_standstill_end_date(award_date, self.standstill_period_days),
            standstill_period_days=self.standstill_period_days,
            contract_standard=tender.contract_standard,
            price=bid.price,
            price_structure=bid.price_structure,
            generated_at=self.clock(),
        )

    async def award_tender(self, tender_id: str, bid_id: str, project: Project | None = None) -> AwardOutcome:
        """
        Award ``bid_id`` and reject every other bid.

        The tender write is conditional on the tender not having changed
        status or been awarded since it was read. Emails to the winner and
        the rejected bidders are sent afterwards; their failures end up in
        the returned report and never undo the award.
        """
        tender = await self.tenders.get_tender(tender_id)
        if tender.status == TenderStatus.DRAFT:
            raise PolicyViolationError("En anskaffelse i utkast kan ikke tildeles.")
        if tender.status == TenderStatus.AWARDED or tender.awarded_bid_id:
            raise ConflictError("Anskaffelsen er allerede tildelt.", awarded_bid_id=tender.awarded_bid_id)

        winner = tender.find_bid(bid_id)
        if winner is None:
            raise NotFoundError("Tilbud ikke funnet", bid_id=bid_id)

        if project is None:
            project = await self._load_project(tender.project_id)

        award_date = self.clock()
        letter = self.build_award_letter(tender, winner, project, award_date)

        bids = []
        for bid in tender.bids:
            if bid.id == bid_id:
                bids.append(bid.model_copy(update={"status": BidStatus.AWARDED}))
            elif bid.status != BidStatus.REJECTED:
                bids.append(bid.model_copy(update={"status": BidStatus.REJECTED}))
            else:
                bids.append(bid)

        changes = {
            "status": TenderStatus.AWARDED,
            "awarded_bid_id": bid_id,
            "awarded_at": award_date,
            "standstill_start_date": letter.standstill_start_date,
            "standstill_end_date": letter.standstill_end_date,
            "award_letter": letter,
            "bids": bids,
        }
        await self.gateway.update(
            TENDERS,
            tender_id,
            changes,
            expected={"status": tender.status, "awarded_bid_id": None},
        )
        tender = tender.model_copy(update=changes)
        logger.info(
            f"Tender {tender_id} awarded to bid {bid_id}, standstill until {letter.standstill_end_date}"
        )

        report = await self._send_award_emails(tender, tender.find_bid(bid_id), project, letter)
        return AwardOutcome(tender=tender, award_letter=letter, report=report)

    async def _load_project(self, project_id: str | None) -> Project | None:
        if not project_id:
            return None
        try:
            document = await self.gateway.get(PROJECTS, project_id)
        except Exception as e:
            logger.warning(f"Could not load project {project_id}: {e}")
            return None
        return Project.model_validate(document) if document else None

    async def supplier_email(self, tender: Tender, bid: Bid) -> str | None:
        """Invitation email first, then the bidder's profile email."""
        invitation = tender.find_invitation_for_bid(bid)
        if invitation and invitation.email:
            return invitation.email

        if not bid.supplier_id:
            return None
        document = await self.gateway.get(USERS, bid.supplier_id)
        if not document:
            return None
        profile_email = User.model_validate(document).email
        if not profile_email:
            return None

        for invitation in tender.invited_suppliers:
            if invitation.matches(email=profile_email):
                return invitation.email
        return profile_email

    async def _send_to_bidder(self, tender: Tender, bid: Bid, send) -> tuple[str, DeliveryResult]:
        try:
            email = await self.supplier_email(tender, bid)
        except Exception as e:
            logger.warning(f"Could not resolve email for bid {bid.id}: {e}")
            return bid.id, DeliveryResult.failed("Kunne ikke finne e-postadresse")
        if not email:
            return bid.id, DeliveryResult.failed("Supplier email not found")
        return email, await deliver_safely(send(email), f"Award email for bid {bid.id}")

    async def _send_award_emails(
        self,
        tender: Tender,
        winner: Bid,
        project: Project | None,
        letter: AwardLetter,
    ) -> FanoutReport:
        report = FanoutReport()

        recipient, result = await self._send_to_bidder(
            tender,
            winner,
            lambda email: self.email_service.send_award_letter_email(
                email,
                tender,
                winner,
                project,
                letter.standstill_end_date,
                letter.standstill_period_days,
            ),
        )
        report.record(recipient, result, bid_id=winner.id, kind="award")

        for bid in tender.bids:
            if bid.id == winner.id:
                continue
            recipient, result = await self._send_to_bidder(
                tender,
                bid,
                lambda email, bid=bid: self.email_service.send_bid_rejection_email(
                    email, tender, bid, winner.company_name
                ),
            )
            report.record(recipient, result, bid_id=bid.id, kind="rejection")

        if report.failed:
            logger.warning(f"Award emails for tender {tender.id}: {report.failed} failed: {report.errors}")
        return report
