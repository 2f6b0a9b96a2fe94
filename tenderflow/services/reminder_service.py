"""Deadline reminders for open tenders."""

import logging
from collections.abc import Iterable
from datetime import datetime
from functools import partial

from tenderflow.clock import Clock, ensure_aware, local_zone, utcnow
from tenderflow.config import settings
from tenderflow.exceptions import ValidationError
from tenderflow.schemas import DeliveryResult, Invitation, NotificationType, Tender, TenderStatus

from .email_service import EmailService
from .notification_service import NotificationService, deliver_safely
from .tender_service import TenderService

logger = logging.getLogger(__name__)


def days_until_deadline(deadline: datetime, now: datetime) -> int:
    """Whole calendar days between today and the deadline day, in local time."""
    zone = local_zone()
    today = ensure_aware(now).astimezone(zone).date()
    deadline_day = ensure_aware(deadline).astimezone(zone).date()
    return (deadline_day - today).days


def should_send_reminder(days: int, reminder_days: Iterable[int]) -> bool:
    return days >= 0 and days in set(reminder_days)


def has_bid(tender: Tender, invitation: Invitation) -> bool:
    for bid in tender.bids:
        if invitation.supplier_id and bid.supplier_id == invitation.supplier_id:
            return True
        if invitation.company_id and bid.company_id == invitation.company_id:
            return True
    return False


class ReminderService:
    """Sends deadline reminders to invited suppliers who have not bid yet."""

    def __init__(
        self,
        tenders: TenderService,
        notifications: NotificationService,
        email_service: EmailService,
        clock: Clock = utcnow,
    ):
        self.tenders = tenders
        self.notifications = notifications
        self.email_service = email_service
        self.clock = clock

    async def _remind_supplier(self, tender: Tender, invitation: Invitation, days: int) -> list[DeliveryResult]:
        results = []
        if invitation.email:
            results.append(await deliver_safely(
                self.notifications.send_email_gated(
                    invitation.supplier_id,
                    NotificationType.DEADLINE_REMINDER,
                    partial(
                        self.email_service.send_deadline_reminder_email,
                        tender=tender,
                        days_until_deadline=days,
                    ),
                    to_email=invitation.email,
                ),
                f"Deadline reminder email to {invitation.email}",
            ))
        if invitation.supplier_id:
            results.append(await deliver_safely(
                self.notifications.notify_deadline_reminder(invitation.supplier_id, tender, days),
                f"Deadline reminder notification to {invitation.supplier_id}",
            ))
        return results

    async def _remind_creator(self, tender: Tender, days: int) -> list[DeliveryResult]:
        email_result = await deliver_safely(
            self.notifications.send_email_gated(
                tender.created_by,
                NotificationType.DEADLINE_REMINDER,
                partial(
                    self.email_service.send_deadline_reminder_email,
                    tender=tender,
                    days_until_deadline=days,
                ),
            ),
            f"Deadline reminder email to creator {tender.created_by}",
        )
        in_app_result = await deliver_safely(
            self.notifications.notify_deadline_reminder(tender.created_by, tender, days),
            f"Deadline reminder notification to creator {tender.created_by}",
        )
        return [email_result, in_app_result]

    async def send_reminders_for_tender(
        self,
        tender: Tender,
        days: int,
        send_to_invited_suppliers: bool = True,
        send_to_creator: bool = False,
    ) -> dict:
        """
        Remind every recipient of one tender.

        A recipient counts as sent when none of its deliveries failed.
        """
        sent = 0
        errors: list[dict] = []

        recipients = []
        if send_to_invited_suppliers:
            for invitation in tender.invited_suppliers:
                if has_bid(tender, invitation):
                    continue
                label = invitation.email or invitation.supplier_id
                recipients.append(("supplier", label, partial(self._remind_supplier, tender, invitation, days)))
        if send_to_creator and tender.created_by:
            recipients.append(("creator", tender.created_by, partial(self._remind_creator, tender, days)))

        for kind, label, remind in recipients:
            results = await remind()
            failures = [r.error for r in results if not r.success]
            if failures:
                errors.append({"type": kind, "recipient": label, "tender_id": tender.id, "error": "; ".join(failures)})
            elif results:
                sent += 1

        return {"sent": sent, "errors": errors}

    async def check_deadline_reminders(
        self,
        reminder_days: Iterable[int] | None = None,
        send_to_invited_suppliers: bool = True,
        send_to_creator: bool = False,
        status: TenderStatus = TenderStatus.OPEN,
    ) -> dict:
        """
        Sweep tenders in ``status`` and send reminders on configured days.

        Returns:
            ``{"checked": int, "sent": int, "errors": list}``
        """
        reminder_days = list(settings.reminder_days if reminder_days is None else reminder_days)
        now = self.clock()
        stats = {"checked": 0, "sent": 0, "errors": []}

        for tender in await self.tenders.list_tenders(status=status):
            if tender.deadline is None:
                continue
            stats["checked"] += 1

            days = days_until_deadline(tender.deadline, now)
            if not should_send_reminder(days, reminder_days):
                continue

            try:
                result = await self.send_reminders_for_tender(
                    tender,
                    days,
                    send_to_invited_suppliers=send_to_invited_suppliers,
                    send_to_creator=send_to_creator,
                )
            except Exception as e:
                logger.error(f"Error processing reminders for tender {tender.id}: {e}")
                stats["errors"].append({"type": "tender", "tender_id": tender.id, "error": str(e)})
                continue

            stats["sent"] += result["sent"]
            stats["errors"].extend(result["errors"])
            logger.info(f"Tender {tender.id}: {days} day(s) to deadline, {result['sent']} reminder(s) sent")

        return stats

    async def send_reminders_for_tender_id(
        self,
        tender_id: str,
        send_to_invited_suppliers: bool = True,
        send_to_creator: bool = False,
    ) -> dict:
        """Send reminders for one tender right now, whatever day it is."""
        tender = await self.tenders.get_tender(tender_id)
        if tender.deadline is None:
            raise ValidationError("Anskaffelsen har ingen frist.", tender_id=tender_id)

        days = days_until_deadline(tender.deadline, self.clock())
        return await self.send_reminders_for_tender(
            tender,
            days,
            send_to_invited_suppliers=send_to_invited_suppliers,
            send_to_creator=send_to_creator,
        )
