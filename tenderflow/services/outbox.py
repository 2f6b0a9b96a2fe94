"""Outbox for email deliveries that failed and should be retried."""

import logging
from datetime import timedelta

from tenderflow.clock import Clock, ensure_aware, utcnow
from tenderflow.config import settings
from tenderflow.db import PersistenceGateway
from tenderflow.schemas import DeliveryStatus, OutboxEntry, OutboxStatus

from .email_service import EmailMessage, EmailTransport

logger = logging.getLogger(__name__)


class NotificationOutbox:
    """
    Stores failed emails in ``notification_outbox`` and re-sends them.

    Retries back off exponentially (``base_delay * 2**attempts``). Once an
    entry reaches ``max_attempts`` it is marked dead and logged at ERROR.
    """

    collection = "notification_outbox"

    def __init__(
        self,
        gateway: PersistenceGateway,
        transport: EmailTransport,
        max_attempts: int | None = None,
        base_delay_seconds: int | None = None,
        enabled: bool | None = None,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.transport = transport
        self.max_attempts = max_attempts or settings.outbox_max_attempts
        self.base_delay_seconds = base_delay_seconds or settings.outbox_base_delay_seconds
        self.enabled = settings.email_enabled if enabled is None else enabled
        self.clock = clock

    def backoff(self, attempts: int) -> timedelta:
        return timedelta(seconds=self.base_delay_seconds * 2**attempts)

    async def enqueue(self, message: EmailMessage, error: str | None, event: str | None = None) -> OutboxEntry:
        """Record a delivery that just failed once."""
        now = self.clock()
        entry = OutboxEntry(
            to=message.to,
            subject=message.subject,
            html=message.html,
            event=event,
            attempts=1,
            next_attempt_at=now + self.backoff(1),
            last_error=error,
            created_at=now,
        )
        if entry.attempts >= self.max_attempts:
            entry.status = OutboxStatus.DEAD
            logger.error(f"Email '{entry.subject}' to {entry.to} dead after {entry.attempts} attempt(s): {error}")

        created = await self.gateway.create(self.collection, entry.model_dump(exclude={"id"}))
        logger.info(f"Queued email '{entry.subject}' to {entry.to} for retry")
        return OutboxEntry.model_validate(created)

    async def pending(self) -> list[OutboxEntry]:
        documents = await self.gateway.query(self.collection, {"status": OutboxStatus.PENDING.value})
        return [OutboxEntry.model_validate(doc) for doc in documents]

    async def retry_pending(self) -> dict:
        """
        Re-send every pending entry whose retry time has come.

        Returns:
            Counters: checked, delivered, retried, dead, errors
        """
        stats = {"checked": 0, "delivered": 0, "retried": 0, "dead": 0, "errors": 0}
        if not self.enabled:
            logger.info("Email sending disabled, outbox retry skipped")
            return stats

        now = self.clock()
        for entry in await self.pending():
            if ensure_aware(entry.next_attempt_at) > now:
                continue
            stats["checked"] += 1
            try:
                outcome = await self._retry(entry, now)
                stats[outcome] += 1
            except Exception as e:
                logger.error(f"Error retrying outbox entry {entry.id}: {e}")
                stats["errors"] += 1

        if stats["checked"]:
            logger.info(f"Outbox retry: {stats}")
        return stats

    async def _retry(self, entry: OutboxEntry, now) -> str:
        message = EmailMessage(to=entry.to, subject=entry.subject, html=entry.html)
        try:
            result = await self.transport.send(message)
            error = result.error
            delivered = result.status == DeliveryStatus.DELIVERED
        except Exception as e:
            error = str(e) or e.__class__.__name__
            delivered = False

        if delivered:
            await self.gateway.update(
                self.collection,
                entry.id,
                {"status": OutboxStatus.DELIVERED, "delivered_at": now, "attempts": entry.attempts + 1},
            )
            logger.info(f"Outbox entry {entry.id} delivered to {entry.to}")
            return "delivered"

        attempts = entry.attempts + 1
        if attempts >= self.max_attempts:
            await self.gateway.update(
                self.collection,
                entry.id,
                {"status": OutboxStatus.DEAD, "attempts": attempts, "last_error": error},
            )
            logger.error(
                f"Email '{entry.subject}' to {entry.to} dead after {attempts} attempts: {error}"
            )
            return "dead"

        await self.gateway.update(
            self.collection,
            entry.id,
            {
                "attempts": attempts,
                "last_error": error,
                "next_attempt_at": now + self.backoff(attempts),
            },
        )
        logger.warning(f"Outbox entry {entry.id} failed again ({attempts}/{self.max_attempts}): {error}")
        return "retried"
