"""Email service: Jinja2 templates rendered and delivered through a transport."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import httpx
import resend
from jinja2 import Environment, FileSystemLoader

from tenderflow.clock import ensure_aware, local_zone, utcnow
from tenderflow.config import Settings, settings
from tenderflow.db import PersistenceGateway
from tenderflow.schemas import Bid, Contract, DeliveryResult, Project, Tender

if TYPE_CHECKING:
    from .outbox import NotificationOutbox

logger = logging.getLogger(__name__)

MONTHS_NO = [
    "januar", "februar", "mars", "april", "mai", "juni",
    "juli", "august", "september", "oktober", "november", "desember",
]


def format_date(value: datetime | None, with_time: bool = False) -> str:
    """Norwegian long date in the local timezone, e.g. '5. mars 2026 kl. 14:00'."""
    if value is None:
        return "Ikke angitt"
    local = ensure_aware(value).astimezone(local_zone())
    text = f"{local.day}. {MONTHS_NO[local.month - 1]} {local.year}"
    if with_time:
        text += f" kl. {local:%H:%M}"
    return text


def format_price(value: float | None) -> str:
    if value is None:
        return "Ikke spesifisert"
    return f"{value:,.0f} kr".replace(",", " ")


def days_text(days: int) -> str:
    if days == 0:
        return "i dag"
    if days == 1:
        return "1 dag"
    return f"{days} dager"


def strip_tags(html: str) -> str:
    return re.sub(r"<[^>]*>", "", html)


# Setup Jinja2 environment
templates_dir = Path(__file__).parent.parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(templates_dir)),
    autoescape=True,
)
jinja_env.filters["date"] = format_date
jinja_env.filters["datetime"] = lambda value: format_date(value, with_time=True)
jinja_env.filters["price"] = format_price


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str | None = None

    @property
    def plain_text(self) -> str:
        return self.text or strip_tags(self.html)


class EmailTransport(Protocol):
    """Delivers one message; raising or returning a failed result both count as failure."""

    async def send(self, message: EmailMessage) -> DeliveryResult: ...


class ResendTransport:
    """Transactional email through the Resend API."""

    def __init__(self, api_key: str, from_email: str):
        resend.api_key = api_key
        self.from_email = from_email

    async def send(self, message: EmailMessage) -> DeliveryResult:
        response = resend.Emails.send(
            {
                "from": self.from_email,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
                "text": message.plain_text,
            }
        )
        return DeliveryResult.delivered(response.get("id"))


class FunctionRelayTransport:
    """POSTs the message to an HTTP function that performs the delivery."""

    def __init__(self, url: str, from_email: str, timeout: float = 10.0):
        self.url = url
        self.from_email = from_email
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> DeliveryResult:
        if not self.url:
            return DeliveryResult.failed("Email function URL not configured")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.url,
                json={
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                    "text": message.plain_text,
                    "from": self.from_email,
                },
            )
        if response.is_error:
            logger.error(f"Email function error: {response.status_code} {response.text}")
            return DeliveryResult.failed(f"Function error: {response.status_code}")
        return DeliveryResult.delivered()


class TriggerDocumentTransport:
    """Writes the message into the ``emails`` collection for a mail relay to pick up."""

    collection = "emails"

    def __init__(self, gateway: PersistenceGateway, from_email: str):
        self.gateway = gateway
        self.from_email = from_email

    async def send(self, message: EmailMessage) -> DeliveryResult:
        created = await self.gateway.create(
            self.collection,
            {
                "to": message.to,
                "message": {
                    "subject": message.subject,
                    "html": message.html,
                    "text": message.plain_text,
                },
                "from": self.from_email,
                "created_at": utcnow(),
            },
        )
        return DeliveryResult.delivered(created["id"])


def build_transport(config: Settings, gateway: PersistenceGateway) -> EmailTransport:
    """Pick the transport named by ``email_backend``."""
    if config.email_backend == "function":
        return FunctionRelayTransport(config.email_function_url, config.email_from)
    if config.email_backend == "extension":
        return TriggerDocumentTransport(gateway, config.email_from)
    return ResendTransport(config.resend_api_key, config.email_from)


class EmailService:
    """Renders the procurement emails and hands them to the transport."""

    def __init__(
        self,
        transport: EmailTransport,
        enabled: bool | None = None,
        base_url: str | None = None,
        outbox: "NotificationOutbox | None" = None,
    ):
        self.transport = transport
        self.outbox = outbox
        self.enabled = settings.email_enabled if enabled is None else enabled
        self.base_url = (base_url or settings.app_base_url).rstrip("/")

    def render(self, template_name: str, **context) -> str:
        template = jinja_env.get_template(f"emails/{template_name}")
        return template.render(base_url=self.base_url, **context)

    async def send_email(self, to: str, subject: str, html: str, event: str | None = None) -> DeliveryResult:
        """
        Send one email.

        Never raises: transport exceptions are logged and reported as a
        failed result. A disabled service reports ``skipped``. Failed
        deliveries are queued in the outbox when one is configured.
        """
        if not self.enabled:
            logger.info(f"Email sending disabled, skipping '{subject}' to {to}")
            return DeliveryResult.skipped()

        if not to or not subject or not html:
            return DeliveryResult.failed("Missing required email fields")

        message = EmailMessage(to=to, subject=subject, html=html)
        try:
            result = await self.transport.send(message)
        except Exception as e:
            logger.error(f"Error sending email '{subject}' to {to}: {e}")
            result = DeliveryResult.failed(str(e) or e.__class__.__name__)

        if result.success:
            logger.info(f"Email '{subject}' sent to {to}: {result.message_id}")
            return result

        logger.warning(f"Email '{subject}' to {to} failed: {result.error}")
        await self._queue_for_retry(message, result.error, event)
        return result

    async def _queue_for_retry(self, message: EmailMessage, error: str | None, event: str | None) -> None:
        if self.outbox is None:
            return
        try:
            await self.outbox.enqueue(message, error, event=event)
        except Exception as e:
            logger.error(f"Could not queue email '{message.subject}' to {message.to}: {e}")

    async def send_tender_invitation_email(
        self,
        to_email: str,
        tender: Tender,
        supplier_name: str | None = None,
    ) -> DeliveryResult:
        """Invite a supplier to bid on a published tender."""
        if not to_email:
            return DeliveryResult.failed("Supplier email is required")

        html = self.render("invitation.html", tender=tender, supplier_name=supplier_name)
        return await self.send_email(
            to_email,
            f"Invitasjon til anskaffelse: {tender.title}",
            html,
            event="tender_invitation",
        )

    async def send_deadline_reminder_email(
        self,
        to_email: str,
        tender: Tender,
        days_until_deadline: int,
    ) -> DeliveryResult:
        if not to_email:
            return DeliveryResult.failed("User email is required")

        remaining = days_text(days_until_deadline)
        html = self.render("deadline_reminder.html", tender=tender, days_text=remaining)
        return await self.send_email(
            to_email,
            f'Påminnelse: Fristen for "{tender.title}" utløper om {remaining}',
            html,
            event="tender_deadline_reminder",
        )

    async def send_bid_submission_email(self, to_email: str, tender: Tender, bid: Bid) -> DeliveryResult:
        """Tell the tender creator a bid arrived."""
        if not to_email:
            return DeliveryResult.failed("Sender email is required")

        html = self.render("bid_submitted.html", tender=tender, bid=bid)
        return await self.send_email(
            to_email,
            f"Nytt tilbud mottatt: {tender.title}",
            html,
            event="new_bid",
        )

    async def send_contract_signing_request_email(
        self,
        to_email: str,
        contract: Contract,
        tender: Tender,
    ) -> DeliveryResult:
        if not to_email:
            return DeliveryResult.failed("Supplier email is required")

        html = self.render("contract_signing.html", contract=contract, tender=tender)
        return await self.send_email(
            to_email,
            f"Kontrakt klar for signering: {tender.title}",
            html,
            event="contract_signing",
        )

    async def send_award_letter_email(
        self,
        to_email: str,
        tender: Tender,
        bid: Bid,
        project: Project | None,
        standstill_end_date: datetime,
        standstill_period_days: int,
    ) -> DeliveryResult:
        """Award letter with the standstill window spelled out."""
        if not to_email:
            return DeliveryResult.failed("Supplier email is required")

        html = self.render(
            "award_letter.html",
            tender=tender,
            bid=bid,
            project=project,
            awarded_at=tender.awarded_at or utcnow(),
            standstill_end_date=standstill_end_date,
            standstill_period_days=standstill_period_days,
        )
        return await self.send_email(
            to_email,
            f"Tilbud tildelt: {tender.title}",
            html,
            event="tender_awarded",
        )

    async def send_bid_rejection_email(
        self,
        to_email: str,
        tender: Tender,
        bid: Bid,
        awarded_company_name: str,
    ) -> DeliveryResult:
        if not to_email:
            return DeliveryResult.failed("Supplier email is required")

        html = self.render(
            "bid_rejection.html",
            tender=tender,
            bid=bid,
            awarded_company_name=awarded_company_name,
        )
        return await self.send_email(
            to_email,
            f"Tilbud ikke tildelt: {tender.title}",
            html,
            event="bid_rejected",
        )
