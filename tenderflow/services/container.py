"""Wiring of the services around one gateway and one email transport."""

from dataclasses import dataclass
from functools import lru_cache

from tenderflow.clock import Clock, utcnow
from tenderflow.config import Settings, settings
from tenderflow.db import AsyncSessionLocal, PersistenceGateway, SqlDocumentStore

from .award_service import AwardService
from .bid_service import BidService
from .complaint_service import ComplaintService
from .contract_service import ContractService
from .document_versioning import DocumentVersioningService
from .email_service import EmailService, EmailTransport, build_transport
from .notification_service import NotificationService
from .operations import TenderOperations
from .outbox import NotificationOutbox
from .preferences import NotificationPreferenceGate, PreferenceCache
from .reminder_service import ReminderService
from .storage import BlobStorage, LocalBlobStorage
from .tender_service import TenderService


@dataclass
class Services:
    gateway: PersistenceGateway
    preference_cache: PreferenceCache
    gate: NotificationPreferenceGate
    outbox: NotificationOutbox
    email: EmailService
    notifications: NotificationService
    tenders: TenderService
    bids: BidService
    awards: AwardService
    contracts: ContractService
    reminders: ReminderService
    complaints: ComplaintService
    operations: TenderOperations


def build_services(
    gateway: PersistenceGateway,
    transport: EmailTransport | None = None,
    storage: BlobStorage | None = None,
    config: Settings = settings,
    clock: Clock = utcnow,
) -> Services:
    transport = transport or build_transport(config, gateway)
    storage = storage or LocalBlobStorage(config.storage_root, config.app_base_url)

    cache = PreferenceCache(config.preference_cache_ttl_seconds, config.preference_cache_max_entries)
    gate = NotificationPreferenceGate(gateway, cache)
    outbox = NotificationOutbox(
        gateway,
        transport,
        max_attempts=config.outbox_max_attempts,
        base_delay_seconds=config.outbox_base_delay_seconds,
        enabled=config.email_enabled,
        clock=clock,
    )
    email = EmailService(transport, enabled=config.email_enabled, base_url=config.app_base_url, outbox=outbox)
    notifications = NotificationService(gateway, email, gate, clock=clock)
    versioning = DocumentVersioningService(gateway, clock=clock)

    tenders = TenderService(gateway, notifications, email, storage, versioning, clock=clock)
    bids = BidService(gateway, tenders, notifications, email, storage, clock=clock)
    awards = AwardService(
        gateway, tenders, email, clock=clock, standstill_period_days=config.standstill_period_days
    )
    contracts = ContractService(gateway, tenders, notifications, email, clock=clock)
    reminders = ReminderService(tenders, notifications, email, clock=clock)
    complaints = ComplaintService(gateway, notifications, clock=clock)

    return Services(
        gateway=gateway,
        preference_cache=cache,
        gate=gate,
        outbox=outbox,
        email=email,
        notifications=notifications,
        tenders=tenders,
        bids=bids,
        awards=awards,
        contracts=contracts,
        reminders=reminders,
        complaints=complaints,
        operations=TenderOperations(tenders, bids, awards, contracts, reminders, notifications, gate, complaints),
    )


@lru_cache
def get_services() -> Services:
    """Process-wide services on the configured database."""
    return build_services(SqlDocumentStore(AsyncSessionLocal))


def get_operations() -> TenderOperations:
    """FastAPI dependency."""
    return get_services().operations
