"""Contract generation, signing and amendments."""

import logging
from datetime import datetime
from functools import partial

from tenderflow.clock import Clock, utcnow
from tenderflow.db import PersistenceGateway
from tenderflow.exceptions import NotFoundError, PolicyViolationError
from tenderflow.models import generate_id
from tenderflow.schemas import (
    ActorSnapshot,
    Bid,
    Contract,
    ContractChange,
    ContractChangeCreate,
    ContractParty,
    ContractStatus,
    NotificationType,
    NsTerms,
    Project,
    Tender,
    User,
)

from .award_service import is_standstill_over
from .email_service import EmailService, format_date
from .notification_service import NotificationService, deliver_safely
from .tender_service import EPOCH, TENDERS, TenderService

logger = logging.getLogger(__name__)

CONTRACTS = "contracts"


def _actor(user: User) -> ActorSnapshot:
    return ActorSnapshot(
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        company_id=user.company_id,
        company_name=user.company_name,
    )


class ContractService:
    """
    Contracts for awarded tenders.

    No contract is generated or signed while the tender's standstill
    period is running. Amendments append to an immutable change log and
    bump the version.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        tenders: TenderService,
        notifications: NotificationService,
        email_service: EmailService,
        clock: Clock = utcnow,
    ):
        self.gateway = gateway
        self.tenders = tenders
        self.notifications = notifications
        self.email_service = email_service
        self.clock = clock

    def _check_standstill(self, standstill_end_date: datetime | None, action: str) -> None:
        if not is_standstill_over(standstill_end_date, self.clock()):
            raise PolicyViolationError(
                f"Kontrakt kan ikke {action} før ventetiden (standstill periode) er utløpt. "
                f"Ventetiden utløper {format_date(standstill_end_date)}.",
                standstill_end_date=standstill_end_date,
            )

    # ============== Reads ==============

    async def get_contract(self, contract_id: str) -> Contract:
        document = await self.gateway.get(CONTRACTS, contract_id) if contract_id else None
        if not document:
            raise NotFoundError("Kontrakt ikke funnet", contract_id=contract_id)
        return Contract.model_validate(document)

    async def _sorted(self, predicates: dict) -> list[Contract]:
        contracts = [Contract.model_validate(doc) for doc in await self.gateway.query(CONTRACTS, predicates)]
        contracts.sort(key=lambda c: c.created_at or EPOCH, reverse=True)
        return contracts

    async def get_contract_by_tender(self, tender_id: str) -> Contract | None:
        """Newest contract for the tender."""
        contracts = await self._sorted({"tender_id": tender_id})
        return contracts[0] if contracts else None

    async def list_contracts_by_project(self, project_id: str) -> list[Contract]:
        if not project_id:
            return []
        return await self._sorted({"project_id": project_id})

    # ============== Lifecycle ==============

    async def generate_contract(self, tender: Tender, bid: Bid, project: Project | None) -> Contract:
        """Draft contract from the awarded bid. Refused during standstill."""
        self._check_standstill(tender.standstill_end_date, "genereres")

        contract = Contract(
            id=generate_id(),
            tender_id=tender.id,
            bid_id=bid.id,
            project_id=project.id if project and project.id else tender.project_id,
            contract_standard=tender.contract_standard,
            status=ContractStatus.DRAFT,
            created_at=self.clock(),
            customer=ContractParty(
                company_id=project.owner_company_id if project else None,
                company_name=(project.name if project else "") or "Kunde",
            ),
            supplier=ContractParty(company_id=bid.company_id, company_name=bid.company_name),
            title=tender.title,
            description=tender.description,
            price=bid.price,
            price_structure=bid.price_structure,
            hourly_rate=bid.hourly_rate,
            estimated_hours=bid.estimated_hours,
            deadline=tender.deadline,
            ns_terms=NsTerms(
                standard=tender.contract_standard,
                work_description=tender.description,
                price_basis=bid.price_structure,
            ),
        )
        await self.gateway.create(CONTRACTS, contract.model_dump())
        logger.info(f"Generated contract {contract.id} for tender {tender.id}")

        if bid.supplier_id:
            await deliver_safely(
                self.notifications.notify_contract_update(bid.supplier_id, contract, "generated"),
                f"Contract notification for {bid.supplier_id}",
            )
            result = await deliver_safely(
                self.notifications.send_email_gated(
                    bid.supplier_id,
                    NotificationType.CONTRACT_SIGNED,
                    partial(self.email_service.send_contract_signing_request_email, contract=contract, tender=tender),
                ),
                f"Contract signing email for {bid.supplier_id}",
            )
            if not result.success:
                logger.warning(f"Contract signing email for {contract.id} not delivered: {result.error}")

        return contract

    async def generate_contract_for_tender(self, tender_id: str, project: Project | None = None) -> Contract:
        """Generate the contract for the awarded bid of ``tender_id``."""
        tender = await self.tenders.get_tender(tender_id)
        bid = tender.find_bid(tender.awarded_bid_id) if tender.awarded_bid_id else None
        if bid is None:
            raise PolicyViolationError("Anskaffelsen er ikke tildelt.", tender_id=tender_id)
        return await self.generate_contract(tender, bid, project)

    async def sign_contract(self, contract_id: str, user: User) -> Contract:
        """Sign a contract once the standstill of its tender is over."""
        contract = await self.get_contract(contract_id)
        if contract.status == ContractStatus.SIGNED:
            raise PolicyViolationError("Kontrakten er allerede signert.")

        # A deleted tender no longer restricts signing.
        document = await self.gateway.get(TENDERS, contract.tender_id) if contract.tender_id else None
        if document:
            self._check_standstill(Tender.model_validate(document).standstill_end_date, "signeres")

        changes = {
            "status": ContractStatus.SIGNED,
            "signed_at": self.clock(),
            "signed_by": _actor(user),
        }
        await self.gateway.update(CONTRACTS, contract_id, changes, expected={"status": contract.status})
        contract = contract.model_copy(update=changes)
        logger.info(f"Contract {contract_id} signed by {user.id}")

        await deliver_safely(
            self.notifications.notify_contract_update(user.id, contract, "signed"),
            f"Contract signed notification for {contract_id}",
        )
        return contract

    async def add_contract_change(self, contract_id: str, change: ContractChangeCreate, user: User) -> Contract:
        """Append an amendment. The version increases by exactly one."""
        contract = await self.get_contract(contract_id)

        entry = ContractChange(
            version=contract.version + 1,
            changed_at=self.clock(),
            changed_by=_actor(user),
            field=change.field,
            old_value=change.old_value,
            new_value=change.new_value,
            reason=change.reason or "",
        )
        changes = {
            "changes": [*contract.changes, entry],
            "version": entry.version,
            "status": ContractStatus.AMENDED,
        }
        await self.gateway.update(CONTRACTS, contract_id, changes, expected={"version": contract.version})
        contract = contract.model_copy(update=changes)
        logger.info(f"Contract {contract_id} amended to version {entry.version}: {change.field}")

        await deliver_safely(
            self.notifications.notify_contract_update(user.id, contract, "amended"),
            f"Contract amendment notification for {contract_id}",
        )
        return contract
