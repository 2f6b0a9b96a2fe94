"""Operation facade: domain errors become structured results."""

import logging
from collections.abc import Awaitable
from typing import Any

from pydantic_core import to_jsonable_python

from tenderflow.exceptions import TenderFlowError
from tenderflow.schemas import (
    BidCreate,
    ComplaintCreate,
    ComplaintStatus,
    ContractChangeCreate,
    FileUpload,
    InvitationCreate,
    NotificationType,
    OperationResult,
    Project,
    TenderCreate,
    TenderStatus,
    User,
)

from .award_service import AwardService, is_standstill_over, remaining_standstill_days
from .bid_service import BidService
from .complaint_service import ComplaintService
from .contract_service import ContractService
from .notification_service import NotificationService
from .preferences import NotificationPreferenceGate
from .reminder_service import ReminderService
from .tender_service import TenderService

logger = logging.getLogger(__name__)


class TenderOperations:
    """
    Entry points used by the HTTP API and the scheduler.

    Each call returns an ``OperationResult``. Domain errors are reported
    with their user-facing message; anything else propagates.
    """

    def __init__(
        self,
        tenders: TenderService,
        bids: BidService,
        awards: AwardService,
        contracts: ContractService,
        reminders: ReminderService,
        notifications: NotificationService,
        gate: NotificationPreferenceGate,
        complaints: ComplaintService,
    ):
        self.tenders = tenders
        self.bids = bids
        self.awards = awards
        self.contracts = contracts
        self.reminders = reminders
        self.notifications = notifications
        self.gate = gate
        self.complaints = complaints

    async def _run(self, operation: str, action: Awaitable[Any]) -> OperationResult:
        try:
            data = await action
        except TenderFlowError as e:
            logger.warning(f"{operation} failed: {e.message} {e.context or ''}")
            return OperationResult.fail(e.message)
        return OperationResult.ok(to_jsonable_python(data))

    # Tenders

    async def create_tender(self, data: TenderCreate, user: User) -> OperationResult:
        return await self._run("create_tender", self.tenders.create_tender(data, user))

    async def get_tender(self, tender_id: str) -> OperationResult:
        return await self._run("get_tender", self.tenders.get_tender(tender_id))

    async def list_tenders(
        self,
        status: TenderStatus | None = None,
        project_id: str | None = None,
        created_by: str | None = None,
    ) -> OperationResult:
        return await self._run(
            "list_tenders",
            self.tenders.list_tenders(status=status, project_id=project_id, created_by=created_by),
        )

    async def get_invitations_for_supplier(self, supplier_id: str | None, email: str | None = None) -> OperationResult:
        return await self._run(
            "get_invitations_for_supplier", self.tenders.get_invitations_for_supplier(supplier_id, email)
        )

    async def publish_tender(self, tender_id: str) -> OperationResult:
        async def publish():
            tender, report = await self.tenders.publish_tender(tender_id)
            return {"tender": tender, "notifications": report.to_dict()}

        return await self._run("publish_tender", publish())

    async def close_tender(self, tender_id: str) -> OperationResult:
        return await self._run("close_tender", self.tenders.close_tender(tender_id))

    async def reopen_tender(self, tender_id: str) -> OperationResult:
        return await self._run("reopen_tender", self.tenders.reopen_tender(tender_id))

    async def close_expired_tenders(self, created_by: str | None = None) -> OperationResult:
        return await self._run("close_expired_tenders", self.tenders.close_expired_tenders(created_by))

    async def delete_tender(self, tender_id: str) -> OperationResult:
        return await self._run("delete_tender", self.tenders.delete_tender(tender_id))

    async def invite_supplier(self, tender_id: str, invitation: InvitationCreate) -> OperationResult:
        return await self._run("invite_supplier", self.tenders.invite_supplier(tender_id, invitation))

    async def ask_question(self, tender_id: str, question: str, user: User) -> OperationResult:
        return await self._run("ask_question", self.tenders.ask_question(tender_id, question, user))

    async def answer_question(self, tender_id: str, question_id: str, answer: str, user: User) -> OperationResult:
        return await self._run(
            "answer_question", self.tenders.answer_question(tender_id, question_id, answer, user)
        )

    async def add_documents(self, tender_id: str, files: list[FileUpload], user: User) -> OperationResult:
        return await self._run("add_documents", self.tenders.add_documents(tender_id, files, user))

    async def remove_document(self, tender_id: str, document_id: str) -> OperationResult:
        return await self._run("remove_document", self.tenders.remove_document(tender_id, document_id))

    async def get_document_versions(self, document_id: str) -> OperationResult:
        return await self._run("get_document_versions", self.tenders.versioning.get_versions(document_id))

    async def mark_invitation_viewed(self, tender_id: str, user: User) -> OperationResult:
        return await self._run(
            "mark_invitation_viewed", self.tenders.mark_invitation_viewed(tender_id, user.id, user.email)
        )

    # Bids and award

    async def submit_bid(
        self,
        tender_id: str,
        data: BidCreate,
        user: User,
        files: list[FileUpload] | None = None,
    ) -> OperationResult:
        return await self._run("submit_bid", self.bids.submit_bid(tender_id, data, user, files))

    async def award_tender(self, tender_id: str, bid_id: str, project: Project | None = None) -> OperationResult:
        async def award():
            outcome = await self.awards.award_tender(tender_id, bid_id, project)
            return {
                "tender": outcome.tender,
                "award_letter": outcome.award_letter,
                "notifications": outcome.report.to_dict(),
            }

        return await self._run("award_tender", award())

    async def get_standstill_status(self, tender_id: str) -> OperationResult:
        """Where the tender stands in its standstill window."""

        async def status():
            tender = await self.tenders.get_tender(tender_id)
            now = self.awards.clock()
            return {
                "tender_id": tender.id,
                "standstill_end_date": tender.standstill_end_date,
                "is_over": is_standstill_over(tender.standstill_end_date, now),
                "remaining_days": remaining_standstill_days(tender.standstill_end_date, now),
            }

        return await self._run("get_standstill_status", status())

    # Contracts

    async def generate_contract(self, tender_id: str, project: Project | None = None) -> OperationResult:
        return await self._run(
            "generate_contract", self.contracts.generate_contract_for_tender(tender_id, project)
        )

    async def get_contract(self, contract_id: str) -> OperationResult:
        return await self._run("get_contract", self.contracts.get_contract(contract_id))

    async def get_contract_by_tender(self, tender_id: str) -> OperationResult:
        return await self._run("get_contract_by_tender", self.contracts.get_contract_by_tender(tender_id))

    async def list_contracts_by_project(self, project_id: str) -> OperationResult:
        return await self._run("list_contracts_by_project", self.contracts.list_contracts_by_project(project_id))

    async def sign_contract(self, contract_id: str, user: User) -> OperationResult:
        return await self._run("sign_contract", self.contracts.sign_contract(contract_id, user))

    async def add_contract_change(
        self, contract_id: str, change: ContractChangeCreate, user: User
    ) -> OperationResult:
        return await self._run(
            "add_contract_change", self.contracts.add_contract_change(contract_id, change, user)
        )

    # Complaints

    async def create_complaint(self, data: ComplaintCreate, user: User) -> OperationResult:
        return await self._run("create_complaint", self.complaints.create_complaint(data, user))

    async def get_complaint(self, complaint_id: str) -> OperationResult:
        return await self._run("get_complaint", self.complaints.get_complaint(complaint_id))

    async def list_complaints(self, **filters) -> OperationResult:
        return await self._run("list_complaints", self.complaints.list_complaints(**filters))

    async def update_complaint_status(
        self, complaint_id: str, status: ComplaintStatus | str, user: User, note: str | None = None
    ) -> OperationResult:
        return await self._run(
            "update_complaint_status", self.complaints.update_complaint_status(complaint_id, status, user, note)
        )

    async def add_complaint_resolution(self, complaint_id: str, resolution: str, user: User) -> OperationResult:
        return await self._run(
            "add_complaint_resolution", self.complaints.add_complaint_resolution(complaint_id, resolution, user)
        )

    async def add_complaint_comment(self, complaint_id: str, comment: str, user: User) -> OperationResult:
        return await self._run(
            "add_complaint_comment", self.complaints.add_complaint_comment(complaint_id, comment, user)
        )

    async def assign_complaint(self, complaint_id: str, assignee_id: str | None, user: User) -> OperationResult:
        return await self._run(
            "assign_complaint", self.complaints.assign_complaint(complaint_id, assignee_id, user)
        )

    # Notifications

    async def check_deadline_reminders(self, **options) -> OperationResult:
        return await self._run("check_deadline_reminders", self.reminders.check_deadline_reminders(**options))

    async def send_reminders_for_tender(self, tender_id: str, **options) -> OperationResult:
        return await self._run(
            "send_reminders_for_tender", self.reminders.send_reminders_for_tender_id(tender_id, **options)
        )

    async def should_send_email(self, user_id: str | None, notification_type: NotificationType) -> OperationResult:
        return await self._run("should_send_email", self.gate.should_send_email(user_id, notification_type))

    async def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: int | None = None
    ) -> OperationResult:
        return await self._run(
            "list_notifications",
            self.notifications.get_notifications_for_user(user_id, unread_only=unread_only, limit=limit),
        )

    async def get_unread_count(self, user_id: str) -> OperationResult:
        return await self._run("get_unread_count", self.notifications.get_unread_count(user_id))

    async def mark_notification_read(self, notification_id: str) -> OperationResult:
        return await self._run("mark_notification_read", self.notifications.mark_as_read(notification_id))

    async def mark_all_notifications_read(self, user_id: str) -> OperationResult:
        return await self._run("mark_all_notifications_read", self.notifications.mark_all_as_read(user_id))

    async def delete_notification(self, notification_id: str) -> OperationResult:
        return await self._run("delete_notification", self.notifications.delete_notification(notification_id))
