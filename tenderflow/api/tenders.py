"""Tender, invitation, question, document and bid endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import BaseModel

from tenderflow.schemas import (
    BidCreate,
    InvitationCreate,
    OperationResult,
    Project,
    TenderCreate,
    TenderStatus,
    User,
)
from tenderflow.services import TenderOperations, get_operations

from .deps import get_current_user, read_uploads

router = APIRouter()


class QuestionBody(BaseModel):
    question: str


class AnswerBody(BaseModel):
    answer: str


class AwardBody(BaseModel):
    bid_id: str
    project: Optional[Project] = None


class ReminderBody(BaseModel):
    send_to_invited_suppliers: bool = True
    send_to_creator: bool = False


@router.get("", response_model=OperationResult)
async def list_tenders(
    status: Optional[TenderStatus] = None,
    project_id: Optional[str] = None,
    created_by: Optional[str] = None,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.list_tenders(status=status, project_id=project_id, created_by=created_by)


@router.post("", response_model=OperationResult)
async def create_tender(
    body: TenderCreate,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.create_tender(body, user)


@router.get("/invitations", response_model=OperationResult)
async def my_invitations(
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    """Tenders the acting supplier is invited to."""
    return await ops.get_invitations_for_supplier(user.id, user.email)


@router.post("/close-expired", response_model=OperationResult)
async def close_expired(ops: TenderOperations = Depends(get_operations)):
    return await ops.close_expired_tenders()


@router.get("/documents/{document_id}/versions", response_model=OperationResult)
async def document_versions(document_id: str, ops: TenderOperations = Depends(get_operations)):
    """Version history of one logical document, newest first."""
    return await ops.get_document_versions(document_id)


@router.get("/{tender_id}", response_model=OperationResult)
async def get_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.get_tender(tender_id)


@router.delete("/{tender_id}", response_model=OperationResult)
async def delete_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.delete_tender(tender_id)


@router.post("/{tender_id}/publish", response_model=OperationResult)
async def publish_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.publish_tender(tender_id)


@router.post("/{tender_id}/close", response_model=OperationResult)
async def close_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.close_tender(tender_id)


@router.post("/{tender_id}/reopen", response_model=OperationResult)
async def reopen_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.reopen_tender(tender_id)


@router.post("/{tender_id}/invitations", response_model=OperationResult)
async def invite_supplier(
    tender_id: str,
    body: InvitationCreate,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.invite_supplier(tender_id, body)


@router.post("/{tender_id}/viewed", response_model=OperationResult)
async def mark_viewed(
    tender_id: str,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.mark_invitation_viewed(tender_id, user)


@router.post("/{tender_id}/questions", response_model=OperationResult)
async def ask_question(
    tender_id: str,
    body: QuestionBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.ask_question(tender_id, body.question, user)


@router.post("/{tender_id}/questions/{question_id}/answer", response_model=OperationResult)
async def answer_question(
    tender_id: str,
    question_id: str,
    body: AnswerBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.answer_question(tender_id, question_id, body.answer, user)


@router.post("/{tender_id}/documents", response_model=OperationResult)
async def add_documents(
    tender_id: str,
    files: list[UploadFile] = File(...),
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.add_documents(tender_id, await read_uploads(files), user)


@router.delete("/{tender_id}/documents/{document_id}", response_model=OperationResult)
async def remove_document(
    tender_id: str,
    document_id: str,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.remove_document(tender_id, document_id)


@router.post("/{tender_id}/bids", response_model=OperationResult)
async def submit_bid(
    tender_id: str,
    price: Optional[float] = Form(None),
    price_structure: str = Form("fastpris"),
    hourly_rate: Optional[float] = Form(None),
    estimated_hours: Optional[float] = Form(None),
    notes: Optional[str] = Form(None),
    files: list[UploadFile] = File(default=[]),
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    bid = BidCreate(
        price=price,
        price_structure=price_structure,
        hourly_rate=hourly_rate,
        estimated_hours=estimated_hours,
        notes=notes,
    )
    return await ops.submit_bid(tender_id, bid, user, await read_uploads(files))


@router.post("/{tender_id}/award", response_model=OperationResult)
async def award_tender(
    tender_id: str,
    body: AwardBody,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.award_tender(tender_id, body.bid_id, body.project)


@router.get("/{tender_id}/standstill", response_model=OperationResult)
async def standstill_status(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.get_standstill_status(tender_id)


@router.post("/{tender_id}/contract", response_model=OperationResult)
async def generate_contract(
    tender_id: str,
    project: Optional[Project] = None,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.generate_contract(tender_id, project)


@router.get("/{tender_id}/contract", response_model=OperationResult)
async def get_contract_for_tender(tender_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.get_contract_by_tender(tender_id)


@router.post("/{tender_id}/reminders", response_model=OperationResult)
async def send_reminders(
    tender_id: str,
    body: ReminderBody,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.send_reminders_for_tender(
        tender_id,
        send_to_invited_suppliers=body.send_to_invited_suppliers,
        send_to_creator=body.send_to_creator,
    )
