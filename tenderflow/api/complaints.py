"""Complaint endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenderflow.schemas import ComplaintCreate, ComplaintStatus, OperationResult, User
from tenderflow.services import TenderOperations, get_operations

from .deps import get_current_user

router = APIRouter()


class StatusBody(BaseModel):
    status: str
    note: Optional[str] = None


class ResolutionBody(BaseModel):
    resolution: str


class CommentBody(BaseModel):
    comment: str


class AssignBody(BaseModel):
    assigned_to: Optional[str] = None


@router.get("", response_model=OperationResult)
async def list_complaints(
    status: Optional[ComplaintStatus] = None,
    category: Optional[str] = None,
    priority: Optional[str] = None,
    company_id: Optional[str] = None,
    user_id: Optional[str] = None,
    tender_id: Optional[str] = None,
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.list_complaints(
        status=status,
        category=category,
        priority=priority,
        company_id=company_id,
        user_id=user_id,
        tender_id=tender_id,
    )


@router.post("", response_model=OperationResult)
async def create_complaint(
    body: ComplaintCreate,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.create_complaint(body, user)


@router.get("/{complaint_id}", response_model=OperationResult)
async def get_complaint(complaint_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.get_complaint(complaint_id)


@router.post("/{complaint_id}/status", response_model=OperationResult)
async def update_status(
    complaint_id: str,
    body: StatusBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.update_complaint_status(complaint_id, body.status, user, body.note)


@router.post("/{complaint_id}/resolution", response_model=OperationResult)
async def add_resolution(
    complaint_id: str,
    body: ResolutionBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.add_complaint_resolution(complaint_id, body.resolution, user)


@router.post("/{complaint_id}/comments", response_model=OperationResult)
async def add_comment(
    complaint_id: str,
    body: CommentBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.add_complaint_comment(complaint_id, body.comment, user)


@router.post("/{complaint_id}/assign", response_model=OperationResult)
async def assign(
    complaint_id: str,
    body: AssignBody,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.assign_complaint(complaint_id, body.assigned_to, user)
