"""In-app notification endpoints for the acting user."""

from typing import Optional

from fastapi import APIRouter, Depends

from tenderflow.schemas import OperationResult, User
from tenderflow.services import TenderOperations, get_operations

from .deps import get_current_user

router = APIRouter()


@router.get("", response_model=OperationResult)
async def list_notifications(
    unread_only: bool = False,
    limit: Optional[int] = None,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.list_notifications(user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count", response_model=OperationResult)
async def unread_count(
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.get_unread_count(user.id)


@router.post("/read-all", response_model=OperationResult)
async def mark_all_read(
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.mark_all_notifications_read(user.id)


@router.post("/{notification_id}/read", response_model=OperationResult)
async def mark_read(notification_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.mark_notification_read(notification_id)


@router.delete("/{notification_id}", response_model=OperationResult)
async def delete_notification(notification_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.delete_notification(notification_id)
