"""Contract endpoints."""

from fastapi import APIRouter, Depends

from tenderflow.schemas import ContractChangeCreate, OperationResult, User
from tenderflow.services import TenderOperations, get_operations

from .deps import get_current_user

router = APIRouter()


@router.get("/by-project/{project_id}", response_model=OperationResult)
async def list_by_project(project_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.list_contracts_by_project(project_id)


@router.get("/{contract_id}", response_model=OperationResult)
async def get_contract(contract_id: str, ops: TenderOperations = Depends(get_operations)):
    return await ops.get_contract(contract_id)


@router.post("/{contract_id}/sign", response_model=OperationResult)
async def sign_contract(
    contract_id: str,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.sign_contract(contract_id, user)


@router.post("/{contract_id}/changes", response_model=OperationResult)
async def add_contract_change(
    contract_id: str,
    body: ContractChangeCreate,
    user: User = Depends(get_current_user),
    ops: TenderOperations = Depends(get_operations),
):
    return await ops.add_contract_change(contract_id, body, user)
