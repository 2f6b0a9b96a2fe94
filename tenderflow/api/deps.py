"""Request dependencies shared by the routers."""

import logging

from fastapi import Depends, Header, HTTPException, UploadFile

from tenderflow.schemas import FileUpload, User
from tenderflow.services import Services, get_services

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: str = Header(..., description="Id of the acting user"),
    services: Services = Depends(get_services),
) -> User:
    """
    Acting user from the ``X-User-Id`` header.

    Authentication happens in front of this service; the id is trusted.
    """
    document = await services.gateway.get("users", x_user_id)
    if not document:
        logger.warning(f"Unknown user id in request: {x_user_id}")
        raise HTTPException(status_code=401, detail="Ukjent bruker")
    return User.model_validate(document)


async def read_uploads(files: list[UploadFile]) -> list[FileUpload]:
    return [
        FileUpload(
            name=upload.filename or "file",
            content=await upload.read(),
            content_type=upload.content_type or "application/octet-stream",
        )
        for upload in files
    ]
