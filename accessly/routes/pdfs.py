"""Read-only access to the caller's PDF records."""

import asyncio

from fastapi import APIRouter, Depends

from accessly.dependencies import get_repository
from accessly.utils.app_helpers import SafeJSONResponse
from accessly.utils.auth import get_current_user_id

router = APIRouter(prefix="/api", tags=["pdfs"])


@router.get("/pdfs")
async def list_pdfs(user_id: str = Depends(get_current_user_id), repository=Depends(get_repository)):
    records = await asyncio.to_thread(repository.list_for_owner, user_id)
    return SafeJSONResponse({"success": True, "pdfs": [record.to_dict() for record in records]})


@router.get("/pdf/{pdf_id}")
async def get_pdf(pdf_id: str, user_id: str = Depends(get_current_user_id), repository=Depends(get_repository)):
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    return SafeJSONResponse({"success": True, "pdf": record.to_dict()})
