"""Routes for starting and polling checker analyses."""

import asyncio

from fastapi import APIRouter, Depends, Query, Request

from accessly.analysis import AnalysisService
from accessly.dependencies import (
    get_checker,
    get_repository,
    get_storage_backend,
    read_json_body,
    require_field,
)
from accessly.exceptions import BadRequest
from accessly.utils.app_helpers import SafeJSONResponse
from accessly.utils.auth import get_current_user_id

router = APIRouter(prefix="/api/checker", tags=["analysis"])


@router.post("/start-analysis")
async def start_analysis(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
    checker=Depends(get_checker),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    service = AnalysisService(repository, storage, checker)
    result = await asyncio.to_thread(service.start, record)
    return SafeJSONResponse(result)


@router.get("/status")
async def analysis_status(
    pdf_id: str = Query(None, alias="pdfId"),
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
    checker=Depends(get_checker),
):
    if not pdf_id:
        raise BadRequest("Missing pdfId")
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    service = AnalysisService(repository, storage, checker)
    result = await asyncio.to_thread(service.status, record)
    return SafeJSONResponse(result)


@router.post("/force-refresh")
async def force_refresh(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
    checker=Depends(get_checker),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    service = AnalysisService(repository, storage, checker)
    result = await asyncio.to_thread(service.force_refresh, record)
    return SafeJSONResponse(result)


@router.get("/analysis")
async def latest_analysis(
    pdf_id: str = Query(None, alias="pdfId"),
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
    checker=Depends(get_checker),
):
    if not pdf_id:
        raise BadRequest("Missing pdfId")
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    service = AnalysisService(repository, storage, checker)
    result = await asyncio.to_thread(service.latest, record)
    return SafeJSONResponse(result)
