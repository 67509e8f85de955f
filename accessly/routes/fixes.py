"""Routes for applying issue fixes and auto-tag remediation."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Request

from accessly.dependencies import (
    get_checker,
    get_repository,
    get_storage_backend,
    read_json_body,
    require_field,
)
from accessly.fix_orchestrator import FixOrchestrator
from accessly.utils.app_helpers import SafeJSONResponse
from accessly.utils.auth import get_current_user_id

logger = logging.getLogger("accessly-fixes")

router = APIRouter(prefix="/api/checker", tags=["fixes"])


@router.post("/fix-issue")
async def fix_issue(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")
    issue_id = require_field(payload, "issueId")
    issue_type = payload.get("issueType") or None

    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    orchestrator = FixOrchestrator(repository, storage)
    outcome = await asyncio.to_thread(orchestrator.fix_issue, record, issue_id, issue_type)
    message = (
        "Issue fixed in PDF"
        if outcome.actually_fixed
        else "Issue marked as fixed; the PDF file could not be updated"
    )
    return SafeJSONResponse(
        {
            "success": True,
            "message": message,
            "newScore": outcome.new_score,
            "remainingIssues": outcome.remaining_issues,
            "issues": outcome.issues_payload(),
            "actuallyFixed": outcome.actually_fixed,
            "fileUrl": outcome.file_url,
        }
    )


@router.post("/fix-all")
async def fix_all(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")

    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    orchestrator = FixOrchestrator(repository, storage)
    outcome = await asyncio.to_thread(orchestrator.fix_all, record)
    logger.info("[Fixes] Fix-all on %s marked %d issues", pdf_id, outcome.fixed_count)
    return SafeJSONResponse(
        {
            "success": True,
            "message": f"Fixed {outcome.fixed_count} issues",
            "newScore": outcome.new_score,
            "fixedCount": outcome.fixed_count,
            "issues": outcome.issues_payload(),
            "actuallyFixed": outcome.actually_fixed,
            "fileUrl": outcome.file_url,
        }
    )


@router.post("/auto-fix")
async def auto_fix(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
    checker=Depends(get_checker),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")

    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    orchestrator = FixOrchestrator(repository, storage)
    result = await asyncio.to_thread(orchestrator.auto_tag, record, checker)
    return SafeJSONResponse({"success": True, "message": "PDF auto-tagged; analysis restarted", **result})
