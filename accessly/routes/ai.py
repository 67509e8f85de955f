"""AI-assisted routes: transcription, alt text generation and contrast analysis."""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Request, UploadFile

from accessly import ai_service
from accessly.dependencies import (
    get_repository,
    get_storage_backend,
    read_json_body,
    require_field,
)
from accessly.exceptions import BadRequest
from accessly.fix_orchestrator import FixOrchestrator
from accessly.models import Issue
from accessly.settings import AIConfig
from accessly.utils.app_helpers import SafeJSONResponse
from accessly.utils.auth import get_current_user_id

logger = logging.getLogger("accessly-ai")

router = APIRouter(prefix="/api/ai", tags=["ai"])


def _is_image_issue(issue: Issue) -> bool:
    lowered = issue.type.lower()
    return "alt text" in lowered or "image" in lowered


def _is_contrast_issue(issue: Issue) -> bool:
    return "contrast" in issue.type.lower()


@router.post("/transcribe")
async def transcribe(
    audio: Optional[UploadFile] = File(None),
    user_id: str = Depends(get_current_user_id),
):
    if audio is None:
        raise BadRequest("No audio file provided")
    data = await audio.read()
    text = await asyncio.to_thread(
        ai_service.transcribe_audio, data, audio.filename or "recording.webm"
    )
    return SafeJSONResponse({"success": True, "text": text})


@router.get("/transcribe")
async def transcribe_info(user_id: str = Depends(get_current_user_id)):
    config = AIConfig.from_env()
    return SafeJSONResponse(
        {
            "success": True,
            "message": "Voice transcription endpoint is ready",
            "whisperModel": config.transcribe_model,
        }
    )


@router.post("/generate-alt-text")
async def generate_alt_text(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")
    image_ids = payload.get("imageIds")
    auto_apply = bool(payload.get("autoApply", False))
    if image_ids is not None and not isinstance(image_ids, list):
        raise BadRequest("imageIds must be a list")

    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    if not record.file_url:
        raise BadRequest("PDF has no stored file")
    pdf_bytes = await asyncio.to_thread(storage.download_url, record.file_url)
    images = await asyncio.to_thread(ai_service.extract_images, pdf_bytes)
    if image_ids is not None:
        wanted = {str(image_id) for image_id in image_ids}
        images = [image for image in images if image.id in wanted]
    if not images:
        return SafeJSONResponse(
            {"success": True, "message": "No images found in PDF", "altTexts": [], "cost": 0, "applied": False}
        )

    results = await asyncio.to_thread(ai_service.batch_generate_alt_text, images)
    response = {
        "success": True,
        "message": f"Generated alt text for {len(results)} images",
        "altTexts": [result.to_dict() for result in results],
        "cost": ai_service.estimate_ai_cost("altText", len(images)),
        "applied": False,
    }
    if auto_apply and any(result.success for result in results):
        orchestrator = FixOrchestrator(repository, storage)
        outcome = await asyncio.to_thread(
            orchestrator.mark_metadata_only, record, _is_image_issue, "aiGenerated"
        )
        response.update({"applied": True, "newScore": outcome.new_score, "fixedCount": outcome.fixed_count})
    return SafeJSONResponse(response)


@router.post("/analyze-contrast")
async def analyze_contrast(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    repository=Depends(get_repository),
    storage=Depends(get_storage_backend),
):
    payload = await read_json_body(request)
    pdf_id = require_field(payload, "pdfId")
    colors = payload.get("colors")
    auto_fix = bool(payload.get("autoFix", False))
    if not isinstance(colors, list) or not colors:
        raise BadRequest("colors must be a non-empty list of foreground/background pairs")

    analysis = []
    results = []
    for pair in colors:
        if not isinstance(pair, dict):
            raise BadRequest("Each colour entry must be an object")
        foreground = ai_service.RGB.from_dict(pair.get("foreground") or {})
        background = ai_service.RGB.from_dict(pair.get("background") or {})
        try:
            font_size = float(pair.get("fontSize") or 12)
        except (TypeError, ValueError):
            raise BadRequest("fontSize must be a number")
        result = ai_service.analyze_color_contrast(foreground, background, font_size)
        results.append(result)
        analysis.append(
            {
                "foreground": pair.get("foreground"),
                "background": pair.get("background"),
                "fontSize": font_size,
                "page": pair.get("page") or 1,
                "location": pair.get("location") or "unknown",
                **result.to_dict(),
            }
        )

    summary = ai_service.summarize_contrast(results)
    record = await asyncio.to_thread(repository.get_for_owner, pdf_id, user_id)
    response = {"success": True, "analysis": analysis, **summary, "applied": False}
    if auto_fix and summary["aaFailures"] > 0:
        orchestrator = FixOrchestrator(repository, storage)
        outcome = await asyncio.to_thread(
            orchestrator.mark_metadata_only, record, _is_contrast_issue, "aiAnalyzed"
        )
        response.update({"applied": True, "newScore": outcome.new_score, "fixedCount": outcome.fixed_count})
    return SafeJSONResponse(response)
