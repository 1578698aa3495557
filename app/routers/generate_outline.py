"""Stateless completion endpoint.

Endpoints:
    POST /api/generate-outline — Chat reply or (outline, suggested title)
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.chat_engine import complete_with_timeout
from app.dependencies import completion_error_response
from app.models.project import GenerateOutlineRequest
from execution.completion import CompletionError, CompletionRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


@router.post("/generate-outline")
async def generate_outline(body: GenerateOutlineRequest):
    """Run one completion and return its decoded result.

    Returns {outline, suggestedTitle} for document requests and
    {chatResponse} otherwise; failures return {error, details?} with the
    status of the failure class (400, 401, 429, 500, 502 or 504).
    """
    request = CompletionRequest(
        prompt=body.prompt or "",
        current_outline=body.current_outline,
        current_title=body.current_title,
        chat_history=[turn.model_dump() for turn in body.chat_history or []],
        system_instructions=body.system_instructions,
        style_instructions=body.style_instructions,
        technical_instructions=body.technical_instructions,
        custom_instructions=body.custom_instructions,
        is_document_request=body.is_document_request,
    )
    try:
        result = await complete_with_timeout(request)
    except CompletionError as e:
        logger.warning("generate-outline failed (%d): %s", e.status_code, e.message)
        return completion_error_response(e)
    return JSONResponse(content=result.to_response())
