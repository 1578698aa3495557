"""Global instruction overrides (system, style, technical).

Endpoints:
    GET  /api/settings               — Saved overrides and built-in defaults
    PUT  /api/settings               — Save overrides
    POST /api/settings/reset/{block} — Drop one override
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from app.dependencies import get_store
from app.models.project import InstructionsUpdateRequest
from execution.project_store import ProjectStore
from execution.prompt_builder import DEFAULT_INSTRUCTIONS

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _settings_payload(overrides: dict) -> dict:
    return {
        "instructions": overrides,
        "effective": {
            block: overrides.get(block) or default
            for block, default in DEFAULT_INSTRUCTIONS.items()
        },
        "defaults": DEFAULT_INSTRUCTIONS,
    }


@router.get("")
async def get_settings(store: ProjectStore = Depends(get_store)):
    return JSONResponse(content=_settings_payload(store.get_instructions()))


@router.put("")
async def save_settings(body: InstructionsUpdateRequest, store: ProjectStore = Depends(get_store)):
    """Save the given blocks; omitted blocks keep their current value."""
    overrides = store.save_instructions(body.model_dump(exclude_none=True))
    return JSONResponse(content=_settings_payload(overrides))


@router.post("/reset/{block}")
async def reset_setting(block: str, store: ProjectStore = Depends(get_store)):
    """Restore the built-in default for one block."""
    try:
        overrides = store.reset_instructions(block)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return JSONResponse(content=_settings_payload(overrides))
