"""Server-rendered pages: project list and settings."""

from fastapi import APIRouter, Depends, Request

from app.dependencies import get_store
from execution.outline_history import OutlineHistory
from execution.project_store import ProjectStore
from execution.prompt_builder import DEFAULT_INSTRUCTIONS

router = APIRouter()


@router.get("/")
async def index(request: Request, store: ProjectStore = Depends(get_store)):
    """Landing page: the active project plus every saved project."""
    current = store.get_current_project()
    projects = [
        {
            "id": p["id"],
            "title": p["title"],
            "revisions": OutlineHistory.from_project(p).revision_count,
            "messages": len(p["chat_history"]),
            "last_modified": p["last_modified"],
            "is_current": p["id"] == current["id"],
        }
        for p in store.list_projects()
    ]
    return request.app.state.templates.TemplateResponse(
        request, "index.html", {"projects": projects, "current": current},
    )


@router.get("/settings")
async def settings_page(request: Request, store: ProjectStore = Depends(get_store)):
    """Settings page showing the instruction blocks in effect."""
    overrides = store.get_instructions()
    blocks = [
        {
            "name": block,
            "value": overrides.get(block) or default,
            "is_default": not overrides.get(block),
        }
        for block, default in DEFAULT_INSTRUCTIONS.items()
    ]
    return request.app.state.templates.TemplateResponse(
        request, "settings.html", {"blocks": blocks},
    )
