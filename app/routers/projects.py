"""Project management routes: list, create, edit, undo/redo, send.

Endpoints:
    GET    /api/projects                          — List projects
    POST   /api/projects                          — Create a project
    GET    /api/projects/current                  — Active project
    GET    /api/projects/{id}                     — One project
    DELETE /api/projects/{id}                     — Delete a project
    POST   /api/projects/{id}/select              — Make a project active
    PUT    /api/projects/{id}/title               — Rename
    PUT    /api/projects/{id}/custom-instructions — Project instructions
    PUT    /api/projects/{id}/outline             — Manual outline edit
    POST   /api/projects/{id}/undo                — Previous outline
    POST   /api/projects/{id}/redo                — Next outline
    POST   /api/projects/{id}/clear               — Reset title, outline, chat
    GET    /api/projects/{id}/export              — Download outline
    POST   /api/projects/{id}/messages            — Send a chat message
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response

from app.chat_engine import SendInFlightError, send_message
from app.dependencies import get_project_or_404, get_store, project_view
from app.models.project import (
    CreateProjectRequest,
    CustomInstructionsRequest,
    OutlineEditRequest,
    RenameProjectRequest,
    SendMessageRequest,
)
from execution.outline_history import HistoryError
from execution.project_store import CURRENT_PROJECT_KEY, ProjectNotFoundError, ProjectStore

router = APIRouter(prefix="/api/projects", tags=["projects"])


@router.get("")
async def list_projects(store: ProjectStore = Depends(get_store)):
    """All projects, most recently modified first."""
    current = store.get_current_project()
    return JSONResponse(content={
        "projects": [project_view(p) for p in store.list_projects()],
        "current_project_id": current["id"],
    })


@router.post("", status_code=201)
async def create_project(body: CreateProjectRequest, store: ProjectStore = Depends(get_store)):
    """Create a blank project and make it active."""
    project = store.create_project(body.title)
    return JSONResponse(status_code=201, content=project_view(project))


@router.get("/current")
async def current_project(store: ProjectStore = Depends(get_store)):
    """The active project (created when none exist)."""
    return JSONResponse(content=project_view(store.get_current_project()))


@router.get("/{project_id}")
async def get_project(project_id: str, store: ProjectStore = Depends(get_store)):
    return JSONResponse(content=project_view(get_project_or_404(store, project_id)))


@router.delete("/{project_id}")
async def delete_project(project_id: str, store: ProjectStore = Depends(get_store)):
    """Delete a project; another project becomes active if it was current."""
    if not store.delete_project(project_id):
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found")
    return JSONResponse(content={
        "deleted": project_id,
        "current_project_id": store.kv.get(CURRENT_PROJECT_KEY),
    })


@router.post("/{project_id}/select")
async def select_project(project_id: str, store: ProjectStore = Depends(get_store)):
    get_project_or_404(store, project_id)
    return JSONResponse(content=project_view(store.set_current_project(project_id)))


@router.put("/{project_id}/title")
async def rename_project(
    project_id: str,
    body: RenameProjectRequest,
    store: ProjectStore = Depends(get_store),
):
    get_project_or_404(store, project_id)
    return JSONResponse(content=project_view(store.rename_project(project_id, body.title)))


@router.put("/{project_id}/custom-instructions")
async def update_custom_instructions(
    project_id: str,
    body: CustomInstructionsRequest,
    store: ProjectStore = Depends(get_store),
):
    get_project_or_404(store, project_id)
    project = store.set_custom_instructions(project_id, body.custom_instructions)
    return JSONResponse(content=project_view(project))


@router.put("/{project_id}/outline")
async def edit_outline(
    project_id: str,
    body: OutlineEditRequest,
    store: ProjectStore = Depends(get_store),
):
    """Record a manual outline edit as a new history snapshot."""
    get_project_or_404(store, project_id)
    return JSONResponse(content=project_view(store.edit_outline(project_id, body.outline)))


@router.post("/{project_id}/undo")
async def undo_outline(project_id: str, store: ProjectStore = Depends(get_store)):
    """Step back one outline snapshot, or 409 when there is none."""
    get_project_or_404(store, project_id)
    try:
        project = store.undo_outline(project_id)
    except HistoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return JSONResponse(content=project_view(project))


@router.post("/{project_id}/redo")
async def redo_outline(project_id: str, store: ProjectStore = Depends(get_store)):
    """Step forward one outline snapshot, or 409 when there is none."""
    get_project_or_404(store, project_id)
    try:
        project = store.redo_outline(project_id)
    except HistoryError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return JSONResponse(content=project_view(project))


@router.post("/{project_id}/clear")
async def clear_project(project_id: str, store: ProjectStore = Depends(get_store)):
    get_project_or_404(store, project_id)
    return JSONResponse(content=project_view(store.clear_project(project_id)))


@router.get("/{project_id}/export")
async def export_outline(project_id: str, store: ProjectStore = Depends(get_store)):
    """Download the outline as a text file named after the title."""
    get_project_or_404(store, project_id)
    filename, outline = store.export_outline(project_id)
    return Response(
        content=outline,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{project_id}/messages")
async def post_message(
    project_id: str,
    body: SendMessageRequest,
    store: ProjectStore = Depends(get_store),
):
    """Send a chat message and apply the assistant's reply to the project.

    A failed completion still appends an assistant message explaining the
    failure; the response then carries the failure's status code.
    """
    get_project_or_404(store, project_id)
    try:
        outcome = await send_message(store, project_id, body.message)
    except SendInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found")

    outcome["project"] = project_view(outcome["project"])
    status_code = outcome["error"]["status"] if outcome["error"] else 200
    return JSONResponse(status_code=status_code, content=outcome)
