"""Shared dependencies for the FastAPI web layer."""

import traceback
from functools import lru_cache

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from config import settings
from execution.completion import CompletionError
from execution.kv_store import JsonFileKeyValueStore
from execution.outline_history import OutlineHistory
from execution.project_store import ProjectNotFoundError, ProjectStore


@lru_cache(maxsize=1)
def get_store() -> ProjectStore:
    """Process-wide project store backed by the JSON file at STORE_PATH.

    Tests replace it through app.dependency_overrides.
    """
    return ProjectStore(JsonFileKeyValueStore(settings.STORE_PATH))


def get_project_or_404(store: ProjectStore, project_id: str) -> dict:
    """Load a project or raise 404."""
    try:
        return store.get_project(project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found")


def project_view(project: dict) -> dict:
    """Project payload for clients, with undo/redo availability."""
    history = OutlineHistory.from_project(project)
    return {**project, "history": history.to_dict()}


def error_body(message: str, error: Exception | None = None) -> dict:
    """Build an {error, details?} body; details carry the traceback outside production."""
    body = {"error": message}
    details = getattr(error, "details", None)
    if error is not None and settings.ENVIRONMENT != "production":
        trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        details = f"{details}\n\n{trace}" if details else trace
    if details:
        body["details"] = details
    return body


def completion_error_response(error: CompletionError) -> JSONResponse:
    """Map a completion failure to its HTTP status and error body."""
    body = error_body(error.message, error)
    headers = None
    retry_after = getattr(error, "retry_after", None)
    if retry_after is not None:
        body["retryAfter"] = retry_after
        headers = {"Retry-After": str(int(round(retry_after)))}
    return JSONResponse(status_code=error.status_code, content=body, headers=headers)
