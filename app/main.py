"""FastAPI application for the Outline Writer."""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.dependencies import completion_error_response, error_body
from app.routers import generate_outline, instructions, pages, projects
from config.settings import LOG_LEVEL
from execution.completion import CompletionError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_DIR = Path(__file__).parent

app = FastAPI(title="Outline Writer")

# Store templates on app state so routers can access them
app.state.templates = Jinja2Templates(directory=str(APP_DIR / "templates"))

# Include routers
app.include_router(pages.router)
app.include_router(generate_outline.router)
app.include_router(projects.router)
app.include_router(instructions.router)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies as 400 with the field errors."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(CompletionError)
async def completion_error_handler(request: Request, exc: CompletionError):
    return completion_error_response(exc)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("An unexpected error occurred", exc))
