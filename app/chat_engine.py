"""Chat send flow for the outline writer.

Takes a user message for a project, builds a completion request from the
project's outline, title, recent chat and instructions, runs the completion
off the event loop with a time ceiling, and applies the result: a chat
reply is appended as an assistant message, a document reply becomes a new
outline snapshot (and possibly a new title). Failures are appended as an
assistant message too, so a send is never silently dropped.
"""

import asyncio
import functools
import logging
import threading

from config.settings import CHAT_CONTEXT_LIMIT, LLM_REQUEST_TIMEOUT
from execution.completion import (
    CompletionError,
    CompletionRequest,
    CompletionResult,
    CompletionTimeoutError,
    UpstreamError,
    ValidationError,
    generate_completion,
)
from execution.project_store import ProjectNotFoundError, ProjectStore

logger = logging.getLogger(__name__)

DOCUMENT_KEYWORDS = ("outline", "document")

OUTLINE_UPDATED_MESSAGE = "I've updated the outline based on your feedback."

INVALID_RESPONSE_MESSAGE = "Invalid API response format"


class SendInFlightError(Exception):
    """Raised when a project already has a message being processed."""


# In-memory in-flight set (process-level singleton, thread-safe)
_in_flight: set[str] = set()
_in_flight_lock = threading.Lock()


def is_send_in_flight(project_id: str) -> bool:
    with _in_flight_lock:
        return project_id in _in_flight


def _begin_send(project_id: str) -> bool:
    with _in_flight_lock:
        if project_id in _in_flight:
            return False
        _in_flight.add(project_id)
        return True


def _end_send(project_id: str) -> None:
    with _in_flight_lock:
        _in_flight.discard(project_id)


def is_document_request(text: str) -> bool:
    """A message asks for outline content when it mentions the outline or document."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in DOCUMENT_KEYWORDS)


def to_chat_turns(chat_history: list[dict], limit: int = CHAT_CONTEXT_LIMIT) -> list[dict]:
    """Convert stored chat messages to role/content turns, newest `limit` only."""
    if limit <= 0:
        return []
    return [
        {"role": message["sender"], "content": message["message"]}
        for message in chat_history[-limit:]
    ]


def build_request(project: dict, prompt: str, instructions: dict, prior_history: list[dict]) -> CompletionRequest:
    """Build a completion request from a project's current state."""
    return CompletionRequest(
        prompt=prompt,
        current_outline=project["outline"] or None,
        current_title=project["title"] or None,
        chat_history=to_chat_turns(prior_history),
        system_instructions=instructions.get("system"),
        style_instructions=instructions.get("style"),
        technical_instructions=instructions.get("technical"),
        custom_instructions=project["custom_instructions"] or None,
        is_document_request=is_document_request(prompt),
    )


def error_message(error: CompletionError) -> str:
    """Plain-language assistant reply for a failed completion."""
    reason = error.message.rstrip(". ")
    return f"I apologize, but I encountered an error: {reason}. Please try again."


async def _in_thread(fn, *args):
    """Run a blocking store call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(fn, *args))


async def complete_with_timeout(
    request: CompletionRequest,
    complete=None,
    timeout: float | None = None,
) -> CompletionResult:
    """Run a completion in a worker thread, bounded by a time ceiling.

    Raises:
        CompletionTimeoutError: If the ceiling is reached first.
        CompletionError: Whatever the completion pipeline raises.
    """
    complete = complete or generate_completion
    timeout = timeout if timeout is not None else LLM_REQUEST_TIMEOUT
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, complete, request), timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Completion did not finish within %.0fs", timeout)
        raise CompletionTimeoutError(
            f"The request timed out after {timeout:.0f} seconds"
        ) from e


def _apply_result(store: ProjectStore, project_id: str, result: CompletionResult) -> str:
    """Write a successful result into the project and return the reply text.

    Raises:
        UpstreamError: If the reply carries no chat text or no outline, so
            an empty reply never replaces the current outline.
    """
    if not result.is_document:
        if not result.chat_response or not result.chat_response.strip():
            raise UpstreamError(INVALID_RESPONSE_MESSAGE)
        return result.chat_response

    if not result.outline or not result.outline.strip():
        raise UpstreamError(INVALID_RESPONSE_MESSAGE)
    project = store.edit_outline(project_id, result.outline)
    reply = OUTLINE_UPDATED_MESSAGE
    title = result.suggested_title
    if title and title != project["title"]:
        store.rename_project(project_id, title)
        reply += f' I\'ve also updated the title to better reflect the content: "{title}"'
    return reply


async def send_message(
    store: ProjectStore,
    project_id: str,
    text: str,
    complete=None,
    timeout: float | None = None,
) -> dict:
    """Process one user message for a project.

    Args:
        store: The project store.
        project_id: Target project.
        text: The user's message.
        complete: Completion function (defaults to generate_completion).
        timeout: Ceiling for the completion call in seconds.

    Returns:
        Dict with the updated project, the user and assistant messages, the
        decoded result (or None) and the error (or None).

    Raises:
        ValidationError: If the message is empty.
        ProjectNotFoundError: If the project does not exist, or is deleted
            while the message is pending.
        SendInFlightError: If a message for this project is still pending.
    """
    text = text.strip()
    if not text:
        raise ValidationError("Message is required")
    project = await _in_thread(store.get_project, project_id)

    if not _begin_send(project_id):
        raise SendInFlightError(f"A message for project '{project_id}' is already being processed")
    try:
        prior_history = list(project["chat_history"])
        instructions = await _in_thread(store.get_instructions)
        user_message = await _in_thread(store.append_chat_message, project_id, "user", text)
        request = build_request(project, text, instructions, prior_history)

        applied = None
        error = None
        try:
            result = await complete_with_timeout(request, complete, timeout)
            reply = await _in_thread(_apply_result, store, project_id, result)
            applied = result
        except ProjectNotFoundError:
            logger.warning("Project %s was deleted while a message was pending", project_id)
            raise
        except CompletionError as e:
            logger.warning("Send failed for project %s: %s", project_id, e.message)
            error = e
            reply = error_message(e)
        except Exception as e:
            logger.exception("Unexpected error sending message for project %s", project_id)
            error = CompletionError(f"An unexpected error occurred: {e}")
            reply = error_message(error)

        assistant_message = await _in_thread(store.append_chat_message, project_id, "assistant", reply)
        updated = await _in_thread(store.get_project, project_id)
    finally:
        _end_send(project_id)

    error_body = None
    if error is not None:
        error_body = {"error": error.message, "status": error.status_code}
        if getattr(error, "retry_after", None) is not None:
            error_body["retryAfter"] = error.retry_after

    return {
        "project": updated,
        "user_message": user_message,
        "assistant_message": assistant_message,
        "result": applied.to_response() if applied else None,
        "error": error_body,
    }
