"""Outline and chat completion pipeline.

Validates a completion request, assembles the prompt, submits it to the
LLM with bounded retries, and decodes the reply into either a chat
response or an (outline, suggested title) pair.

Request lifecycle:
    validating -> assembling -> submitting -> (retrying -> submitting)*
    -> decoding -> done, with validating -> failed and submitting -> failed
    for bad input, terminal provider errors, or an exhausted retry budget.
"""

import logging
import time
from dataclasses import dataclass, field

from execution import llm_client
from execution.llm_client import (
    LLMAuthenticationError,
    LLMClientError,
    LLMRateLimitError,
    LLMTimeoutError,
    LLMUnavailableError,
)
from execution.prompt_builder import build_messages
from execution.retry_policy import RetryPolicy, call_with_retry
from execution.title_extractor import TitleFound, extract_title

logger = logging.getLogger(__name__)

CHAT_ROLES = ("user", "assistant")


class CompletionError(Exception):
    """Base class for failures reported to the caller."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(CompletionError):
    """The request is missing a prompt or carries malformed history."""

    status_code = 400


class ConfigurationError(CompletionError):
    """The provider credential is not configured."""

    status_code = 500


class AuthenticationError(CompletionError):
    """The provider rejected the configured credential."""

    status_code = 401


class RateLimitError(CompletionError):
    """The provider kept throttling after every retry."""

    status_code = 429

    def __init__(self, message: str, retry_after: float | None = None, details: str | None = None):
        super().__init__(message, details)
        self.retry_after = retry_after


class UpstreamError(CompletionError):
    """The provider failed after every retry, or refused the request."""

    status_code = 502


class CompletionTimeoutError(CompletionError):
    """The provider did not answer within the request ceiling."""

    status_code = 504


@dataclass
class CompletionRequest:
    """Everything needed to build one completion call."""

    prompt: str
    current_outline: str | None = None
    current_title: str | None = None
    chat_history: list[dict] = field(default_factory=list)
    system_instructions: str | None = None
    style_instructions: str | None = None
    technical_instructions: str | None = None
    custom_instructions: str | None = None
    is_document_request: bool = False


@dataclass
class CompletionResult:
    """Decoded model output for one request."""

    is_document: bool
    chat_response: str | None = None
    outline: str | None = None
    suggested_title: str | None = None
    usage: dict = field(default_factory=dict)

    def to_response(self) -> dict:
        """Return the JSON body sent to clients."""
        if self.is_document:
            return {"outline": self.outline, "suggestedTitle": self.suggested_title}
        return {"chatResponse": self.chat_response}


def validate_request(request: CompletionRequest) -> None:
    """Check the request before any provider call.

    Raises:
        ValidationError: If the prompt is empty or the chat history is not a
            list of role/content pairs.
    """
    if not isinstance(request.prompt, str) or not request.prompt.strip():
        raise ValidationError("Prompt is required")

    history = request.chat_history
    if history is None:
        return
    if not isinstance(history, list):
        raise ValidationError("chatHistory must be a list of role/content pairs")
    for i, turn in enumerate(history):
        if not isinstance(turn, dict):
            raise ValidationError(f"chatHistory[{i}] must be an object with role and content")
        if turn.get("role") not in CHAT_ROLES:
            raise ValidationError(
                f"chatHistory[{i}].role must be one of {list(CHAT_ROLES)}"
            )
        if not isinstance(turn.get("content"), str):
            raise ValidationError(f"chatHistory[{i}].content must be a string")


def decode_response(text: str, is_document_request: bool, usage: dict | None = None) -> CompletionResult:
    """Turn raw model text into a CompletionResult."""
    usage = usage or {}
    if not is_document_request:
        return CompletionResult(is_document=False, chat_response=text, usage=usage)

    match = extract_title(text)
    if isinstance(match, TitleFound):
        return CompletionResult(
            is_document=True,
            outline=match.remainder,
            suggested_title=match.title,
            usage=usage,
        )
    return CompletionResult(is_document=True, outline=text, suggested_title=None, usage=usage)


def _to_completion_error(error: LLMClientError) -> CompletionError:
    """Map a provider error to the caller-facing taxonomy."""
    message = str(error)
    if isinstance(error, LLMUnavailableError):
        return ConfigurationError(
            "OpenAI API key is not configured.",
            details="Set OPENAI_API_KEY in the environment or in a .env file.",
        )
    if isinstance(error, LLMAuthenticationError):
        return AuthenticationError(message)
    if isinstance(error, LLMRateLimitError):
        return RateLimitError(message, retry_after=error.retry_after)
    if isinstance(error, LLMTimeoutError):
        return CompletionTimeoutError(message)
    return UpstreamError(message)


def _is_retryable(error: Exception) -> bool:
    return getattr(error, "retryable", False)


def generate_completion(
    request: CompletionRequest,
    chat_fn=None,
    policy: RetryPolicy | None = None,
    sleep=time.sleep,
) -> CompletionResult:
    """Run one request through validation, assembly, submission and decoding.

    Args:
        request: The completion request.
        chat_fn: Callable taking a message list and returning an
            LLMResponse (defaults to llm_client.chat).
        policy: Retry budget and backoff schedule.
        sleep: Used between attempts.

    Returns:
        The decoded CompletionResult.

    Raises:
        ValidationError: Bad input. No provider call is made.
        ConfigurationError: No API key configured.
        AuthenticationError: Credential rejected. Not retried.
        RateLimitError: Still throttled after every retry.
        CompletionTimeoutError: Every attempt timed out.
        UpstreamError: Any other provider failure.
    """
    validate_request(request)
    chat_fn = chat_fn or llm_client.chat

    messages = build_messages(
        prompt=request.prompt,
        current_outline=request.current_outline,
        current_title=request.current_title,
        chat_history=request.chat_history,
        system_instructions=request.system_instructions,
        style_instructions=request.style_instructions,
        technical_instructions=request.technical_instructions,
        custom_instructions=request.custom_instructions,
        is_document_request=request.is_document_request,
    )
    logger.info(
        "Submitting %s request (outline=%s, title=%s, history=%d, prompt_length=%d)",
        "document" if request.is_document_request else "chat",
        bool(request.current_outline),
        bool(request.current_title),
        len(request.chat_history or []),
        len(request.prompt),
    )

    try:
        response = call_with_retry(
            lambda: chat_fn(messages),
            is_retryable=_is_retryable,
            policy=policy,
            sleep=sleep,
        )
    except LLMClientError as e:
        raise _to_completion_error(e) from e

    logger.info("Received response from %s (usage=%s)", response.model, response.usage)
    result = decode_response(response.content, request.is_document_request, response.usage)
    if result.is_document:
        logger.debug(
            "Decoded outline (has_title=%s, outline_length=%d)",
            result.suggested_title is not None,
            len(result.outline),
        )
    return result
