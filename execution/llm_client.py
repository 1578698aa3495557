"""Thin wrapper around the OpenAI SDK for LLM calls.

Provides a simple interface for sending a message list to a chat model.
All business logic lives elsewhere. This module only handles the API
transport, availability checks, and translating SDK exceptions into a
small taxonomy the retry policy can classify.
"""

from dataclasses import dataclass

import openai

from config.settings import (
    LLM_ATTEMPT_TIMEOUT,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    OPENAI_API_KEY,
)


class LLMClientError(Exception):
    """Raised when the LLM API returns an error."""

    retryable = False


class LLMUnavailableError(LLMClientError):
    """Raised when the LLM service is not configured."""


class LLMAuthenticationError(LLMClientError):
    """Raised when the provider rejects the configured credential."""


class LLMBadRequestError(LLMClientError):
    """Raised when the provider rejects the request as malformed."""


class LLMRateLimitError(LLMClientError):
    """Raised when the provider throttles the request."""

    retryable = True

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class LLMTimeoutError(LLMClientError):
    """Raised when a single provider call times out."""

    retryable = True


class LLMUpstreamError(LLMClientError):
    """Raised on provider 5xx responses and network failures."""

    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class LLMResponse:
    """Structured response from an LLM call."""

    content: str
    model: str
    usage: dict
    stop_reason: str


def is_available() -> bool:
    """Check if the OpenAI API key is configured."""
    return bool(OPENAI_API_KEY)


def _parse_retry_after(error: openai.APIStatusError) -> float | None:
    """Read the Retry-After header (seconds) from a provider error, if any."""
    response = getattr(error, "response", None)
    if response is None:
        return None
    value = response.headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        # HTTP-date form is not worth parsing here
        return None


def classify_error(error: Exception) -> LLMClientError:
    """Translate an SDK or transport exception into an LLMClientError."""
    if isinstance(error, LLMClientError):
        return error
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return LLMAuthenticationError(f"OpenAI rejected the API key: {error}")
    if isinstance(error, openai.RateLimitError):
        return LLMRateLimitError(
            f"OpenAI rate limit exceeded: {error}",
            retry_after=_parse_retry_after(error),
        )
    if isinstance(error, openai.APITimeoutError):
        return LLMTimeoutError(f"OpenAI request timed out: {error}")
    if isinstance(error, openai.APIConnectionError):
        return LLMUpstreamError(f"Could not reach OpenAI: {error}")
    if isinstance(error, openai.InternalServerError):
        return LLMUpstreamError(f"OpenAI API error: {error}", status_code=error.status_code)
    if isinstance(error, openai.APIStatusError):
        return LLMBadRequestError(f"OpenAI API error: {error}")
    if isinstance(error, openai.APIError):
        return LLMUpstreamError(f"OpenAI API error: {error}")
    if isinstance(error, TimeoutError):
        return LLMTimeoutError(f"LLM call timed out: {error}")
    if isinstance(error, (ConnectionError, OSError)):
        return LLMUpstreamError(f"LLM call failed: {error}")
    return LLMClientError(f"LLM call failed: {error}")


def create_client() -> openai.OpenAI:
    """Build an OpenAI client with SDK-level retries disabled.

    Raises:
        LLMUnavailableError: If no API key is configured.
    """
    if not is_available():
        raise LLMUnavailableError("OPENAI_API_KEY is not configured")
    return openai.OpenAI(
        api_key=OPENAI_API_KEY,
        timeout=LLM_ATTEMPT_TIMEOUT,
        max_retries=0,
    )


def chat(
    messages: list[dict],
    model: str | None = None,
    max_tokens: int | None = None,
    temperature: float | None = None,
    client=None,
) -> LLMResponse:
    """Send a message list to the OpenAI API and return the response.

    A single attempt is made; retrying is the caller's concern.

    Args:
        messages: List of message dicts with 'role' and 'content' keys,
            system messages included.
        model: Model to use (defaults to LLM_MODEL from settings).
        max_tokens: Max tokens in response (defaults to LLM_MAX_TOKENS).
        temperature: Sampling temperature (defaults to LLM_TEMPERATURE).
        client: Pre-built OpenAI client (defaults to create_client()).

    Returns:
        LLMResponse with the assistant's reply.

    Raises:
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the API call fails (see classify_error).
    """
    if client is None:
        client = create_client()

    model = model or LLM_MODEL
    max_tokens = max_tokens or LLM_MAX_TOKENS
    temperature = temperature if temperature is not None else LLM_TEMPERATURE

    try:
        response = client.chat.completions.create(
            model=model,
            max_tokens=max_tokens,
            temperature=temperature,
            messages=messages,
        )
    except Exception as e:
        raise classify_error(e) from e

    choice = response.choices[0]
    usage = response.usage
    return LLMResponse(
        content=choice.message.content or "",
        model=response.model,
        usage={
            "prompt_tokens": usage.prompt_tokens if usage else 0,
            "completion_tokens": usage.completion_tokens if usage else 0,
        },
        stop_reason=choice.finish_reason,
    )
