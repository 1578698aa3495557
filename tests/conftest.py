"""Shared test fixtures for the Outline Writer test suite."""

import pytest

from execution.kv_store import InMemoryKeyValueStore
from execution.llm_client import LLMResponse
from execution.project_store import ProjectStore


@pytest.fixture(autouse=True)
def set_test_environment(monkeypatch):
    """Ensure all tests run with ENVIRONMENT=test and without a real key."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setattr("execution.llm_client.OPENAI_API_KEY", "")


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv):
    return ProjectStore(kv)


@pytest.fixture
def make_response():
    """Build an LLMResponse with the given content."""
    def _make(content: str, model: str = "gpt-test") -> LLMResponse:
        return LLMResponse(
            content=content,
            model=model,
            usage={"prompt_tokens": 10, "completion_tokens": 5},
            stop_reason="stop",
        )
    return _make


@pytest.fixture
def no_sleep():
    """Records retry delays instead of sleeping."""
    delays = []
    def _sleep(seconds: float) -> None:
        delays.append(seconds)
    _sleep.delays = delays
    return _sleep


@pytest.fixture
def sample_project():
    """Return a valid project with a short history."""
    return {
        "id": "proj-1",
        "title": "Paper Tigers",
        "outline": "B",
        "chat_history": [
            {"id": "m1", "sender": "user", "message": "Hello", "timestamp": 1},
            {"id": "m2", "sender": "assistant", "message": "Hi there", "timestamp": 2},
        ],
        "outline_history": ["", "A", "B"],
        "current_history_index": 2,
        "custom_instructions": "",
        "last_modified": 1700000000000,
    }
