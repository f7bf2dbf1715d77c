"""Shared fixtures for the chatbot test suite."""
import json
import os
import sys

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import httpx
import pytest

from services.cache import InMemoryCache
from services.chat_log import InMemoryChatLog
from services.chatbot import ChatContext
from services.gemini_client import GeminiClient
from services.history_store import HistoryStore
from services.metrics import PerformanceMetrics
from services.prompt_source import PromptSource
from services.property_store import InMemoryPropertyStore
from services.retry import RetryPolicy
from services.sessions import SessionStorage


class FakeClock:
    """Manually advanced time source (seconds since the epoch)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for time.sleep that only remembers the requested delays."""

    def __init__(self):
        self.delays = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def gemini_reply(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class ScriptedEndpoint:
    """httpx handler answering with a fixed sequence of responses or exceptions."""

    def __init__(self, *steps):
        self.steps = list(steps)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, type) and issubclass(step, Exception):
            raise step("scripted failure", request=request)
        if isinstance(step, int):
            return httpx.Response(step, json={"error": {"code": step}})
        return httpx.Response(200, json=step)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def payload(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def prompt_file(tmp_path):
    path = tmp_path / "system_prompt.txt"
    path.write_text("You are a helpful assistant.", encoding="utf-8")
    return path


@pytest.fixture
def make_client(clock, sleeper):
    """Factory for a GeminiClient talking to a ScriptedEndpoint."""

    def _make(endpoint: ScriptedEndpoint, max_attempts: int = 3, metrics=None) -> GeminiClient:
        return GeminiClient(
            api_key="test_key",
            retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=1.0, sleep=sleeper),
            transport=httpx.MockTransport(endpoint),
            metrics=metrics,
            clock=clock
        )

    return _make


@pytest.fixture
def make_context(clock, prompt_file, make_client):
    """Factory for a ChatContext wired to in-memory collaborators."""

    def _make(endpoint: ScriptedEndpoint = None, max_history_length: int = 10) -> ChatContext:
        metrics = PerformanceMetrics()
        cache = InMemoryCache(clock=clock)
        chat_log = InMemoryChatLog(batch_size=10)
        return ChatContext(
            history_store=HistoryStore(
                cache,
                chat_log,
                max_history_length=max_history_length,
                metrics=metrics
            ),
            chat_log=chat_log,
            prompt_source=PromptSource(str(prompt_file), clock=clock, metrics=metrics),
            ai_client=make_client(endpoint, metrics=metrics) if endpoint else None,
            session_storage=SessionStorage(cache=cache, properties=InMemoryPropertyStore()),
            metrics=metrics,
            clock=clock,
            timezone="Asia/Tokyo",
            max_history_length=max_history_length,
        )

    return _make
