"""Shared fixtures: provider fakes, httpx mock transports, and configured clients."""

import json
from typing import Callable, Optional

import httpx
import pytest

from errors import AIServiceError
from llm_client import LLMClient
from schemas import CompletionRequest, CompletionResponse
from settings import AIConfig
from telemetry import DiagnosticLog

BASE_URL = "https://llm.test/v1"


def completion_body(content: str, prompt_tokens: int = 10, completion_tokens: int = 20) -> dict:
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


class FakeProvider:
    """Scripted completion provider; each reply is a string or an exception to raise."""

    model = "fake-model"

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.requests: list[CompletionRequest] = []
        self.call_args: list[dict] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate_completion(self, request: CompletionRequest, mode=None, prompt_id=None) -> CompletionResponse:
        self.requests.append(request)
        self.call_args.append({"mode": mode, "prompt_id": prompt_id})
        if not self.replies:
            raise AIServiceError("no scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return CompletionResponse.model_validate(completion_body(reply))


class ScriptedTransport:
    """Serves queued httpx responses and records every request."""

    def __init__(self, responses: Optional[list] = None, handler: Optional[Callable] = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.handler is not None:
            return self.handler(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def payloads(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]

    def as_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_provider_factory():
    return FakeProvider


@pytest.fixture
def ai_config() -> AIConfig:
    return AIConfig(
        api_key="test-key",
        base_url=BASE_URL,
        model="test-model",
        max_tokens=2000,
        temperature=0.2,
        timeout=30.0,
        retry_delay=0.0,
        max_retries=3,
    )


@pytest.fixture
def make_client(ai_config):
    def _make(scripted: ScriptedTransport, diagnostics: Optional[DiagnosticLog] = None, **overrides) -> LLMClient:
        config = ai_config.model_copy(update=overrides) if overrides else ai_config
        return LLMClient(config=config, transport=scripted.as_transport(), diagnostics=diagnostics)
    return _make


@pytest.fixture
def scripted():
    return ScriptedTransport


@pytest.fixture
def ok_response():
    def _ok(content: str, **usage) -> httpx.Response:
        return httpx.Response(200, json=completion_body(content, **usage))
    return _ok


@pytest.fixture(autouse=True)
def _clean_ai_env(monkeypatch):
    for name in (
        "AI_API_KEY", "AI_API_URL", "AI_MODEL", "AI_MAX_TOKENS", "AI_TEMPERATURE",
        "AI_TOP_P", "AI_TIMEOUT", "AI_SEED", "AI_FREQUENCY_PENALTY", "AI_PRESENCE_PENALTY",
        "AI_ENABLE_RETRIES", "AI_MAX_RETRIES", "AI_RETRY_DELAY_SEC",
        "ENABLE_LOGGING", "LOG_LEVEL", "CORS_ORIGIN", "PORT", "DIAGNOSTICS_ECHO",
    ):
        monkeypatch.delenv(name, raising=False)
