"""Pytest configuration and shared fixtures"""

import json

import httpx
import pytest


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep credential and settings lookups away from the user's home"""
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("OPENAI_API_KEY", "DEEPSEEK_API_KEY", "KIMI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    yield tmp_path


def sse(payload: dict | str) -> str:
    """One SSE event line plus its blank separator"""
    if not isinstance(payload, str):
        payload = json.dumps(payload, ensure_ascii=False)
    return f"data: {payload}\n\n"


def frame(content=None, reasoning=None, finish_reason=None, **extra) -> dict:
    """An OpenAI-compatible chat completion chunk"""
    delta = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    return {
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
        **extra,
    }


def split_bytes(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


class RecordingHandler:
    """MockTransport handler that remembers every request it served"""

    def __init__(self, respond):
        self.respond = respond
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return await self.respond(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def json(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


def streaming_response(pieces: list[bytes], status_code: int = 200) -> httpx.Response:
    async def body():
        for piece in pieces:
            yield piece

    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=body(),
    )


@pytest.fixture
def recorder():
    """Build a (handler, transport) pair from an async respond function"""
    def build(respond):
        handler = RecordingHandler(respond)
        return handler, httpx.MockTransport(handler)
    return build
