"""Canonical stream and embedding types shared by every provider"""

from dataclasses import dataclass, field
from typing import Literal

import numpy as np


@dataclass
class Usage:
    """Token accounting reported by a backend"""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, data: dict | None) -> "Usage | None":
        """Build from an OpenAI-style usage object"""
        if not isinstance(data, dict):
            return None
        prompt = _count(data.get("prompt_tokens"))
        completion = _count(data.get("completion_tokens"))
        total = _count(data.get("total_tokens")) or prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _count(value) -> int:
    # Some backends send null or strings for counts they do not track
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class ChunkMetadata:
    model: str | None = None
    finish_reason: str | None = None
    usage: Usage | None = None


@dataclass
class StreamChunk:
    """One normalized unit of streamed output.

    Exactly one chunk per request has ``done`` set, and it is the last one.
    """
    content: str = ""
    reasoning_content: str | None = None
    done: bool = False
    reasoning_done: bool | None = None
    metadata: ChunkMetadata | None = None


@dataclass(frozen=True)
class StreamEvent:
    """Tagged stream event for async-iterator consumers"""
    type: Literal["content", "reasoning", "usage", "done", "error"]
    text: str = ""
    usage: Usage | None = None
    metadata: ChunkMetadata | None = None
    error: Exception | None = None


def chunk_events(chunk: StreamChunk) -> list[StreamEvent]:
    """Split a chunk into the tagged events it carries"""
    events = []
    if chunk.reasoning_content:
        events.append(StreamEvent(type="reasoning", text=chunk.reasoning_content))
    if chunk.content:
        events.append(StreamEvent(type="content", text=chunk.content))
    if chunk.done:
        if chunk.metadata and chunk.metadata.usage:
            events.append(StreamEvent(type="usage", usage=chunk.metadata.usage))
        events.append(StreamEvent(type="done", metadata=chunk.metadata))
    return events


@dataclass
class EmbeddingOptions:
    """Per-call embedding overrides"""
    model: str | None = None
    dimensions: int | None = None


@dataclass
class EmbeddingResult:
    """A single embedding vector.

    ``dimensions`` is always derived from the vector, never from the
    requested size.
    """
    embedding: np.ndarray
    model: str
    tokens_used: int = 0
    dimensions: int = field(init=False)

    def __post_init__(self):
        self.embedding = np.asarray(self.embedding, dtype=np.float32)
        self.dimensions = int(self.embedding.shape[0])
