"""Reasoning/content normalization for streamed chat frames.

Vendor differences stop at the frame adapters: an adapter maps one decoded
JSON frame into a ``FrameDelta`` and ``ReasoningNormalizer`` turns the
resulting deltas into canonical ``StreamChunk`` objects. The normalizer
tracks the reasoning sub-protocol:

    NO_REASONING_SEEN -> REASONING_ACTIVE -> REASONING_COMPLETE

``reasoning_done`` is set exactly once per request: on the first
content-only chunk after reasoning, or on the terminal chunk if the stream
ends while reasoning is still active.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .base import ChunkMetadata, StreamChunk, Usage


@dataclass
class FrameDelta:
    """Vendor-neutral view of one decoded frame"""
    content: str | None = None
    reasoning: str | None = None
    finish_reason: str | None = None
    model: str | None = None
    usage: Usage | None = None


FrameAdapter = Callable[[dict[str, Any]], FrameDelta]


def openai_frame(frame: dict[str, Any]) -> FrameDelta:
    """Adapter for OpenAI-compatible chat completion chunks"""
    choices = frame.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices else {}
    if not isinstance(choice, dict):
        choice = {}
    delta = choice.get("delta") or {}
    if not isinstance(delta, dict):
        delta = {}

    # DeepSeek/Qwen use reasoning_content, OpenRouter uses reasoning
    reasoning = delta.get("reasoning_content") or delta.get("reasoning")
    content = delta.get("content")

    return FrameDelta(
        content=_text(content),
        reasoning=_text(reasoning),
        finish_reason=_text(choice.get("finish_reason")),
        model=_text(frame.get("model")),
        usage=Usage.from_dict(frame.get("usage")),
    )


def _text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


class ReasoningState(Enum):
    NO_REASONING_SEEN = "no_reasoning_seen"
    REASONING_ACTIVE = "reasoning_active"
    REASONING_COMPLETE = "reasoning_complete"


class ReasoningNormalizer:
    """Per-request state machine producing canonical chunks"""

    def __init__(self):
        self.reset()

    def reset(self):
        self.state = ReasoningState.NO_REASONING_SEEN
        self.finish_reason: str | None = None
        self.model: str | None = None
        self.usage: Usage | None = None
        self.finished = False

    @property
    def saw_finish(self) -> bool:
        return self.finish_reason is not None

    def push(self, delta: FrameDelta) -> StreamChunk | None:
        """Classify one frame; returns a chunk if it carries any text"""
        if self.finished:
            return None

        # Trailing usage frames arrive after the finish marker
        if delta.model:
            self.model = delta.model
        if delta.usage:
            self.usage = delta.usage
        if delta.finish_reason:
            self.finish_reason = delta.finish_reason

        has_reasoning = bool(delta.reasoning)
        has_content = bool(delta.content)
        if not has_reasoning and not has_content:
            return None

        reasoning_done = None
        if has_reasoning:
            if self.state is ReasoningState.NO_REASONING_SEEN:
                self.state = ReasoningState.REASONING_ACTIVE
        elif self.state is ReasoningState.REASONING_ACTIVE:
            self.state = ReasoningState.REASONING_COMPLETE
            reasoning_done = True

        return StreamChunk(
            content=delta.content or "",
            reasoning_content=delta.reasoning if has_reasoning else None,
            reasoning_done=reasoning_done,
        )

    def finish(self, finish_reason: str | None = None) -> StreamChunk | None:
        """Produce the single terminal chunk for this request"""
        if self.finished:
            return None
        self.finished = True

        reasoning_done = None
        if self.state is ReasoningState.REASONING_ACTIVE:
            self.state = ReasoningState.REASONING_COMPLETE
            reasoning_done = True

        return StreamChunk(
            content="",
            done=True,
            reasoning_done=reasoning_done,
            metadata=ChunkMetadata(
                model=self.model,
                finish_reason=finish_reason or self.finish_reason,
                usage=self.usage,
            ),
        )
