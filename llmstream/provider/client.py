"""Provider client: chat streaming and embeddings over OpenAI-compatible APIs"""

from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable
import asyncio
import json
import logging

import httpx
import openai

from llmstream.config.config import ProviderConfig
from llmstream.errors import ConfigurationError, LLMStreamError, NetworkError
from llmstream.session.message import Message, to_wire

from .base import (
    ChunkMetadata,
    EmbeddingOptions,
    EmbeddingResult,
    StreamChunk,
    StreamEvent,
    chunk_events,
)
from .capability import Operation, require_capability
from .descriptor import ProviderDescriptor
from .normalizer import ReasoningNormalizer
from .sse import SSEDecoder, iter_frames

logger = logging.getLogger(__name__)

# Providers known to honour the embeddings "dimensions" parameter
DIMENSIONS_PROVIDERS = frozenset({"openai", "siliconflow"})

CANCELLED_FINISH_REASON = "cancelled"


class CancellationToken:
    """Cooperative cancellation signal checked between stream frames"""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self):
        await self._event.wait()


class StreamHandle:
    """Returned by ``send_stream``; cancels or awaits one request"""

    def __init__(self, token: CancellationToken):
        self.token = token
        self._task: asyncio.Task | None = None
        self._started = False

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self):
        self.token.cancel()
        # An unstarted task sees the token on entry; a callback running
        # inside the task is picked up at the next frame boundary
        task = self._task
        if task and self._started and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self):
        if self._task is not None:
            await self._task


class _ClientState:
    """Config snapshot; the SDK client is built from it on first embedding call"""

    def __init__(self, config: ProviderConfig, build_sdk: Callable[[ProviderConfig], openai.AsyncOpenAI]):
        self.config = config
        self._build_sdk = build_sdk
        self._sdk: openai.AsyncOpenAI | None = None

    @property
    def sdk(self) -> openai.AsyncOpenAI:
        if self._sdk is None:
            self._sdk = self._build_sdk(self.config)
        return self._sdk

    @property
    def has_sdk(self) -> bool:
        return self._sdk is not None

    async def aclose(self):
        if self._sdk is not None:
            await self._sdk.close()
            self._sdk = None


@dataclass(frozen=True)
class _ChatRequest:
    url: str
    headers: dict[str, str]
    body: dict[str, Any]


class ProviderClient:
    """One client class for every OpenAI-compatible backend.

    Behaviour differences come from the descriptor: capability flags, the
    frame adapter and the optional message filter.
    """

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        config: ProviderConfig | dict | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 120.0,
    ):
        self.descriptor = descriptor
        self.name = descriptor.name
        self.timeout = timeout
        self._transport = transport

        defaults = ProviderConfig(
            base_url=descriptor.default_base_url,
            model=descriptor.default_chat_model,
        )
        self._state = _ClientState(defaults, self._build_sdk)
        # Superseded snapshots whose SDK client was built, closed by aclose()
        self._retired: list[_ClientState] = []
        if config is not None:
            self.configure(config)

        logger.debug(f"Provider {self.name} initialized")

    @property
    def config(self) -> ProviderConfig:
        return self._state.config

    def configure(self, config: ProviderConfig | dict | None = None, **fields) -> None:
        """Merge new settings into the stored config.

        In-flight requests keep the snapshot they started with.
        """
        updates: dict[str, Any] = {}
        if isinstance(config, ProviderConfig):
            updates.update(config.model_dump(exclude_unset=True))
        elif config:
            updates.update(config)
        updates.update(fields)

        merged = self._state.config.merge(**updates)
        if merged == self._state.config:
            return
        if self._state.has_sdk:
            self._retired.append(self._state)
        self._state = _ClientState(merged, self._build_sdk)
        logger.debug(f"Provider {self.name} configured")

    def _build_sdk(self, config: ProviderConfig) -> openai.AsyncOpenAI:
        http_client = None
        if self._transport is not None:
            http_client = httpx.AsyncClient(transport=self._transport, timeout=self.timeout)
        return openai.AsyncOpenAI(
            # Keyless local backends still need a non-empty value for the SDK
            api_key=config.api_key or "not-needed",
            base_url=config.base_url,
            timeout=self.timeout,
            max_retries=0,
            http_client=http_client,
        )

    def _ready_state(self, operation: Operation) -> _ClientState:
        """Snapshot the config and run every pre-I/O check"""
        state = self._state
        require_capability(self.descriptor, operation)

        if not state.config.base_url:
            raise ConfigurationError(f"Provider {self.name} has no base URL configured")
        if self.descriptor.requires_api_key and not state.config.api_key:
            raise ConfigurationError(
                f"Provider {self.name} is not configured. Please configure API key first."
            )
        return state

    def _auth_headers(self, config: ProviderConfig) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if config.api_key:
            headers["Authorization"] = f"Bearer {config.api_key}"
        return headers

    def default_chat_model(self) -> str:
        require_capability(self.descriptor, Operation.CHAT)
        return self.descriptor.default_chat_model or ""

    def default_embedding_model(self) -> str:
        require_capability(self.descriptor, Operation.EMBEDDING)
        return self.descriptor.default_embedding_model or ""

    # ---- chat ----

    def _prepare_chat(self, state: _ClientState, messages: list[Message]) -> _ChatRequest:
        config = state.config
        model = config.model or self.descriptor.default_chat_model
        if not model:
            raise ConfigurationError(f"Provider {self.name} has no chat model configured")

        if self.descriptor.message_filter is not None:
            messages = self.descriptor.message_filter(messages)

        return _ChatRequest(
            url=f"{config.base_url.rstrip('/')}/chat/completions",
            headers=self._auth_headers(config),
            body={
                "model": model,
                "messages": to_wire(messages),
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
                "stream": True,
            },
        )

    def stream(
        self,
        messages: list[Message],
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamChunk]:
        """Stream a reply as canonical chunks.

        Capability and configuration errors are raised here, before any
        request is made. Network errors are raised from the iterator.
        """
        state = self._ready_state(Operation.CHAT)
        return self._stream(self._prepare_chat(state, messages), cancel)

    def events(
        self,
        messages: list[Message],
        cancel: CancellationToken | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream a reply as tagged events; a failure ends with one error event"""
        chunks = self.stream(messages, cancel)
        return self._events(chunks)

    async def _events(self, chunks: AsyncIterator[StreamChunk]) -> AsyncIterator[StreamEvent]:
        try:
            async for chunk in chunks:
                for event in chunk_events(chunk):
                    yield event
        except LLMStreamError as e:
            yield StreamEvent(type="error", error=e)

    async def _stream(
        self,
        request: _ChatRequest,
        cancel: CancellationToken | None,
    ) -> AsyncIterator[StreamChunk]:
        normalizer = ReasoningNormalizer()

        if cancel is not None and cancel.cancelled:
            yield normalizer.finish(CANCELLED_FINISH_REASON)
            return

        decoder = SSEDecoder(source=self.name)
        adapter = self.descriptor.frame_adapter
        cancelled = False

        logger.debug(
            f"[{self.name}] streaming with model: {request.body['model']}, "
            f"messages: {len(request.body['messages'])}"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                async with client.stream(
                    "POST",
                    request.url,
                    headers=request.headers,
                    json=request.body,
                ) as response:
                    if not response.is_success:
                        error_text = await response.aread()
                        raise NetworkError(
                            f"{self.name} API error ({response.status_code}): {_error_message(error_text)}",
                            status_code=response.status_code,
                            body=error_text.decode(errors="replace"),
                        )

                    async with aclosing(iter_frames(response.aiter_bytes(), decoder)) as frames:
                        async for frame in frames:
                            try:
                                delta = adapter(frame)
                            except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
                                decoder.record_error(json.dumps(frame)[:200], f"unexpected frame shape: {e!r}")
                            else:
                                chunk = normalizer.push(delta)
                                if chunk is not None:
                                    yield chunk
                            if cancel is not None and cancel.cancelled:
                                cancelled = True
                                break
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NetworkError(f"{self.name} request failed: {e}") from e
        except UnicodeEncodeError as e:
            # httpx encodes header values as ASCII
            raise NetworkError(f"{self.name} request headers are not ASCII: {e}") from e

        if cancelled:
            logger.debug(f"[{self.name}] stream cancelled by caller")
        if decoder.parse_errors:
            logger.warning(f"[{self.name}] skipped {decoder.parse_errors} malformed frames")

        yield normalizer.finish(CANCELLED_FINISH_REASON if cancelled else None)

    def send_stream(
        self,
        messages: list[Message],
        on_chunk: Callable[[StreamChunk], None],
        on_error: Callable[[Exception], None],
        on_complete: Callable[[], None],
    ) -> StreamHandle:
        """Callback interface over ``stream``.

        Must be called from a running event loop. Exactly one of
        ``on_complete``/``on_error`` is invoked; cancellation completes.
        """
        handle = StreamHandle(CancellationToken())
        try:
            state = self._ready_state(Operation.CHAT)
            request = self._prepare_chat(state, messages)
        except LLMStreamError as e:
            logger.error(f"[{self.name}] cannot start stream: {e}")
            handle.token.cancel()
            on_error(e)
            return handle

        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, request, on_chunk, on_error, on_complete)
        )
        return handle

    async def _run(
        self,
        handle: StreamHandle,
        request: _ChatRequest,
        on_chunk: Callable[[StreamChunk], None],
        on_error: Callable[[Exception], None],
        on_complete: Callable[[], None],
    ):
        handle._started = True
        terminal_sent = False
        try:
            async with aclosing(self._stream(request, handle.token)) as chunks:
                async for chunk in chunks:
                    on_chunk(chunk)
                    terminal_sent = chunk.done
        except asyncio.CancelledError:
            if not handle.token.cancelled:
                raise
            logger.debug(f"[{self.name}] stream aborted")
            if not terminal_sent:
                on_chunk(StreamChunk(
                    done=True,
                    metadata=ChunkMetadata(finish_reason=CANCELLED_FINISH_REASON),
                ))
            on_complete()
            return
        except Exception as e:
            logger.error(f"[{self.name}] stream error: {e}")
            on_error(e)
            return

        on_complete()

    # ---- embeddings ----

    def _embedding_params(self, state: _ClientState, options: EmbeddingOptions | None) -> dict[str, Any]:
        options = options or EmbeddingOptions()
        model = (
            options.model
            or state.config.embedding_model
            or self.descriptor.default_embedding_model
        )
        if not model:
            raise ConfigurationError(f"Provider {self.name} has no embedding model configured")

        params: dict[str, Any] = {"model": model, "encoding_format": "float"}
        dimensions = options.dimensions or state.config.dimensions
        if dimensions:
            if self.name in DIMENSIONS_PROVIDERS:
                params["dimensions"] = dimensions
            else:
                logger.debug(f"[{self.name}] dimensions={dimensions} not supported, not sending it")
        return params

    async def _embed(self, state: _ClientState, input: str | list[str], params: dict[str, Any]):
        logger.debug(f"[{self.name}] creating embeddings with model: {params['model']}")
        try:
            return await state.sdk.embeddings.create(input=input, **params)
        except openai.APIStatusError as e:
            raise NetworkError(
                f"{self.name} embedding request failed ({e.status_code}): {e.message}",
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            raise NetworkError(f"{self.name} embedding request failed: {e}") from e

    async def create_embedding(self, text: str, options: EmbeddingOptions | None = None) -> EmbeddingResult:
        state = self._ready_state(Operation.EMBEDDING)
        params = self._embedding_params(state, options)

        response = await self._embed(state, text, params)
        if not response.data:
            raise NetworkError(f"{self.name} returned no embedding data")

        return EmbeddingResult(
            embedding=response.data[0].embedding,
            model=response.model or params["model"],
            tokens_used=_total_tokens(response),
        )

    async def create_embeddings(
        self,
        texts: list[str],
        options: EmbeddingOptions | None = None,
    ) -> list[EmbeddingResult]:
        state = self._ready_state(Operation.EMBEDDING)
        params = self._embedding_params(state, options)
        if not texts:
            return []

        logger.debug(f"[{self.name}] creating embeddings for {len(texts)} texts")
        response = await self._embed(state, texts, params)
        data = sorted(response.data, key=lambda item: item.index)
        if len(data) != len(texts):
            raise NetworkError(
                f"{self.name} returned {len(data)} embeddings for {len(texts)} inputs"
            )

        # Backends only report aggregate usage; split it evenly
        per_item = _total_tokens(response) // len(texts)
        model = response.model or params["model"]
        return [
            EmbeddingResult(embedding=item.embedding, model=model, tokens_used=per_item)
            for item in data
        ]

    # ---- connection test ----

    async def validate_config(self, config: ProviderConfig | dict | None = None) -> bool:
        """Probe ``{base_url}/models``; returns False instead of raising"""
        updates: dict[str, Any] = {}
        if isinstance(config, ProviderConfig):
            updates.update(config.model_dump(exclude_unset=True))
        elif config:
            updates.update(config)
        try:
            # pydantic and header-encoding failures are both ValueErrors
            probe = self._state.config.merge(**updates)
            if not probe.base_url:
                return False
            headers = {}
            if probe.api_key:
                headers["Authorization"] = f"Bearer {probe.api_key}"
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(f"{probe.base_url.rstrip('/')}/models", headers=headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.debug(f"[{self.name}] connection test failed: {e}")
            return False

        if response.is_success:
            logger.info(f"[{self.name}] configuration validation successful")
        else:
            logger.warning(f"[{self.name}] configuration validation failed: {response.status_code}")
        return response.is_success

    async def aclose(self):
        """Close every SDK client built by this provider client"""
        for state in [*self._retired, self._state]:
            await state.aclose()
        self._retired.clear()


def _error_message(error_text: bytes) -> str:
    try:
        error_json = json.loads(error_text)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return error_text.decode(errors="replace")[:500]

    error = error_json.get("error") if isinstance(error_json, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return str(error_json)[:500]


def _total_tokens(response: Any) -> int:
    usage = getattr(response, "usage", None)
    if usage is None:
        return 0
    return int(getattr(usage, "total_tokens", 0) or getattr(usage, "prompt_tokens", 0) or 0)
