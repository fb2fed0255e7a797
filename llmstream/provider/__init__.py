"""Provider layer: descriptors, stream decoding and clients"""

from llmstream.errors import (
    CapabilityError,
    ConfigurationError,
    LLMStreamError,
    NetworkError,
    ParseError,
    ProviderNotFoundError,
    ValidationError,
)

from .base import (
    ChunkMetadata,
    EmbeddingOptions,
    EmbeddingResult,
    StreamChunk,
    StreamEvent,
    Usage,
)
from .capability import Operation, has_capability, require_capability
from .client import CancellationToken, ProviderClient, StreamHandle
from .descriptor import BUILTIN_PROVIDERS, ProviderCapabilities, ProviderDescriptor
from .manager import ProviderManager
from .registry import ProviderRegistry

__all__ = [
    "BUILTIN_PROVIDERS",
    "CancellationToken",
    "CapabilityError",
    "ChunkMetadata",
    "ConfigurationError",
    "EmbeddingOptions",
    "EmbeddingResult",
    "LLMStreamError",
    "NetworkError",
    "Operation",
    "ParseError",
    "ProviderCapabilities",
    "ProviderClient",
    "ProviderDescriptor",
    "ProviderManager",
    "ProviderNotFoundError",
    "ProviderRegistry",
    "StreamChunk",
    "StreamEvent",
    "StreamHandle",
    "Usage",
    "ValidationError",
    "has_capability",
    "require_capability",
]
