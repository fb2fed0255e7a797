"""Capability gate checked before any provider I/O"""

from enum import Enum

from llmstream.errors import CapabilityError

from .descriptor import ProviderDescriptor


class Operation(str, Enum):
    CHAT = "chat"
    EMBEDDING = "embedding"
    RERANK = "rerank"
    IMAGE_GENERATION = "image_generation"


def has_capability(descriptor: ProviderDescriptor, operation: Operation | str) -> bool:
    operation = Operation(operation)
    return bool(getattr(descriptor.capabilities, operation.value, False))


def require_capability(descriptor: ProviderDescriptor, operation: Operation | str) -> None:
    """Raise CapabilityError unless the descriptor declares ``operation``"""
    operation = Operation(operation)
    if not has_capability(descriptor, operation):
        raise CapabilityError(descriptor.name, operation.value)
