"""Provider registry and client factory"""

import logging

import httpx

from llmstream.config.config import ProviderConfig
from llmstream.errors import ProviderNotFoundError

from .capability import Operation, has_capability
from .client import ProviderClient
from .descriptor import BUILTIN_PROVIDERS, ProviderCapabilities, ProviderDescriptor

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Append-only table of provider descriptors"""

    def __init__(
        self,
        descriptors: tuple[ProviderDescriptor, ...] | list[ProviderDescriptor] = BUILTIN_PROVIDERS,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._descriptors: dict[str, ProviderDescriptor] = {}
        self._transport = transport
        self.register_many(descriptors)

    def register(self, descriptor: ProviderDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"Provider already registered: {descriptor.name}")
        self._descriptors[descriptor.name] = descriptor

    def register_many(self, descriptors) -> None:
        for descriptor in descriptors:
            self.register(descriptor)
        if descriptors:
            logger.info(
                f"Registered {len(descriptors)} providers: "
                f"{', '.join(d.name for d in descriptors)}"
            )

    def register_custom(
        self,
        name: str,
        base_url: str,
        display_name: str | None = None,
        chat: bool = True,
        embedding: bool = True,
    ) -> ProviderDescriptor:
        """Add a user-defined OpenAI-compatible provider"""
        descriptor = ProviderDescriptor(
            name=name,
            display_name=display_name or name,
            default_base_url=base_url,
            capabilities=ProviderCapabilities(chat=chat, embedding=embedding),
            is_builtin=False,
        )
        self.register(descriptor)
        logger.info(f"Registered custom provider: {name}")
        return descriptor

    def get(self, name: str) -> ProviderDescriptor | None:
        return self._descriptors.get(name)

    def lookup(self, name: str) -> ProviderDescriptor:
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ProviderNotFoundError(name, self.list_names())
        return descriptor

    def __contains__(self, name: str) -> bool:
        return name in self._descriptors

    def is_builtin(self, name: str) -> bool:
        descriptor = self._descriptors.get(name)
        return descriptor is not None and descriptor.is_builtin

    def list_names(self) -> list[str]:
        return list(self._descriptors)

    def list_descriptors(self) -> list[ProviderDescriptor]:
        return list(self._descriptors.values())

    def by_capability(self, capability: Operation | str) -> list[ProviderDescriptor]:
        return [d for d in self._descriptors.values() if has_capability(d, capability)]

    def create_client(
        self,
        name: str,
        config: ProviderConfig | dict | None = None,
    ) -> ProviderClient:
        """Build a client for a registered provider"""
        return ProviderClient(self.lookup(name), config, transport=self._transport)
