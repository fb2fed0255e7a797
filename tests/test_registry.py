"""Tests for provider descriptors, the capability gate and the registry"""

import pytest

from llmstream.errors import CapabilityError, ProviderNotFoundError
from llmstream.provider.capability import Operation, has_capability, require_capability
from llmstream.provider.client import ProviderClient
from llmstream.provider.descriptor import (
    BUILTIN_PROVIDERS,
    ProviderCapabilities,
    ProviderDescriptor,
    is_builtin_provider,
)
from llmstream.provider.registry import ProviderRegistry


class TestCapabilityGate:
    def test_declared_capability_passes(self):
        descriptor = ProviderDescriptor(
            name="x",
            display_name="X",
            default_base_url="http://x",
            capabilities=ProviderCapabilities(chat=True, embedding=True),
        )

        require_capability(descriptor, Operation.CHAT)
        require_capability(descriptor, "embedding")

    def test_missing_capability_raises(self):
        kimi = ProviderRegistry().lookup("kimi")

        with pytest.raises(CapabilityError) as exc_info:
            require_capability(kimi, Operation.EMBEDDING)

        assert exc_info.value.provider == "kimi"
        assert exc_info.value.operation == "embedding"

    def test_future_capabilities_default_off(self):
        openai = ProviderRegistry().lookup("openai")

        assert not has_capability(openai, Operation.RERANK)
        assert not has_capability(openai, "image_generation")

    def test_unknown_operation(self):
        with pytest.raises(ValueError):
            has_capability(BUILTIN_PROVIDERS[0], "teleport")


class TestProviderRegistry:
    def test_builtins_registered(self):
        registry = ProviderRegistry()

        assert registry.list_names() == [
            "openai", "deepseek", "qwen", "kimi", "siliconflow", "ollama",
        ]
        assert all(registry.is_builtin(name) for name in registry.list_names())
        assert is_builtin_provider("deepseek")

    def test_lookup_unknown(self):
        registry = ProviderRegistry()

        with pytest.raises(ProviderNotFoundError) as exc_info:
            registry.lookup("nope")

        assert isinstance(exc_info.value, KeyError)
        assert "Available: openai" in str(exc_info.value)
        assert registry.get("nope") is None
        assert not registry.is_builtin("nope")

    def test_duplicate_register_rejected(self):
        registry = ProviderRegistry()

        with pytest.raises(ValueError):
            registry.register(BUILTIN_PROVIDERS[0])

    def test_register_custom(self):
        registry = ProviderRegistry()

        descriptor = registry.register_custom("lab", "http://lab.local/v1", embedding=False)

        assert registry.lookup("lab") is descriptor
        assert not registry.is_builtin("lab")
        assert descriptor.display_name == "lab"
        assert not descriptor.capabilities.embedding

    def test_by_capability(self):
        registry = ProviderRegistry()

        names = [d.name for d in registry.by_capability("embedding")]

        assert "kimi" not in names
        assert "openai" in names
        assert len(registry.by_capability(Operation.CHAT)) == len(BUILTIN_PROVIDERS)

    def test_empty_registry(self):
        registry = ProviderRegistry(())

        assert registry.list_descriptors() == []

    def test_create_client(self):
        client = ProviderRegistry().create_client("deepseek", {"api_key": "sk-test"})

        assert isinstance(client, ProviderClient)
        assert client.config.base_url == "https://api.deepseek.com"
        assert client.config.model == "deepseek-chat"
        assert client.config.api_key == "sk-test"
        assert client.default_chat_model() == "deepseek-chat"

    def test_default_embedding_model_gated(self):
        client = ProviderRegistry().create_client("kimi")

        with pytest.raises(CapabilityError):
            client.default_embedding_model()
