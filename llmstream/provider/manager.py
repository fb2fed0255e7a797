"""Resolves configured provider clients from stored settings"""

import logging

from llmstream.auth.credentials import CredentialStore
from llmstream.config.config import Settings, parse_model_ref

from .capability import Operation, has_capability
from .client import ProviderClient
from .registry import ProviderRegistry

logger = logging.getLogger(__name__)


class ProviderManager:
    """Combines the registry with settings and stored credentials.

    One client is kept per provider; later lookups reconfigure it in place.
    API keys come from settings, then the credential store, then the
    ``{PROVIDER}_API_KEY`` environment variable.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        registry: ProviderRegistry | None = None,
        credentials: CredentialStore | None = None,
    ):
        self.settings = settings if settings is not None else Settings.load()
        self.registry = registry if registry is not None else ProviderRegistry()
        self.credentials = credentials if credentials is not None else CredentialStore()
        self._clients: dict[str, ProviderClient] = {}

        for custom in self.settings.custom_providers:
            if custom.name in self.registry:
                logger.warning(f"Custom provider {custom.name} shadows a registered provider, skipping")
                continue
            self.registry.register_custom(
                custom.name,
                custom.base_url,
                display_name=custom.display_name,
                chat=custom.chat,
                embedding=custom.embedding,
            )

    def get_configured_client(self, name: str) -> ProviderClient | None:
        """Client for ``name`` with stored settings applied, or None"""
        if name not in self.registry:
            logger.warning(f"Provider {name} not found in registry")
            return None

        provider_settings = self.settings.providers.get(name)
        if provider_settings is not None and not provider_settings.enabled:
            logger.warning(f"Provider {name} is not enabled")
            return None

        updates = provider_settings.to_config_updates() if provider_settings else {}
        if not updates.get("api_key"):
            custom = None
            if not self.registry.is_builtin(name):
                custom = next((c for c in self.settings.custom_providers if c.name == name), None)
            api_key = (custom.api_key if custom else None) or self.credentials.resolve_api_key(name)
            if api_key:
                updates["api_key"] = api_key

        client = self._clients.get(name)
        if client is None:
            client = self.registry.create_client(name)
            self._clients[name] = client
        client.configure(updates)
        return client

    def active_chat_client(self) -> ProviderClient | None:
        return self._active_client(self.settings.default_chat_model, Operation.CHAT)

    def active_embedding_client(self) -> ProviderClient | None:
        return self._active_client(self.settings.default_embedding_model, Operation.EMBEDDING)

    def _active_client(self, model_ref: str | None, operation: Operation) -> ProviderClient | None:
        # No fallback to another provider when the default is unavailable
        parsed = parse_model_ref(model_ref)
        if parsed is None:
            logger.warning(f"No default {operation.value} model configured")
            return None

        provider_name, model_id = parsed
        client = self.get_configured_client(provider_name)
        if client is None:
            logger.error(
                f'Provider for default {operation.value} model "{provider_name}" '
                "is not available or not enabled"
            )
            return None

        if not has_capability(client.descriptor, operation):
            logger.error(f"Provider {provider_name} does not support {operation.value} capability")
            return None

        if operation is Operation.EMBEDDING:
            client.configure(embedding_model=model_id)
        else:
            client.configure(model=model_id)
        logger.info(f"Using default {operation.value} model: {provider_name} - {model_id}")
        return client

    async def aclose(self):
        for client in self._clients.values():
            await client.aclose()
