"""API key storage for providers.

Keys live in ``~/.config/llmstream/credentials.json`` (mode 0600), one
entry per provider name. ``resolve_api_key`` falls back to the
``{PROVIDER}_API_KEY`` environment variable.
"""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


class StoredCredential(BaseModel):
    api_key: str


def env_var_name(provider: str) -> str:
    return f"{provider.upper().replace('-', '_')}_API_KEY"


class CredentialStore:
    """File-backed map of provider name to stored credential"""

    def __init__(self, config_dir: Path | None = None):
        self.config_dir = config_dir or Path.home() / ".config" / "llmstream"
        self.credentials_file = self.config_dir / "credentials.json"

    def _read(self) -> dict[str, dict]:
        if not self.credentials_file.exists():
            return {}
        try:
            data = json.loads(self.credentials_file.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable credentials file {self.credentials_file}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, dict]):
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.credentials_file.write_text(json.dumps(data, indent=2))
        self.credentials_file.chmod(0o600)

    def get(self, provider: str) -> StoredCredential | None:
        entry = self._read().get(provider)
        if entry is None:
            return None
        try:
            return StoredCredential.model_validate(entry)
        except ValidationError:
            logger.warning(f"Stored credential for {provider} is malformed, ignoring it")
            return None

    def set(self, provider: str, api_key: str):
        data = self._read()
        data[provider] = StoredCredential(api_key=api_key).model_dump()
        self._write(data)
        logger.info(f"Stored API key for {provider}")

    def delete(self, provider: str) -> bool:
        data = self._read()
        if provider not in data:
            return False
        del data[provider]
        self._write(data)
        return True

    def providers(self) -> list[str]:
        return sorted(self._read())

    def resolve_api_key(self, provider: str) -> str | None:
        """Stored key first, then the environment"""
        stored = self.get(provider)
        if stored is not None:
            return stored.api_key
        return os.environ.get(env_var_name(provider)) or None
