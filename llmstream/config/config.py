"""Configuration management"""

from pathlib import Path
import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from llmstream.errors import ConfigurationError

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """Runtime configuration of one provider client.

    Frozen: ``ProviderClient.configure`` swaps in a merged copy, so a request
    holding a reference keeps a stable snapshot.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 2048
    embedding_model: str | None = None
    dimensions: int | None = None

    def merge(self, **updates) -> "ProviderConfig":
        """Return a copy with the non-None updates applied"""
        data = self.model_dump()
        data.update({k: v for k, v in updates.items() if v is not None})
        return ProviderConfig(**data)


class ProviderSettings(BaseModel):
    """Stored settings for a provider"""
    enabled: bool = True
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    embedding_model: str | None = None
    dimensions: int | None = None

    def to_config_updates(self) -> dict:
        return self.model_dump(exclude={"enabled"}, exclude_none=True)


class CustomProviderSettings(BaseModel):
    """User-defined OpenAI-compatible provider"""
    name: str
    display_name: str | None = None
    base_url: str
    api_key: str | None = None
    chat: bool = True
    embedding: bool = True


def settings_paths() -> list[Path]:
    """Settings file locations, highest priority first"""
    return [
        Path.cwd() / "llmstream.json",
        Path.home() / ".config" / "llmstream" / "config.json",
    ]


class Settings(BaseModel):
    # "provider:model" strings
    default_chat_model: str | None = None
    default_embedding_model: str | None = None
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    custom_providers: list[CustomProviderSettings] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        """Read settings from ``path`` or the first existing default location.

        A missing file gives empty settings; an unreadable or invalid one
        raises ConfigurationError naming the file.
        """
        if path is None:
            path = next((p for p in settings_paths() if p.is_file()), None)
        if path is None or not path.exists():
            logger.debug("No settings file found, using defaults")
            return cls()

        try:
            settings = cls.model_validate_json(path.read_bytes())
        except OSError as e:
            raise ConfigurationError(f"Cannot read settings file {path}: {e}") from e
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid settings file {path}: {e.error_count()} error(s), first: {e.errors()[0]['msg']}"
            ) from e

        logger.debug(f"Loaded settings from {path}")
        return settings

    def save(self, path: Path | None = None) -> Path:
        """Write settings as JSON; defaults to the per-user location"""
        path = path or settings_paths()[-1]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2, exclude_defaults=True))
        return path


def parse_model_ref(ref: str | None) -> tuple[str, str] | None:
    """Split a "provider:model" reference; model ids may contain colons"""
    if not ref or ":" not in ref:
        return None
    provider, model = ref.split(":", 1)
    if not provider or not model:
        return None
    return provider, model
