"""Settings and provider configuration"""

from .config import (
    CustomProviderSettings,
    ProviderConfig,
    ProviderSettings,
    Settings,
    parse_model_ref,
    settings_paths,
)

__all__ = [
    "CustomProviderSettings",
    "ProviderConfig",
    "ProviderSettings",
    "Settings",
    "parse_model_ref",
    "settings_paths",
]
