"""Authentication module for llmstream"""

from .credentials import CredentialStore, StoredCredential, env_var_name

__all__ = ["CredentialStore", "StoredCredential", "env_var_name"]
