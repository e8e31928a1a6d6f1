"""Secure credential storage for the backend API key.

Responsibilities:
- Persist the completion backend API key in an OS-backed credential store.
- Never log or echo secret values.

Key types:
- `CredentialStore`: protocol for API key persistence.
- `KeyringCredentialStore`: `keyring`-backed implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from .parsing import normalize_optional_string

_DEFAULT_SERVICE_NAME = "chunkwright"
_DEFAULT_ACCOUNT_NAME = "backend_api_key"


class CredentialStore(Protocol):
    """Protocol for secure API key operations."""

    def get_api_key(self) -> str | None:
        """Return the stored API key, if any."""

    def set_api_key(self, api_key: str) -> None:
        """Persist an API key."""

    def clear_api_key(self) -> bool:
        """Delete the stored API key and return whether one existed."""


@dataclass(slots=True)
class KeyringCredentialStore:
    """Credential store backed by the system keyring."""

    service_name: str = _DEFAULT_SERVICE_NAME
    account_name: str = _DEFAULT_ACCOUNT_NAME

    def get_api_key(self) -> str | None:
        """Return the normalized stored API key; unreadable backends count as empty."""

        try:
            value = keyring.get_password(self.service_name, self.account_name)
        except KeyringError:
            return None
        return normalize_optional_string(value)

    def set_api_key(self, api_key: str) -> None:
        """Persist a normalized API key.

        Raises:
            ValueError: If the key is blank.
            KeyringError: If no usable keyring backend is configured.
        """

        normalized = normalize_optional_string(api_key)
        if normalized is None:
            raise ValueError("API key must be a non-empty string.")
        keyring.set_password(self.service_name, self.account_name, normalized)

    def clear_api_key(self) -> bool:
        """Remove the stored API key and report whether one was present."""

        if self.get_api_key() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    """Create the default credential store implementation."""

    return KeyringCredentialStore()
