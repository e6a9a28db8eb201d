"""
================================================================================
Credential Provider
================================================================================

Resolves the shared-secret login payload for a provider.

Environment variables named by the provider entry (``identifier_env`` /
``secret_env``) take precedence over the YAML ``identifier`` / ``secret``
values, so CI can inject real secrets without touching the config file.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .config_loader import ConfigurationError
from .providers import LoginEndpoint, ProviderRegistry


@dataclass(frozen=True)
class Credentials:
    identifier: str
    secret: str

    def as_payload(self, login: LoginEndpoint) -> Dict[str, Any]:
        """Shape credentials the way the login endpoint expects them."""
        return {
            login.identifier_field: self.identifier,
            login.secret_field: self.secret,
        }

    def __repr__(self) -> str:
        return f"Credentials(identifier={self.identifier!r}, secret='***')"


class CredentialProvider:
    """
    Pure lookup of configured credentials, no caching.

    Usage:
        >>> provider = CredentialProvider(registry)
        >>> provider.credentials_for("reqres").identifier
        'eve.holt@reqres.in'
    """

    def __init__(self, registry: ProviderRegistry) -> None:
        self.registry = registry

    def credentials_for(self, provider_key: str) -> Credentials:
        """
        Return credentials for ``provider_key``.

        Raises:
            ConfigurationError: Unknown key, or identifier/secret not configured
        """
        settings = self.registry.get(provider_key)
        raw = settings.credentials

        identifier = self._resolve(raw, "identifier")
        secret = self._resolve(raw, "secret")

        missing = [name for name, value in (("identifier", identifier), ("secret", secret)) if not value]
        if missing:
            raise ConfigurationError(
                f"Credentials for provider '{provider_key}' are incomplete: "
                f"missing {', '.join(missing)}"
            )

        return Credentials(identifier=str(identifier), secret=str(secret))

    @staticmethod
    def _resolve(raw: Dict[str, Any], name: str) -> Optional[str]:
        env_name = raw.get(f"{name}_env")
        if env_name:
            env_value = os.environ.get(env_name)
            if env_value:
                return env_value
        return raw.get(name)


__all__ = [
    "Credentials",
    "CredentialProvider",
]
