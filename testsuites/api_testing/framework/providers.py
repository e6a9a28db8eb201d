"""
================================================================================
Provider Registry
================================================================================

Describes the authenticated third-party services the harness talks to.

Each provider entry under the ``providers`` configuration section declares:
    - base_url / match: how a request URL is attributed to the provider
    - login: endpoint, HTTP method, credential shape and token location
    - credentials: shared secret (env var names plus YAML fallbacks)
    - token_ttl / persist: cache lifetime and durable vs memory-only caching

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from .config_loader import ConfigLoader, ConfigurationError


DEFAULT_TOKEN_TTL = 3600


@dataclass(frozen=True)
class LoginEndpoint:
    """
    How to obtain a token for one provider.

    Attributes:
        path: Login path relative to the provider base URL (or absolute URL)
        method: HTTP method used for login
        credentials_in: "json" sends credentials as body, "query" as params
        identifier_field: Payload field name for the identifier
        secret_field: Payload field name for the secret
        token_path: Dotted path of the token inside the response body
    """
    path: str
    method: str = "POST"
    credentials_in: str = "json"
    identifier_field: str = "email"
    secret_field: str = "password"
    token_path: str = "token"


@dataclass(frozen=True)
class ProviderSettings:
    key: str
    base_url: str
    login: LoginEndpoint
    match: Tuple[str, ...] = ()
    credentials: Dict[str, Any] = field(default_factory=dict)
    token_ttl: int = DEFAULT_TOKEN_TTL
    persist: bool = False

    @property
    def login_url(self) -> str:
        if self.login.path.startswith(("http://", "https://")):
            return self.login.path
        return f"{self.base_url.rstrip('/')}/{self.login.path.lstrip('/')}"

    def matches(self, url: str) -> bool:
        """True when ``url`` belongs to this provider."""
        if not url:
            return False
        candidates = [self.base_url, *self.match]
        return any(candidate and candidate in url for candidate in candidates)


class ProviderRegistry:
    """
    Lookup and URL classification over configured providers.

    Usage:
        >>> registry = ProviderRegistry.from_config(ConfigLoader())
        >>> registry.classify("https://reqres.in/api/users/2")
        'reqres'
        >>> registry.classify("https://jsonplaceholder.typicode.com/posts")
    """

    def __init__(self, providers: List[ProviderSettings]) -> None:
        self._providers: Dict[str, ProviderSettings] = {p.key: p for p in providers}

    @classmethod
    def from_config(cls, config: ConfigLoader) -> "ProviderRegistry":
        section = config.get_section("providers")
        providers = [
            _build_provider(key, raw or {}, config)
            for key, raw in section.items()
        ]
        logger.debug(f"Loaded {len(providers)} auth providers: {[p.key for p in providers]}")
        return cls(providers)

    def __iter__(self):
        return iter(self._providers.values())

    def get(self, key: str) -> ProviderSettings:
        try:
            return self._providers[key]
        except KeyError:
            raise ConfigurationError(f"No provider configured for key '{key}'") from None

    def classify(self, url: str) -> Optional[str]:
        """Return the key of the first provider owning ``url``, or None."""
        for provider in self._providers.values():
            if provider.matches(url):
                return provider.key
        return None


def _build_provider(key: str, raw: Dict[str, Any], config: ConfigLoader) -> ProviderSettings:
    base_url = os.environ.get(f"{key.upper()}_BASE_URL") or raw.get("base_url")
    if not base_url:
        raise ConfigurationError(f"Provider '{key}' has no base_url")

    login_raw = raw.get("login")
    if not login_raw or not login_raw.get("path"):
        raise ConfigurationError(f"Provider '{key}' has no login.path")

    credentials_in = login_raw.get("credentials_in", "json")
    if credentials_in not in ("json", "query"):
        raise ConfigurationError(
            f"Provider '{key}': credentials_in must be 'json' or 'query', got '{credentials_in}'"
        )

    login = LoginEndpoint(
        path=login_raw["path"],
        method=str(login_raw.get("method", "POST")).upper(),
        credentials_in=credentials_in,
        identifier_field=login_raw.get("identifier_field", "email"),
        secret_field=login_raw.get("secret_field", "password"),
        token_path=login_raw.get("token_path", "token"),
    )

    return ProviderSettings(
        key=key,
        base_url=base_url,
        login=login,
        match=tuple(raw.get("match") or ()),
        credentials=dict(raw.get("credentials") or {}),
        token_ttl=int(raw.get("token_ttl", config.get("auth.default_ttl", DEFAULT_TOKEN_TTL))),
        persist=bool(raw.get("persist", False)),
    )


__all__ = [
    "DEFAULT_TOKEN_TTL",
    "LoginEndpoint",
    "ProviderRegistry",
    "ProviderSettings",
]
