"""
================================================================================
Request Interceptor
================================================================================

Attaches ``Authorization: Bearer <token>`` to requests bound for an
authenticated provider. Requests to unknown hosts pass through untouched.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from loguru import logger

from .auth_gateway import AuthGateway
from .providers import ProviderRegistry


AUTHORIZATION_HEADER = "Authorization"


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    params: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None


def with_bearer(request: RequestDescriptor, token: str) -> RequestDescriptor:
    """Copy of ``request`` whose only authorization header is the bearer token."""
    headers = {
        key: value
        for key, value in request.headers.items()
        if key.lower() != AUTHORIZATION_HEADER.lower()
    }
    headers[AUTHORIZATION_HEADER] = f"Bearer {token}"
    return replace(request, headers=headers)


class RequestInterceptor:
    """
    Request-side half of the auth pipeline.

    The gateway is injected rather than looked up, so the retry policy and
    the interceptor share one token source.
    """

    def __init__(self, registry: ProviderRegistry, gateway: AuthGateway) -> None:
        self.registry = registry
        self.gateway = gateway

    def classify(self, url: str) -> Optional[str]:
        return self.registry.classify(url)

    def apply(self, request: RequestDescriptor) -> RequestDescriptor:
        """
        Return the request to send.

        Unclassified requests are returned as-is. Classified ones get a
        bearer header when the gateway can produce a token.
        """
        provider_key = self.classify(request.url)
        if provider_key is None:
            return request

        token = self.gateway.token_for(provider_key, timeout=request.timeout)
        if token is None:
            logger.debug(f"No token for '{provider_key}', sending {request.method} {request.url} unauthenticated")
            return request

        return with_bearer(request, token)


__all__ = [
    "AUTHORIZATION_HEADER",
    "RequestDescriptor",
    "RequestInterceptor",
    "with_bearer",
]
