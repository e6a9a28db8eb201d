"""
================================================================================
Retry On Auth Failure
================================================================================

Response-side half of the auth pipeline.

Per original call:

    FIRST_ATTEMPT --(401 on a provider URL)--> RETRIED (terminal)

On the transition the cached token is cleared, one forced login is made and
the request is replayed once with the new token. Whatever the replay
returns (200, another 401, an error) is final. Nothing but 401 is retried.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable

from loguru import logger

from .auth_gateway import AuthGateway
from .interceptor import RequestDescriptor, with_bearer
from .providers import ProviderRegistry
from .transport import TransportError, TransportResponse


AUTHORIZATION_FAILURE_STATUS = 401


class AttemptPhase(str, Enum):
    FIRST_ATTEMPT = "FIRST_ATTEMPT"
    RETRIED = "RETRIED"


@dataclass
class AuthAttemptState:
    """Lives for one original call, including its single replay."""
    retried: bool = False

    @property
    def phase(self) -> AttemptPhase:
        return AttemptPhase.RETRIED if self.retried else AttemptPhase.FIRST_ATTEMPT


def is_authorization_failure(response: TransportResponse) -> bool:
    return response.status == AUTHORIZATION_FAILURE_STATUS


Replay = Callable[[RequestDescriptor], TransportResponse]


class RetryOnAuthFailure:
    """
    At most one re-login and replay per call, triggered only by 401.

    Usage:
        >>> policy = RetryOnAuthFailure(registry, gateway)
        >>> final = policy.handle(sent_request, response, transport_send, AuthAttemptState())
    """

    def __init__(self, registry: ProviderRegistry, gateway: AuthGateway) -> None:
        self.registry = registry
        self.gateway = gateway

    def handle(
        self,
        request: RequestDescriptor,
        response: TransportResponse,
        replay: Replay,
        state: AuthAttemptState,
    ) -> TransportResponse:
        """
        Decide the final outcome of a call.

        Args:
            request: The request as sent (headers already applied)
            response: Outcome of sending ``request``
            replay: Sends a request through the transport
            state: Attempt state of this call

        Returns:
            ``response`` unchanged, or the outcome of the single replay

        Raises:
            TransportError: Only from the replay itself
        """
        if state.retried or not is_authorization_failure(response):
            return response

        provider_key = self.registry.classify(request.url)
        if provider_key is None:
            return response

        state.retried = True
        logger.warning(
            f"{request.method} {request.url} returned 401, refreshing '{provider_key}' token and retrying once"
        )

        self.gateway.invalidate(provider_key)
        # AuthGateway swallows its own transport errors; injected gateways may not
        try:
            token = self.gateway.force_refresh(provider_key, timeout=request.timeout)
        except TransportError as e:
            logger.warning(f"Token refresh for '{provider_key}' failed: {e}")
            return response

        if token is None:
            logger.warning(f"Token refresh for '{provider_key}' produced no token, returning original 401")
            return response

        final = replay(with_bearer(request, token))
        if is_authorization_failure(final):
            logger.error(f"{request.method} {request.url} still unauthorized after token refresh")
        return final


__all__ = [
    "AUTHORIZATION_FAILURE_STATUS",
    "AttemptPhase",
    "AuthAttemptState",
    "RetryOnAuthFailure",
    "is_authorization_failure",
]
