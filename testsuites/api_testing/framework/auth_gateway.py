"""
================================================================================
Auth Gateway
================================================================================

Hands out bearer tokens per provider:
    - token_for: cached token, or a fresh login on miss/expiry
    - force_refresh: login regardless of the cache (one shot per 401)
    - login: explicit login with linear backoff, raising on final failure

Best-effort paths (token_for / force_refresh) never raise on login failure:
many target endpoints are public, so a failed login only means the request
goes out without an Authorization header.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

from loguru import logger

from .credentials import CredentialProvider, Credentials
from .providers import ProviderRegistry, ProviderSettings
from .token_store import TokenError, TokenStore, mask_token
from .transport import Transport, TransportError, TransportResponse


DEFAULT_LOGIN_ATTEMPTS = 3
DEFAULT_LOGIN_RETRY_DELAY = 1.0


class LoginError(TokenError):
    """Raised by an explicit login when every attempt failed."""

    def __init__(self, message: str, response: Optional[TransportResponse] = None) -> None:
        super().__init__(message)
        self.response = response


def extract_token(body: Any, path: str) -> Optional[str]:
    """
    Walk a dotted ``path`` through a JSON body.

    >>> extract_token({"data": {"token": "abc"}}, "data.token")
    'abc'
    """
    value = body
    for part in path.split("."):
        if isinstance(value, dict):
            value = value.get(part)
        else:
            return None
    if value is None or value == "":
        return None
    return str(value)


class AuthGateway:
    """
    Token orchestration over TokenStore, CredentialProvider and Transport.

    Usage:
        >>> gateway = AuthGateway(registry, credentials, store, transport)
        >>> gateway.token_for("reqres")
        'QpwL5tke4Pnpja7X4'
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        credentials: CredentialProvider,
        store: TokenStore,
        transport: Transport,
        timeout: Optional[float] = None,
        login_attempts: int = DEFAULT_LOGIN_ATTEMPTS,
        login_retry_delay: float = DEFAULT_LOGIN_RETRY_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.registry = registry
        self.credentials = credentials
        self.store = store
        self.transport = transport
        self.timeout = timeout
        self.login_attempts = login_attempts
        self.login_retry_delay = login_retry_delay
        self._sleep = sleep

    def token_for(self, provider_key: str, timeout: Optional[float] = None) -> Optional[str]:
        """
        Return a currently valid token, logging in on cache miss.

        Returns:
            Token string, or None when login failed

        Raises:
            ConfigurationError: Provider or credentials not configured
        """
        record = self.store.get(provider_key)
        if record is not None:
            return record.token

        logger.info(f"No valid cached token for '{provider_key}', logging in")
        return self._login_best_effort(provider_key, timeout)

    def force_refresh(self, provider_key: str, timeout: Optional[float] = None) -> Optional[str]:
        """Log in ignoring the cache. Returns the new token or None."""
        logger.info(f"Forcing token refresh for '{provider_key}'")
        return self._login_best_effort(provider_key, timeout)

    def _login_best_effort(self, provider_key: str, timeout: Optional[float]) -> Optional[str]:
        settings = self.registry.get(provider_key)
        creds = self.credentials.credentials_for(provider_key)

        try:
            response = self._call_login(settings, creds, timeout)
        except TransportError as e:
            logger.warning(f"Automatic login for '{provider_key}' failed: {e}")
            return None

        if not response.ok:
            logger.warning(
                f"Automatic login for '{provider_key}' rejected with status {response.status}"
            )
            return None

        token = extract_token(response.body, settings.login.token_path)
        if token is None:
            logger.warning(
                f"Login response for '{provider_key}' has no token at '{settings.login.token_path}'"
            )
            return None

        self.store.set(provider_key, token, settings.token_ttl)
        logger.info(f"Automatic login for '{provider_key}' successful, token {mask_token(token)}")
        return token

    def login(
        self,
        provider_key: str,
        credentials: Optional[Credentials] = None,
        attempts: Optional[int] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """
        Explicit login with linear backoff between attempts.

        Attempt ``n`` failing waits ``login_retry_delay * n`` seconds before
        the next one. A successful response stores the token (when present).

        Args:
            provider_key: Provider to log in to
            credentials: Override configured credentials (negative tests)
            attempts: Override configured attempt count

        Returns:
            The successful login response

        Raises:
            LoginError: Every attempt failed; ``response`` holds the last
                        rejected response, if any
        """
        settings = self.registry.get(provider_key)
        creds = credentials or self.credentials.credentials_for(provider_key)
        max_attempts = max(1, attempts or self.login_attempts)

        last_response: Optional[TransportResponse] = None
        last_error: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            logger.info(f"Login attempt {attempt}/{max_attempts} for '{provider_key}'")
            try:
                response = self._call_login(settings, creds, timeout)
            except TransportError as e:
                last_error = e
                logger.warning(f"Login attempt {attempt} failed: {e}")
            else:
                if response.ok:
                    token = extract_token(response.body, settings.login.token_path)
                    if token is not None:
                        self.store.set(provider_key, token, settings.token_ttl)
                        logger.info("Token stored successfully")
                    logger.info(f"Login to '{provider_key}' successful")
                    return response
                last_response = response
                last_error = None
                logger.warning(f"Login attempt {attempt} failed with status: {response.status}")

            if attempt < max_attempts:
                self._sleep(self.login_retry_delay * attempt)

        logger.error(f"All login attempts for '{provider_key}' failed")
        message = f"Login to '{provider_key}' failed after {max_attempts} attempt(s)"
        if last_error is not None:
            raise LoginError(f"{message}: {last_error}", last_response) from last_error
        raise LoginError(f"{message}: status {last_response.status}", last_response)

    def _call_login(
        self,
        settings: ProviderSettings,
        creds: Credentials,
        timeout: Optional[float],
    ) -> TransportResponse:
        login = settings.login
        payload = creds.as_payload(login)
        request_timeout = timeout if timeout is not None else self.timeout

        if login.credentials_in == "query":
            return self.transport.call(
                login.method, settings.login_url, params=payload, timeout=request_timeout
            )
        return self.transport.call(
            login.method, settings.login_url, body=payload, timeout=request_timeout
        )

    def is_token_valid(self, provider_key: str) -> bool:
        return self.store.get(provider_key) is not None

    def invalidate(self, provider_key: str) -> None:
        self.store.clear(provider_key)


__all__ = [
    "AuthGateway",
    "LoginError",
    "extract_token",
]
