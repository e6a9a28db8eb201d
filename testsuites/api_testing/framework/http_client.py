"""
================================================================================
HTTP Client with Auth Pipeline and Allure Integration
================================================================================

Every request goes through the same pipeline:

    RequestInterceptor -> Transport -> RetryOnAuthFailure

    - Bearer tokens attached automatically for configured providers
    - One silent re-login and replay on 401
    - Allure step per request with redacted headers/body and a cURL command

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

import allure
import httpx
from allure_commons.types import AttachmentType
from loguru import logger

from .auth_gateway import (
    DEFAULT_LOGIN_ATTEMPTS,
    DEFAULT_LOGIN_RETRY_DELAY,
    AuthGateway,
)
from .config_loader import ConfigLoader
from .credentials import CredentialProvider
from .interceptor import RequestDescriptor, RequestInterceptor
from .providers import ProviderRegistry
from .retry_policy import AuthAttemptState, RetryOnAuthFailure
from .token_store import DEFAULT_TOKEN_DIR, JsonFileRecordStore, TokenStore
from .transport import DEFAULT_TIMEOUT, Transport, TransportResponse


# Maximum response length to include in Allure reports
MAX_RESPONSE_LENGTH = 3000

SENSITIVE_HEADERS = {"authorization", "x-api-key", "cookie", "set-cookie"}
SENSITIVE_FIELDS = ("password", "secret", "token", "api_key", "authorization", "session")

REPO_ROOT = Path(__file__).parent.parent.parent.parent


class HttpClientError(Exception):
    """Raised when the HTTP client is misused."""
    pass


def build_token_store(config: ConfigLoader, registry: ProviderRegistry) -> TokenStore:
    """TokenStore persisting the providers marked ``persist: true``."""
    directory = Path(config.get("token_store.directory", str(DEFAULT_TOKEN_DIR)))
    if not directory.is_absolute():
        directory = REPO_ROOT / directory

    return TokenStore(
        records=JsonFileRecordStore(directory),
        durable_keys=[p.key for p in registry if p.persist],
        base_urls={p.key: p.base_url for p in registry},
    )


class HttpClient:
    """
    Authenticated HTTP client for API tests.

    Usage:
        >>> config = ConfigLoader()
        >>> with HttpClient(config) as client:
        ...     response = client.get("https://reqres.in/api/users/2")
        ...     response.status_code
        200

    Relative URLs are resolved against ``api.base_url``.

    Args:
        config: Configuration loader. Creates the default one if None.
        http_transport: Optional httpx transport handed to the Transport
        token_store: Shared TokenStore; built from config if None
    """

    def __init__(
        self,
        config: Optional[ConfigLoader] = None,
        http_transport: Optional[httpx.BaseTransport] = None,
        token_store: Optional[TokenStore] = None,
    ) -> None:
        if config is None:
            config = ConfigLoader()

        self.config = config
        self.base_url = config.get("api.base_url", "")
        self.timeout = float(config.get("api.timeout", DEFAULT_TIMEOUT))

        self.registry = ProviderRegistry.from_config(config)
        self.token_store = token_store or build_token_store(config, self.registry)
        self.transport = Transport(timeout=self.timeout, http_transport=http_transport)
        self.gateway = AuthGateway(
            registry=self.registry,
            credentials=CredentialProvider(self.registry),
            store=self.token_store,
            transport=self.transport,
            timeout=float(config.get("auth.timeout", self.timeout)),
            login_attempts=int(config.get("auth.login_attempts", DEFAULT_LOGIN_ATTEMPTS)),
            login_retry_delay=float(config.get("auth.login_retry_delay", DEFAULT_LOGIN_RETRY_DELAY)),
        )
        self.interceptor = RequestInterceptor(self.registry, self.gateway)
        self.retry_policy = RetryOnAuthFailure(self.registry, self.gateway)
        self._entered = False

    def __enter__(self) -> "HttpClient":
        self.transport.__enter__()
        self._entered = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.transport.close()
        self._entered = False

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """
        Execute a request through the auth pipeline.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, PATCH)
            url: Absolute URL, or path relative to api.base_url
            headers: Extra request headers
            json: JSON request body
            params: Query parameters
            timeout: Per-request timeout in seconds

        Returns:
            Final TransportResponse (after at most one auth retry)

        Raises:
            HttpClientError: Client used outside its context manager
            TransportError: Network failure or timeout
        """
        if not self._entered:
            raise HttpClientError(
                "HttpClient must be used within a context manager. "
                "Use 'with HttpClient() as client:'"
            )

        original = RequestDescriptor(
            method=method.upper(),
            url=self._resolve_url(url),
            headers=dict(headers or {}),
            body=json,
            params=params,
            timeout=timeout,
        )
        state = AuthAttemptState()

        prepared = self.interceptor.apply(original)
        response = self._send(prepared)
        final = self.retry_policy.handle(prepared, response, self._send, state)

        if state.retried:
            logger.info(f"{original.method} {original.url} replayed after re-login -> {final.status}")
        return final

    def _send(self, request: RequestDescriptor) -> TransportResponse:
        response = self.transport.call(
            request.method,
            request.url,
            headers=request.headers,
            body=request.body,
            params=request.params,
            timeout=request.timeout,
        )
        self._log_to_allure(request, response)
        return response

    def _resolve_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")) or not self.base_url:
            return url
        return f"{self.base_url.rstrip('/')}/{url.lstrip('/')}"

    def get(self, url: str, **kwargs: Any) -> TransportResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> TransportResponse:
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs: Any) -> TransportResponse:
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs: Any) -> TransportResponse:
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs: Any) -> TransportResponse:
        return self.request("DELETE", url, **kwargs)

    def _log_to_allure(self, request: RequestDescriptor, response: TransportResponse) -> None:
        """Attach one request/response exchange to the current Allure step."""
        full_url = request.url
        if request.params:
            query_string = "&".join(
                f"{k}={v}" for k, v in request.params.items() if v is not None
            )
            if query_string:
                full_url = f"{full_url}?{query_string}"

        status_mark = "OK" if response.status < 400 else "FAIL"
        step_title = f"[{status_mark}] {request.method} {request.url} -> {response.status}"

        with allure.step(step_title):
            allure.attach(full_url, name="Request URL", attachment_type=AttachmentType.TEXT)

            safe_headers = self._redact_headers(request.headers)
            if safe_headers:
                allure.attach(
                    json.dumps(safe_headers, ensure_ascii=False, indent=2),
                    name="Request Headers",
                    attachment_type=AttachmentType.JSON,
                )

            safe_body = self._redact_body(request.body)
            if safe_body:
                allure.attach(
                    json.dumps(safe_body, ensure_ascii=False, indent=2),
                    name="Request Body",
                    attachment_type=AttachmentType.JSON,
                )

            allure.attach(
                self._build_curl(request.method, full_url, safe_headers, safe_body),
                name="cURL Command",
                attachment_type=AttachmentType.TEXT,
            )

            if isinstance(response.body, (dict, list)):
                response_content = json.dumps(
                    self._redact_body(response.body), ensure_ascii=False, indent=2
                )
            else:
                response_content = str(response.body) if response.body else "<empty>"

            if len(response_content) > MAX_RESPONSE_LENGTH:
                response_content = (
                    f"{response_content[:MAX_RESPONSE_LENGTH]}\n\n"
                    f"... [Truncated, full length: {len(response_content)} chars] ..."
                )

            allure.attach(
                response_content,
                name=f"Response Body ({response.status})",
                attachment_type=AttachmentType.JSON,
            )

    def _redact_headers(self, headers: Dict[str, Any]) -> Dict[str, Any]:
        """Mask sensitive header values before logging."""
        return {
            key: "***MASKED***" if key.lower() in SENSITIVE_HEADERS else value
            for key, value in headers.items()
        }

    def _redact_body(self, payload: Any) -> Any:
        """Recursively mask sensitive fields in request/response bodies."""
        if isinstance(payload, dict):
            redacted = {}
            for key, value in payload.items():
                if any(marker in str(key).lower() for marker in SENSITIVE_FIELDS):
                    redacted[key] = "***MASKED***"
                else:
                    redacted[key] = self._redact_body(value)
            return redacted
        if isinstance(payload, list):
            return [self._redact_body(item) for item in payload]
        return payload

    def _build_curl(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        body: Any,
    ) -> str:
        """Copy-paste ready cURL command (headers are expected pre-redacted)."""
        parts = [f"curl -X {method}"]
        for key, value in headers.items():
            parts.append(f"-H '{key}: {value}'")
        if body:
            parts.append(f"-d '{json.dumps(body, ensure_ascii=False)}'")
        parts.append(f"'{url}'")
        return " \\\n  ".join(parts)


__all__ = [
    "HttpClient",
    "HttpClientError",
    "build_token_store",
]
