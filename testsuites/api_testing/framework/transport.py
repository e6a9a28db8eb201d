"""
================================================================================
HTTP Transport
================================================================================

Thin httpx wrapper that performs exactly one HTTP exchange.

Contract:
    - Returns TransportResponse(status, body, headers) for every status code,
      including 4xx/5xx.
    - Raises TransportError on network failure or timeout; nothing else
      about the exchange is retried here.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from loguru import logger


DEFAULT_TIMEOUT = 30.0


class TransportError(Exception):
    """Raised when the request could not complete (network error, timeout)."""
    pass


@dataclass
class TransportResponse:
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def status_code(self) -> int:
        return self.status

    def json(self) -> Any:
        return self.body

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "TransportResponse":
        try:
            body = response.json()
        except ValueError:
            body = response.text or None
        return cls(status=response.status_code, body=body, headers=dict(response.headers))


class Transport:
    """
    Single-shot HTTP caller.

    Usage:
        >>> with Transport(timeout=10) as transport:
        ...     response = transport.call("GET", "https://reqres.in/api/users/2")
        ...     response.status
        200

    Args:
        timeout: Default timeout in seconds for each call
        http_transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        http_transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout = float(timeout)
        self._http_transport = http_transport
        self._session: Optional[httpx.Client] = None

    def __enter__(self) -> "Transport":
        self._ensure_session()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _ensure_session(self) -> httpx.Client:
        if self._session is None:
            self._session = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                transport=self._http_transport,
            )
        return self._session

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None

    def call(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        """
        Perform one HTTP request.

        Args:
            method: HTTP method
            url: Absolute URL
            headers: Request headers
            body: JSON-serializable request body
            params: Query parameters
            timeout: Per-call timeout in seconds (defaults to the transport timeout)

        Raises:
            TransportError: Network failure or timeout
        """
        session = self._ensure_session()
        request_timeout = httpx.Timeout(timeout if timeout is not None else self.timeout)

        try:
            response = session.request(
                method.upper(),
                url,
                headers=headers or {},
                json=body,
                params=params,
                timeout=request_timeout,
            )
        except httpx.TimeoutException as e:
            logger.warning(f"{method.upper()} {url} timed out after {request_timeout.read}s")
            raise TransportError(f"Timeout calling {method.upper()} {url}: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"{method.upper()} {url} failed: {e}")
            raise TransportError(f"Network error calling {method.upper()} {url}: {e}") from e

        logger.debug(f"{method.upper()} {url} -> {response.status_code}")
        return TransportResponse.from_httpx(response)


__all__ = [
    "DEFAULT_TIMEOUT",
    "Transport",
    "TransportError",
    "TransportResponse",
]
