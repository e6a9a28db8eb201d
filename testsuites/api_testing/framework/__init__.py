"""
================================================================================
API Testing Framework
================================================================================

Authenticated API automation components.

Modules:
    - config_loader: YAML configuration management
    - providers: Authenticated provider registry and URL classification
    - credentials: Shared-secret credential lookup
    - token_store: Durable cross-process token cache
    - auth_gateway: Token acquisition, forced refresh and explicit login
    - interceptor: Bearer header injection
    - retry_policy: Single re-login and replay on 401
    - transport: Single-shot httpx transport
    - http_client: Pipeline client with Allure logging

Author: Automation Team
License: MIT
================================================================================
"""

from .auth_gateway import AuthGateway, LoginError
from .config_loader import ConfigLoader, ConfigurationError
from .credentials import CredentialProvider, Credentials
from .http_client import HttpClient, HttpClientError
from .interceptor import RequestDescriptor, RequestInterceptor
from .logging_setup import init_logger
from .providers import ProviderRegistry, ProviderSettings
from .retry_policy import AuthAttemptState, RetryOnAuthFailure
from .token_store import StorageError, TokenError, TokenRecord, TokenStore
from .transport import Transport, TransportError, TransportResponse

__all__ = [
    "AuthAttemptState",
    "AuthGateway",
    "ConfigLoader",
    "ConfigurationError",
    "CredentialProvider",
    "Credentials",
    "HttpClient",
    "HttpClientError",
    "LoginError",
    "ProviderRegistry",
    "ProviderSettings",
    "RequestDescriptor",
    "RequestInterceptor",
    "RetryOnAuthFailure",
    "StorageError",
    "TokenError",
    "TokenRecord",
    "TokenStore",
    "Transport",
    "TransportError",
    "TransportResponse",
    "init_logger",
]
