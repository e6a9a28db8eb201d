"""
Fixtures for framework unit tests.

Network traffic is served by ``FakeApi`` through ``httpx.MockTransport`` so
the real Transport code runs without leaving the process.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Generator, List

import httpx
import pytest
import yaml

from testsuites.api_testing.framework.auth_gateway import AuthGateway
from testsuites.api_testing.framework.config_loader import ConfigLoader
from testsuites.api_testing.framework.credentials import CredentialProvider
from testsuites.api_testing.framework.providers import ProviderRegistry
from testsuites.api_testing.framework.token_store import JsonFileRecordStore, TokenStore
from testsuites.api_testing.framework.transport import Transport


TEST_CONFIG: Dict[str, Any] = {
    "api": {"base_url": "http://public.test", "timeout": 5},
    "auth": {"default_ttl": 3600, "login_attempts": 3, "login_retry_delay": 0.5},
    "providers": {
        "svc": {
            "base_url": "http://svc.test/api",
            "match": ["svc-mirror.test"],
            "login": {
                "path": "/login",
                "method": "POST",
                "credentials_in": "json",
                "identifier_field": "email",
                "secret_field": "password",
                "token_path": "token",
            },
            "credentials": {
                "identifier_env": "SVC_TEST_EMAIL",
                "secret_env": "SVC_TEST_PASSWORD",
                "identifier": "user@svc.test",
                "secret": "s3cret",
            },
            "token_ttl": 3600,
            "persist": True,
        },
        "mem": {
            "base_url": "http://mem.test",
            "login": {
                "path": "/auth",
                "method": "GET",
                "credentials_in": "query",
                "identifier_field": "username",
                "secret_field": "password",
                "token_path": "data.session",
            },
            "credentials": {"identifier": "memuser", "secret": "mempass"},
            "token_ttl": 60,
        },
    },
}


class FakeApi:
    """
    Scripted HTTP backend.

    Outcomes are queued per URL path; the last queued outcome repeats. An
    outcome is ``(status, body)`` or an exception instance to raise.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, List[Any]] = {}
        self.requests: List[httpx.Request] = []

    def queue(self, path: str, *outcomes: Any) -> None:
        self.routes.setdefault(path, []).extend(outcomes)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcomes = self.routes.get(request.url.path)
        if not outcomes:
            return httpx.Response(404, json={"error": "not found"})

        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome

        status, body = outcome
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


@pytest.fixture
def config(tmp_path, monkeypatch) -> Generator[ConfigLoader, None, None]:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(TEST_CONFIG), encoding="utf-8")

    for name in ("SVC_BASE_URL", "MEM_BASE_URL", "SVC_TEST_EMAIL", "SVC_TEST_PASSWORD",
                 "API_BASE_URL", "API_TIMEOUT", "ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TOKEN_STORE_DIRECTORY", str(tmp_path / "tokens"))

    ConfigLoader.reset()
    loader = ConfigLoader(config_path=config_path)
    yield loader
    ConfigLoader.reset()


@pytest.fixture
def registry(config: ConfigLoader) -> ProviderRegistry:
    return ProviderRegistry.from_config(config)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def transport(fake_api: FakeApi) -> Generator[Transport, None, None]:
    with Transport(timeout=5, http_transport=httpx.MockTransport(fake_api.handler)) as t:
        yield t


@pytest.fixture
def token_dir(tmp_path):
    return tmp_path / "tokens"


@pytest.fixture
def token_store(token_dir, registry: ProviderRegistry) -> TokenStore:
    return TokenStore(
        records=JsonFileRecordStore(token_dir),
        durable_keys={"svc"},
        base_urls={p.key: p.base_url for p in registry},
    )


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def gateway(registry, token_store, transport, sleeps) -> AuthGateway:
    return AuthGateway(
        registry=registry,
        credentials=CredentialProvider(registry),
        store=token_store,
        transport=transport,
        login_attempts=3,
        login_retry_delay=0.5,
        sleep=sleeps.append,
    )
