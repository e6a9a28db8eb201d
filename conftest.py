"""
Repository-level pytest configuration (showcase-safe).

Why this exists:
  - Provide safe defaults for demo environments (no secrets embedded)
  - Configure Loguru once for the whole run
  - Keep behavior explicit and discoverable

Important:
  Values below are placeholders for public demo APIs.
  Real projects should load secrets from a secure secret manager in CI/CD.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest

from testsuites.api_testing.framework.logging_setup import init_logger


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return repo root path."""
    return Path(__file__).parent


@pytest.fixture(scope="session", autouse=True)
def _demo_safe_env_defaults() -> Generator[None, None, None]:
    """
    Set demo-safe credentials if not already provided by the user/CI.
    """
    defaults = {
        "REQRES_EMAIL": "eve.holt@reqres.in",
        "REQRES_PASSWORD": "cityslicka",
        "PETSTORE_USERNAME": "testuser",
        "PETSTORE_PASSWORD": "testpass",
    }

    for k, v in defaults.items():
        os.environ.setdefault(k, v)

    init_logger()
    yield
