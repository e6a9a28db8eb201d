"""
================================================================================
Token Store with Durable Cross-Process Records
================================================================================

Owns every cached bearer token in the harness:
    - One JSON record per provider key under the token directory, shared by
      all pytest workers (last writer wins)
    - An in-process mirror per key
    - Lazy invalidation: expired records stay on disk for inspection but are
      never returned as valid

Storage is best-effort. Read failures degrade to "no cached token", write
failures are logged and swallowed so a disk hiccup never fails a login.

Author: Automation Team
License: MIT
================================================================================
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional

from filelock import FileLock, Timeout
from loguru import logger


DEFAULT_TOKEN_DIR = Path(__file__).parent.parent.parent.parent / ".token_cache"

# Upper bound on waiting for another worker's write to finish
LOCK_TIMEOUT = 5.0


class TokenError(Exception):
    """Raised when token operations fail."""
    pass


class StorageError(TokenError):
    """Raised by the durable record store on read/write failure."""
    pass


def mask_token(token: Optional[str]) -> str:
    """Loggable form of a token."""
    if not token:
        return "<none>"
    return f"{token[:6]}***" if len(token) > 6 else "***"


@dataclass
class TokenRecord:
    provider_key: str
    token: Optional[str] = None
    expires_at: Optional[int] = None  # epoch millis

    def is_valid(self, now_ms: int) -> bool:
        return bool(self.token) and self.expires_at is not None and self.expires_at > now_ms

    def to_dict(self, base_url: Optional[str] = None) -> Dict[str, Any]:
        return {
            "providerKey": self.provider_key,
            "baseUrl": base_url,
            "token": self.token,
            "tokenExpiresAt": self.expires_at,
        }

    @classmethod
    def from_dict(cls, provider_key: str, data: Dict[str, Any]) -> "TokenRecord":
        """
        Build a record from its stored form.

        Raises:
            StorageError: ``token`` is not a string or ``tokenExpiresAt`` is
                          not an epoch-millis number
        """
        token = data.get("token")
        if token is not None and not isinstance(token, str):
            raise StorageError(f"Token record '{provider_key}' has a non-string token")

        expires_at = data.get("tokenExpiresAt")
        if expires_at is not None:
            if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
                raise StorageError(
                    f"Token record '{provider_key}' has invalid tokenExpiresAt: {expires_at!r}"
                )
            try:
                expires_at = int(expires_at)
            except (OverflowError, ValueError) as e:
                raise StorageError(
                    f"Token record '{provider_key}' has invalid tokenExpiresAt: {expires_at!r}"
                ) from e

        return cls(provider_key=provider_key, token=token, expires_at=expires_at)


class JsonFileRecordStore:
    """
    Durable record store: one ``<slot>.json`` file per slot.

    Each read and write holds a short ``<slot>.lock`` file lock so readers
    never observe a half-written document. The lock protects the file only;
    logins are never serialized across processes.
    """

    def __init__(self, directory: Path, lock_timeout: float = LOCK_TIMEOUT) -> None:
        self.directory = Path(directory)
        self.lock_timeout = lock_timeout

    def _path(self, slot: str) -> Path:
        return self.directory / f"{slot}.json"

    def _lock(self, slot: str) -> FileLock:
        return FileLock(str(self.directory / f"{slot}.lock"), timeout=self.lock_timeout)

    def read_record(self, slot: str) -> Optional[Dict[str, Any]]:
        path = self._path(slot)
        if not path.exists():
            return None
        try:
            with self._lock(slot):
                with open(path, "r", encoding="utf-8") as f:
                    data = json.load(f)
        except (OSError, ValueError, Timeout) as e:
            raise StorageError(f"Cannot read token record {path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Token record {path} is not a JSON object")
        return data

    def write_record(self, slot: str, record: Dict[str, Any]) -> None:
        path = self._path(slot)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with self._lock(slot):
                tmp_path = path.with_suffix(".json.tmp")
                with open(tmp_path, "w", encoding="utf-8") as f:
                    json.dump(record, f, indent=4)
                tmp_path.replace(path)
        except (OSError, TypeError, ValueError, Timeout) as e:
            raise StorageError(f"Cannot write token record {path}: {e}") from e

    def slots(self) -> Iterable[str]:
        if not self.directory.exists():
            return []
        return [p.stem for p in self.directory.glob("*.json")]


class TokenStore:
    """
    Cache of ``{token, expires_at}`` per provider key.

    Keys listed in ``durable_keys`` are persisted through the record store
    and re-read on every ``get`` so a token refreshed by another worker is
    picked up. Other keys live in the in-process mirror only.

    Usage:
        >>> store = TokenStore(JsonFileRecordStore(tmp_dir), durable_keys={"reqres"})
        >>> store.set("reqres", "abc123", ttl_seconds=3600)
        >>> store.get("reqres").token
        'abc123'
    """

    def __init__(
        self,
        records: Optional[JsonFileRecordStore] = None,
        durable_keys: Iterable[str] = (),
        base_urls: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.records = records
        self.durable_keys = set(durable_keys)
        self.base_urls = dict(base_urls or {})
        self._clock = clock
        self._mirror: Dict[str, TokenRecord] = {}

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_durable(self, provider_key: str) -> bool:
        return self.records is not None and provider_key in self.durable_keys

    def get(self, provider_key: str) -> Optional[TokenRecord]:
        """
        Return the valid record for ``provider_key``, or None.

        Expired records are reported absent but left in storage.
        """
        now_ms = self._now_ms()

        if self._is_durable(provider_key):
            try:
                data = self.records.read_record(provider_key)
            except StorageError as e:
                # Durable copy unusable: fall back to what this process last wrote
                logger.warning(f"Token store read failed for '{provider_key}': {e}")
                return self._valid_mirror(provider_key, now_ms)

            if data is None:
                return self._valid_mirror(provider_key, now_ms)

            try:
                record = TokenRecord.from_dict(provider_key, data)
            except StorageError as e:
                logger.warning(f"Ignoring malformed token record: {e}")
                return None

            if record.is_valid(now_ms):
                self._mirror[provider_key] = record
                return record
            logger.debug(f"Durable token for '{provider_key}' is absent or expired")
            return None

        return self._valid_mirror(provider_key, now_ms)

    def _valid_mirror(self, provider_key: str, now_ms: int) -> Optional[TokenRecord]:
        record = self._mirror.get(provider_key)
        if record is not None and record.is_valid(now_ms):
            return record
        return None

    def set(self, provider_key: str, token: str, ttl_seconds: int) -> TokenRecord:
        """
        Store ``token`` for ``provider_key`` valid for ``ttl_seconds``.

        A ``ttl_seconds <= 0`` produces a record that is already expired.
        """
        record = TokenRecord(
            provider_key=provider_key,
            token=token,
            expires_at=self._now_ms() + int(ttl_seconds * 1000),
        )
        self._mirror[provider_key] = record

        if self._is_durable(provider_key):
            self._write(provider_key, record)

        logger.debug(f"Token stored for '{provider_key}': {mask_token(token)} (ttl={ttl_seconds}s)")
        return record

    def clear(self, provider_key: str) -> None:
        """Clear the token for one key in the mirror and on disk."""
        self._mirror.pop(provider_key, None)
        if self._is_durable(provider_key):
            self._write(provider_key, TokenRecord(provider_key=provider_key))
        logger.info(f"Token '{provider_key}' cleared")

    def clear_all(self) -> None:
        """Clear every key known to this process or present on disk."""
        self._mirror.clear()
        if self.records is None:
            logger.info("All tokens cleared")
            return

        slots = set(self.durable_keys)
        try:
            slots.update(self.records.slots())
        except OSError as e:
            logger.warning(f"Cannot list token records: {e}")

        for key in sorted(slots):
            self._write(key, TokenRecord(provider_key=key))
        logger.info("All tokens cleared")

    def _write(self, provider_key: str, record: TokenRecord) -> None:
        try:
            self.records.write_record(
                provider_key, record.to_dict(self.base_urls.get(provider_key))
            )
        except StorageError as e:
            logger.warning(f"Failed to persist token for '{provider_key}': {e}")


__all__ = [
    "DEFAULT_TOKEN_DIR",
    "JsonFileRecordStore",
    "StorageError",
    "TokenError",
    "TokenRecord",
    "TokenStore",
    "mask_token",
]
