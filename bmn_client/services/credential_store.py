"""
Durable, encrypted storage for the access/refresh token pair.

The store is the single source of truth for "is a usable token available".
Every call is serialized through one re-entrant lock, and the whole record is
written as one row, so readers never observe half of a save or a clear.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from bmn_client.clients.sqlite_store import SQLiteStore
from bmn_client.models.credentials import CredentialRecord, utcnow
from bmn_client.schemas.auth import DEFAULT_ACCESS_TOKEN_TTL, DEFAULT_REFRESH_TOKEN_TTL
from bmn_client.services.token_cipher import TokenCipherService, TokenDecryptionError

logger = logging.getLogger(__name__)

_PERSISTENCE_ERRORS = (sqlite3.Error, OSError)


class CredentialStore:
    """Encrypted credential record keyed by an application namespace."""

    SECURE_SORT_KEY = "credentials"
    LEGACY_SORT_KEY = "tokens"

    def __init__(
        self,
        store: SQLiteStore,
        cipher: TokenCipherService,
        *,
        namespace: str = "com.bmnboston.app",
        legacy_refresh_ttl_seconds: int = DEFAULT_REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._namespace = namespace
        self._legacy_refresh_ttl = timedelta(seconds=legacy_refresh_ttl_seconds)
        self._clock = clock
        self._lock = threading.RLock()
        self._migration_checked = False

    @property
    def secure_key(self) -> str:
        return f"keychain#{self._namespace}"

    @property
    def legacy_key(self) -> str:
        return f"defaults#{self._namespace}"

    # ------------------------------------------------------------------ writes

    def save(
        self,
        access_token: str,
        refresh_token: str,
        access_ttl_seconds: int = DEFAULT_ACCESS_TOKEN_TTL,
        refresh_ttl_seconds: int = DEFAULT_REFRESH_TOKEN_TTL,
    ) -> None:
        """Replace the stored pair; expiries are computed from now plus the TTLs."""
        with self._lock:
            record = CredentialRecord.issue(
                access_token=access_token,
                refresh_token=refresh_token,
                access_ttl_seconds=access_ttl_seconds,
                refresh_ttl_seconds=refresh_ttl_seconds,
                now=self._clock(),
            )
            try:
                self._write(record)
            except _PERSISTENCE_ERRORS:
                logger.exception(
                    "Failed to persist credentials",
                    extra={"namespace": self._namespace},
                )
                return
            # A fresh login supersedes anything still waiting to be migrated.
            self._migration_checked = True
            logger.debug(
                "Stored credentials",
                extra={
                    "namespace": self._namespace,
                    "access_expires_at": record.access_expires_at.isoformat(),
                    "refresh_expires_at": record.refresh_expires_at.isoformat(),
                },
            )

    def clear(self) -> None:
        """Remove the stored record and any legacy copy; idempotent."""
        with self._lock:
            try:
                removed = self._store.delete_item(
                    partition_key=self.secure_key, sort_key=self.SECURE_SORT_KEY
                )
                # A surviving legacy record would be migrated back on the next read.
                removed_legacy = self._store.delete_item(
                    partition_key=self.legacy_key, sort_key=self.LEGACY_SORT_KEY
                )
            except _PERSISTENCE_ERRORS:
                logger.exception(
                    "Failed to clear credentials", extra={"namespace": self._namespace}
                )
                return
            self._migration_checked = True
            if removed or removed_legacy:
                logger.info("Cleared stored credentials", extra={"namespace": self._namespace})

    # ------------------------------------------------------------------- reads

    def load(self) -> Optional[CredentialRecord]:
        """Return a decrypted snapshot of the record, or None when unusable."""
        with self._lock:
            self._ensure_migrated()
            return self._read()

    def get_access_token(self) -> Optional[str]:
        with self._lock:
            record = self.load()
            if record is None or not record.access_token:
                return None
            if not record.is_access_valid(self._clock()):
                return None
            return record.access_token

    def get_refresh_token(self) -> Optional[str]:
        with self._lock:
            record = self.load()
            if record is None or not record.is_refresh_valid(self._clock()):
                return None
            return record.refresh_token

    def has_refresh_token(self) -> bool:
        """Whether a refresh token is stored at all, expired or not."""
        return self.load() is not None

    def is_authenticated(self) -> bool:
        """True when the session can be used directly or recovered by a refresh."""
        with self._lock:
            return self.get_access_token() is not None or self.has_refresh_token()

    # --------------------------------------------------------------- migration

    def migrate_legacy_credentials(self) -> bool:
        """
        Move tokens from the unsecured legacy record into the encrypted record.

        Returns True when a legacy record was found and removed. Once the legacy
        record is gone every later call is a no-op.
        """
        with self._lock:
            self._migration_checked = True
            try:
                legacy = self._store.get_item(
                    partition_key=self.legacy_key, sort_key=self.LEGACY_SORT_KEY
                )
            except _PERSISTENCE_ERRORS:
                logger.exception("Failed to read legacy credentials")
                return False
            if not legacy:
                return False

            access_token = legacy.get("access_token")
            refresh_token = legacy.get("refresh_token")
            if refresh_token and self._read() is None:
                now = self._clock()
                access_expires_at = now
                if access_token:
                    access_expires_at = _parse_timestamp(legacy.get("token_expiry")) or now
                # Legacy records never stored a refresh expiry.
                refresh_expires_at = now + self._legacy_refresh_ttl
                record = CredentialRecord(
                    access_token=access_token or "",
                    refresh_token=refresh_token,
                    access_expires_at=access_expires_at,
                    refresh_expires_at=refresh_expires_at,
                    updated_at=now,
                )
                try:
                    self._write(record)
                except _PERSISTENCE_ERRORS:
                    logger.exception("Failed to migrate legacy credentials")
                    self._migration_checked = False
                    return False
                logger.warning(
                    "Migrated legacy credentials with an assumed refresh lifetime",
                    extra={
                        "namespace": self._namespace,
                        "refresh_expires_at": refresh_expires_at.isoformat(),
                    },
                )

            try:
                self._store.delete_item(
                    partition_key=self.legacy_key, sort_key=self.LEGACY_SORT_KEY
                )
            except _PERSISTENCE_ERRORS:
                logger.exception("Failed to delete legacy credentials")
                return False
            return True

    # ---------------------------------------------------------------- helpers

    def _ensure_migrated(self) -> None:
        if not self._migration_checked:
            self.migrate_legacy_credentials()

    def _write(self, record: CredentialRecord) -> None:
        item: Dict[str, Any] = {
            "pk": self.secure_key,
            "sk": self.SECURE_SORT_KEY,
            "access_token_encrypted": self._cipher.encrypt(record.access_token),
            "refresh_token_encrypted": self._cipher.encrypt(record.refresh_token),
            "access_expires_at": record.access_expires_at.isoformat(),
            "refresh_expires_at": record.refresh_expires_at.isoformat(),
            "updated_at": record.updated_at.isoformat(),
        }
        self._store.put_item(item)

    def _read(self) -> Optional[CredentialRecord]:
        try:
            item = self._store.get_item(
                partition_key=self.secure_key, sort_key=self.SECURE_SORT_KEY
            )
        except _PERSISTENCE_ERRORS:
            logger.exception("Failed to read credentials", extra={"namespace": self._namespace})
            return None
        if not item:
            return None

        encrypted_access = item.get("access_token_encrypted")
        encrypted_refresh = item.get("refresh_token_encrypted")
        access_expires_at = _parse_timestamp(item.get("access_expires_at"))
        refresh_expires_at = _parse_timestamp(item.get("refresh_expires_at"))
        if encrypted_access is None or not encrypted_refresh:
            return None
        if access_expires_at is None or refresh_expires_at is None:
            # A missing expiry is an unauthenticated state, never an unbounded one.
            logger.warning(
                "Stored credentials are missing an expiry; ignoring them",
                extra={"namespace": self._namespace},
            )
            return None

        try:
            return CredentialRecord(
                access_token=self._cipher.decrypt(encrypted_access),
                refresh_token=self._cipher.decrypt(encrypted_refresh),
                access_expires_at=access_expires_at,
                refresh_expires_at=refresh_expires_at,
                updated_at=_parse_timestamp(item.get("updated_at")) or refresh_expires_at,
            )
        except (TokenDecryptionError, ValidationError):
            logger.exception(
                "Stored credentials are unreadable", extra={"namespace": self._namespace}
            )
            return None


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings or epoch seconds into aware UTC datetimes."""
    if value is None or value == "":
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            parsed = datetime.fromisoformat(str(value))
    except (TypeError, ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = ["CredentialStore"]
