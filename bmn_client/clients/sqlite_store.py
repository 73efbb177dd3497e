"""SQLite-backed record storage for on-device secrets and preferences."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, Optional


class SQLiteStore:
    """Key-value records keyed by ``(pk, sk)``, one JSON document per row."""

    def __init__(self, db_path: str) -> None:
        self._db_path = Path(db_path).expanduser()
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=5.0, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS secure_records (
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (pk, sk)
                )
                """
            )
        conn.close()

    def put_item(self, item: Dict[str, Any]) -> None:
        """Insert or replace a whole record in a single statement."""
        pk = item.get("pk")
        sk = item.get("sk")
        if not pk or not sk:
            raise ValueError("Item must include 'pk' and 'sk' keys")

        data_json = json.dumps(item)
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO secure_records (pk, sk, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT(pk, sk) DO UPDATE SET data = excluded.data
                    """,
                    (pk, sk, data_json),
                )
        finally:
            conn.close()

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT data FROM secure_records WHERE pk = ? AND sk = ?",
                (partition_key, sort_key),
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return json.loads(row["data"])

    def delete_item(self, *, partition_key: str, sort_key: str) -> bool:
        """Delete a record; returns whether a row existed."""
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM secure_records WHERE pk = ? AND sk = ?",
                    (partition_key, sort_key),
                )
        finally:
            conn.close()
        return cursor.rowcount > 0


__all__ = ["SQLiteStore"]
