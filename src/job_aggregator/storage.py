from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ALERTS_KEY = "job-alerts"
ALERTS_SEEN_KEY = "job-alerts-seen"
PROVIDER_HEALTH_KEY = "navi-provider-health"
DISABLED_COMPANY_BOARDS_KEY = "navi-disabled-company-boards"
COMPANY_BOARDS_KEY = "navi-company-boards"


class StateStore(AbstractContextManager["StateStore"]):
    """Key-value store holding JSON documents in a single sqlite table."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self.conn:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get_raw(self, key: str) -> str | None:
        row = self.conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["value"])

    def get_json(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring unreadable value stored under %r: %s", key, exc)
            return default

    def set_json(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False, sort_keys=True)
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO kv (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, encoded),
            )

    def delete(self, key: str) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        rows = self.conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [str(row["key"]) for row in rows]

    def close(self) -> None:
        self.conn.close()

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()
