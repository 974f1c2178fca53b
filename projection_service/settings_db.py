"""
User Adaptive Settings Storage (SQLite)

Persists per-user λ / regret prior with a version column for optimistic
concurrency. The synchronous SettingsDB does the SQL; SQLiteUserSettingsStore
adapts it to the async UserSettingsStore interface via run_in_executor.

Version protocol:
    UPDATE ... WHERE user_id = ? AND version = expected
    0 rows changed → ConcurrentModificationError
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from config.projection_config import config as default_config
from projection_core.parameters import UserAdaptiveSettings
from projection_service.errors import ConcurrentModificationError
from projection_service.logging_utils import get_logger
from projection_service.ports import UserSettingsStore

logger = get_logger(__name__)


class SettingsDB:
    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=5.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_version (
                  name TEXT PRIMARY KEY,
                  version INTEGER NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_settings (
                  user_id TEXT PRIMARY KEY,
                  lambda REAL NOT NULL CHECK (lambda >= 0),
                  regret_prior REAL NOT NULL CHECK (regret_prior >= 0 AND regret_prior <= 1),
                  version INTEGER NOT NULL CHECK (version >= 1),
                  updated_at TEXT NOT NULL
                );
                """
            )
            conn.execute(
                "INSERT OR REPLACE INTO schema_version(name, version) VALUES(?, ?);",
                ("settings_db", self.SCHEMA_VERSION),
            )

    @staticmethod
    def _row_to_settings(row: sqlite3.Row) -> UserAdaptiveSettings:
        return UserAdaptiveSettings(
            user_id=row["user_id"],
            lambda_=float(row["lambda"]),
            regret_prior=float(row["regret_prior"]),
            version=int(row["version"]),
        )

    def load(self, user_id: str) -> Optional[UserAdaptiveSettings]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id, lambda, regret_prior, version FROM user_settings WHERE user_id = ?;",
                (user_id,),
            ).fetchone()
            return self._row_to_settings(row) if row else None

    def insert_if_absent(self, settings: UserAdaptiveSettings) -> UserAdaptiveSettings:
        """Insert, or return the row another writer created first."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO user_settings(user_id, lambda, regret_prior, version, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO NOTHING;
                """,
                (settings.user_id, settings.lambda_, settings.regret_prior,
                 settings.version, datetime.now(timezone.utc).isoformat()),
            )
            row = conn.execute(
                "SELECT user_id, lambda, regret_prior, version FROM user_settings WHERE user_id = ?;",
                (settings.user_id,),
            ).fetchone()
            return self._row_to_settings(row)

    def update(self, settings: UserAdaptiveSettings, expected_version: int) -> UserAdaptiveSettings:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE user_settings
                SET lambda = ?, regret_prior = ?, version = ?, updated_at = ?
                WHERE user_id = ? AND version = ?;
                """,
                (settings.lambda_, settings.regret_prior, settings.version,
                 datetime.now(timezone.utc).isoformat(), settings.user_id, expected_version),
            )
            if cursor.rowcount == 0:
                row = conn.execute(
                    "SELECT version FROM user_settings WHERE user_id = ?;",
                    (settings.user_id,),
                ).fetchone()
                actual = int(row["version"]) if row else 0
                raise ConcurrentModificationError(settings.user_id, expected_version, actual)
        return settings

    def health_check(self) -> Dict[str, Any]:
        with self._connect() as conn:
            integrity = conn.execute("PRAGMA integrity_check;").fetchone()[0]
            users = conn.execute("SELECT COUNT(*) FROM user_settings;").fetchone()[0]
            version = conn.execute(
                "SELECT version FROM schema_version WHERE name=?;", ("settings_db",)
            ).fetchone()
            return {
                "backend": "sqlite",
                "db_path": str(self.db_path),
                "schema_version": int(version[0]) if version else None,
                "integrity_check": integrity,
                "user_count": int(users),
            }


class SQLiteUserSettingsStore(UserSettingsStore):
    """Async UserSettingsStore over SettingsDB. Path defaults to config SETTINGS_DB_PATH."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db = SettingsDB(db_path or Path(default_config.SETTINGS_DB_PATH))

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: fn(*args))

    async def get(self, user_id: str) -> Optional[UserAdaptiveSettings]:
        return await self._run(self.db.load, user_id)

    async def create(self, settings: UserAdaptiveSettings) -> UserAdaptiveSettings:
        return await self._run(self.db.insert_if_absent, settings)

    async def save(self, settings: UserAdaptiveSettings, expected_version: int) -> UserAdaptiveSettings:
        saved = await self._run(self.db.update, settings, expected_version)
        logger.debug(f"Settings saved: {settings.user_id} v{expected_version} -> v{settings.version}")
        return saved
