"""SQLite-backed health history backend."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import aiosqlite

from clusterdash.history.models import HealthTransition

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS health_transitions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    service_id TEXT NOT NULL,
    previous TEXT NOT NULL,
    current TEXT NOT NULL,
    at TEXT NOT NULL,
    consecutive_failures INTEGER NOT NULL DEFAULT 0,
    error TEXT
);

CREATE INDEX IF NOT EXISTS idx_transitions_service ON health_transitions (service_id, at);
"""

_COLUMNS = "service_id, previous, current, at, consecutive_failures, error"


class SqliteHealthHistory:
    """SQLite-backed transition history with optional per-service retention."""

    def __init__(self, db_path: str = "clusterdash_history.db", max_records: int = 0) -> None:
        self._db_path = db_path
        self._max_records = max_records
        self._initialized = False

    async def _init_connection(self, db: aiosqlite.Connection) -> None:
        """Create tables on first use."""
        if not self._initialized:
            await db.executescript(_CREATE_TABLES)
            self._initialized = True

    async def record(self, transition: HealthTransition) -> None:
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            await db.execute(
                f"INSERT INTO health_transitions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    transition.service_id,
                    transition.previous,
                    transition.current,
                    transition.at.isoformat(),
                    transition.consecutive_failures,
                    transition.error,
                ),
            )

            # Retention pruning
            if self._max_records > 0:
                count_rows = list(await db.execute_fetchall(
                    "SELECT COUNT(*) FROM health_transitions WHERE service_id = ?",
                    (transition.service_id,),
                ))
                excess = int(count_rows[0][0]) - self._max_records
                if excess > 0:
                    await db.execute(
                        "DELETE FROM health_transitions WHERE id IN ("
                        "  SELECT id FROM health_transitions WHERE service_id = ?"
                        "  ORDER BY at ASC, id ASC LIMIT ?"
                        ")",
                        (transition.service_id, excess),
                    )

            await db.commit()

    def _parse_dt(self, val: str) -> datetime:
        parsed = datetime.fromisoformat(val)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    def _rows_to_transitions(self, rows: list[Any]) -> list[HealthTransition]:
        return [
            HealthTransition(
                service_id=str(r[0]),
                previous=str(r[1]),
                current=str(r[2]),
                at=self._parse_dt(str(r[3])),
                consecutive_failures=int(r[4]),
                error=str(r[5]) if r[5] is not None else None,
            )
            for r in rows
        ]

    async def get_history(self, service_id: str) -> list[HealthTransition]:
        """Transitions for one service, newest first."""
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT {_COLUMNS} FROM health_transitions WHERE service_id = ? ORDER BY at DESC, id DESC",
                (service_id,),
            ))
            return self._rows_to_transitions(rows)

    async def get_recent(self, limit: int = 20) -> list[HealthTransition]:
        async with aiosqlite.connect(self._db_path) as db:
            await self._init_connection(db)
            rows = list(await db.execute_fetchall(
                f"SELECT {_COLUMNS} FROM health_transitions ORDER BY at DESC, id DESC LIMIT ?",
                (limit,),
            ))
            return self._rows_to_transitions(rows)
