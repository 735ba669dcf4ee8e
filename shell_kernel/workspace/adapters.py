"""
Storage adapters for workspace records.

Both adapters replace the whole collection on every save, matching the
load-all / save-all contract of WorkspacePersistence.
Prototype: in-memory and SQLite. Production would back this with
browser storage or a server-side table.
"""

import json
import sqlite3
from typing import List

from shell_kernel.models.workspace import WorkspaceSessionRecord


class InMemoryStorageAdapter:
    """Keeps deep copies so callers never alias stored records."""

    def __init__(self, records: List[WorkspaceSessionRecord] = None):
        self._records: List[WorkspaceSessionRecord] = [
            r.model_copy(deep=True) for r in (records or [])
        ]
        self.save_count = 0

    async def load_all(self) -> List[WorkspaceSessionRecord]:
        return [r.model_copy(deep=True) for r in self._records]

    async def save_all(self, records: List[WorkspaceSessionRecord]) -> None:
        self._records = [r.model_copy(deep=True) for r in records]
        self.save_count += 1


class SqliteStorageAdapter:
    """
    One row per tab; the full record is kept as JSON alongside the columns
    used for ordering.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the workspace table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS workspace_sessions (
                tab_id TEXT PRIMARY KEY,
                created_at INTEGER NOT NULL,
                last_seen_at INTEGER NOT NULL,
                record_json TEXT NOT NULL
            )
        """)
        self._conn.commit()

    async def load_all(self) -> List[WorkspaceSessionRecord]:
        rows = self._conn.execute(
            "SELECT record_json FROM workspace_sessions ORDER BY rowid"
        ).fetchall()
        return [WorkspaceSessionRecord.model_validate_json(r["record_json"]) for r in rows]

    async def save_all(self, records: List[WorkspaceSessionRecord]) -> None:
        with self._conn:
            self._conn.execute("DELETE FROM workspace_sessions")
            self._conn.executemany(
                """
                INSERT INTO workspace_sessions (tab_id, created_at, last_seen_at, record_json)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (
                        r.tab_id,
                        r.created_at,
                        r.last_seen_at,
                        json.dumps(r.model_dump(mode="json", by_alias=True)),
                    )
                    for r in records
                ],
            )

    def count(self) -> int:
        """Total number of stored workspace records."""
        row = self._conn.execute("SELECT COUNT(*) as cnt FROM workspace_sessions").fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
