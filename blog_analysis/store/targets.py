"""SQLite document store for targets, with partial-field updates."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import threading
from datetime import datetime, timezone
from typing import Any, Protocol

from pydantic import ValidationError

from blog_analysis.errors import StoreError
from blog_analysis.models import Target

logger = logging.getLogger(__name__)


class TargetStore(Protocol):
    """What the pipeline needs from a store."""

    async def get(self, target_id: str) -> Target | None: ...

    async def update(self, target_id: str, patch: dict[str, Any]) -> None: ...


class SqliteTargetStore:
    """Targets kept as JSON documents keyed by id.

    Sync methods do the work; the async ``get``/``update`` run them in a
    worker thread. A lock serializes access to the shared connection.
    """

    def __init__(self, db_path: str = ".blog_analysis.db"):
        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn: sqlite3.Connection | None = sqlite3.connect(
                db_path, timeout=10, check_same_thread=False,
            )
            self.conn.execute("PRAGMA journal_mode=WAL")
            self.conn.executescript("""
                CREATE TABLE IF NOT EXISTS targets (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    doc_json TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS analysis_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    status TEXT NOT NULL,
                    target_count INTEGER NOT NULL DEFAULT 0,
                    skip_days INTEGER NOT NULL DEFAULT 0,
                    total_cost REAL NOT NULL DEFAULT 0,
                    result_json TEXT,
                    error TEXT,
                    started_at TEXT NOT NULL,
                    completed_at TEXT
                );
            """)
            self.conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Could not open target store at {db_path}: {e}") from e

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _connection(self) -> sqlite3.Connection:
        if self.conn is None:
            raise StoreError("Target store is closed")
        return self.conn

    # --- Sync API ---

    def load(self, target_id: str) -> Target | None:
        with self._lock:
            try:
                row = self._connection().execute(
                    "SELECT doc_json FROM targets WHERE id = ?", (target_id,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Read failed for {target_id}: {e}") from e
        if not row:
            return None
        return Target.model_validate_json(row[0])

    def save(self, target: Target) -> None:
        """Insert or fully replace a target."""
        with self._lock:
            self._write(target)

    def save_many(self, targets: list[Target]) -> int:
        with self._lock:
            for target in targets:
                self._write(target)
        return len(targets)

    def patch(self, target_id: str, patch: dict[str, Any]) -> Target:
        """Merge ``patch`` into the stored document's top-level fields."""
        with self._lock:
            conn = self._connection()
            try:
                row = conn.execute(
                    "SELECT doc_json FROM targets WHERE id = ?", (target_id,),
                ).fetchone()
            except sqlite3.Error as e:
                raise StoreError(f"Read failed for {target_id}: {e}") from e
            if not row:
                raise StoreError(f"Target not found: {target_id}")

            doc = json.loads(row[0])
            doc.update(patch)
            try:
                target = Target.model_validate(doc)
            except ValidationError as e:
                raise StoreError(f"Invalid update for {target_id}: {e}") from e
            self._write(target)
        return target

    def list_all(self) -> list[Target]:
        with self._lock:
            try:
                rows = self._connection().execute(
                    "SELECT doc_json FROM targets ORDER BY name COLLATE NOCASE"
                ).fetchall()
            except sqlite3.Error as e:
                raise StoreError(f"List failed: {e}") from e
        return [Target.model_validate_json(r[0]) for r in rows]

    def load_many(self, target_ids: list[str]) -> list[Target]:
        """Targets for ``target_ids`` in the given order; unknown ids are dropped."""
        found = []
        for target_id in target_ids:
            target = self.load(target_id)
            if target is not None:
                found.append(target)
        return found

    def count(self) -> int:
        with self._lock:
            return self._connection().execute("SELECT COUNT(*) FROM targets").fetchone()[0]

    def _write(self, target: Target) -> None:
        conn = self._connection()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO targets (id, name, doc_json, updated_at) VALUES (?, ?, ?, ?)",
                (
                    target.id,
                    target.name,
                    target.model_dump_json(),
                    datetime.now(timezone.utc).isoformat(),
                ),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Write failed for {target.id}: {e}") from e

    # --- Async API used by the pipeline ---

    async def get(self, target_id: str) -> Target | None:
        return await asyncio.to_thread(self.load, target_id)

    async def update(self, target_id: str, patch: dict[str, Any]) -> None:
        await asyncio.to_thread(self.patch, target_id, patch)
        logger.debug("Updated %s: %s", target_id, ", ".join(patch))

    # --- Run records (informational, never resumed) ---

    def create_run(self, target_count: int, skip_days: int) -> int:
        with self._lock:
            conn = self._connection()
            cur = conn.execute(
                "INSERT INTO analysis_runs (status, target_count, skip_days, started_at) "
                "VALUES ('running', ?, ?, ?)",
                (target_count, skip_days, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()
            return cur.lastrowid  # type: ignore[return-value]

    def finish_run(
        self,
        run_id: int,
        status: str,
        total_cost: float = 0.0,
        result_json: str | None = None,
        error: str | None = None,
    ) -> None:
        with self._lock:
            conn = self._connection()
            conn.execute(
                "UPDATE analysis_runs SET status = ?, total_cost = ?, result_json = ?, "
                "error = ?, completed_at = ? WHERE id = ?",
                (status, total_cost, result_json, error,
                 datetime.now(timezone.utc).isoformat(), run_id),
            )
            conn.commit()

    def get_run(self, run_id: int) -> dict | None:
        with self._lock:
            cur = self._connection().execute(
                "SELECT id, status, target_count, skip_days, total_cost, result_json, "
                "error, started_at, completed_at FROM analysis_runs WHERE id = ?",
                (run_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return dict(zip([c[0] for c in cur.description], row))

    def list_runs(self, limit: int = 50) -> list[dict]:
        with self._lock:
            cur = self._connection().execute(
                "SELECT id, status, target_count, skip_days, total_cost, error, "
                "started_at, completed_at FROM analysis_runs ORDER BY id DESC LIMIT ?",
                (limit,),
            )
            columns = [c[0] for c in cur.description]
            return [dict(zip(columns, row)) for row in cur.fetchall()]
