"""
Durable queue of appointment submissions made while offline.

Backed by a SQLite file so queued submissions survive restarts. Every
operation runs in a worker thread behind a per-instance lock, so concurrent
enqueue/remove calls from different tasks are serialised.
"""

import asyncio
import json
import sqlite3
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union

from shared.errors import NotFoundError, QueueStoreError, ValidationError
from shared.logging import get_logger

from ..models import QueuedSubmission

DATABASE_NAME = "MallikarjunaHospitalDB"
STORE_NAME = "appointments"

T = TypeVar("T")

_SCHEMA = f"""
CREATE TABLE IF NOT EXISTS {STORE_NAME} (
    id INTEGER PRIMARY KEY,
    timestamp TEXT NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_{STORE_NAME}_timestamp ON {STORE_NAME}(timestamp);
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class SubmissionQueueStore:
    """SQLite-backed store owning every QueuedSubmission record."""

    def __init__(
        self,
        db_path: Union[str, Path],
        *,
        clock: Callable[[], int] = _now_ms,
    ):
        self.db_path = Path(db_path).expanduser()
        self.logger = get_logger("offline_agent.queue")
        self._clock = clock
        self._lock = asyncio.Lock()
        self._initialized = False

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.OperationalError:
            conn.execute("PRAGMA journal_mode = DELETE")
        conn.execute("PRAGMA synchronous = NORMAL")
        if not self._initialized:
            conn.executescript(_SCHEMA)
            self._initialized = True
        return conn

    async def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        def _in_thread() -> T:
            conn = self._connect()
            try:
                with conn:
                    return func(conn)
            finally:
                conn.close()

        async with self._lock:
            try:
                return await asyncio.to_thread(_in_thread)
            except (sqlite3.Error, OSError) as exc:
                self.logger.error("Queue store operation failed", operation=operation, error=str(exc))
                raise QueueStoreError(
                    f"Queue store {operation} failed",
                    details={"operation": operation, "error": str(exc)},
                ) from exc

    async def enqueue(self, payload: Dict[str, Any]) -> int:
        """Persist a submission and return its id."""
        if not isinstance(payload, dict):
            raise ValidationError("Submission payload must be a JSON object")
        try:
            encoded = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Submission payload is not JSON serializable", {"error": str(exc)}) from exc

        created_ms = self._clock()

        def _insert(conn: sqlite3.Connection) -> int:
            row = conn.execute(f"SELECT MAX(id) AS last_id FROM {STORE_NAME}").fetchone()
            last_id = row["last_id"] if row and row["last_id"] is not None else 0
            # ids come from the creation time but must stay unique and ordered
            submission_id = max(created_ms, last_id + 1)
            timestamp = datetime.fromtimestamp(created_ms / 1000, tz=timezone.utc).isoformat()
            conn.execute(
                f"INSERT INTO {STORE_NAME} (id, timestamp, payload) VALUES (?, ?, ?)",
                (submission_id, timestamp, encoded),
            )
            return submission_id

        submission_id = await self._run("enqueue", _insert)
        self.logger.info("Appointment stored offline", id=submission_id)
        return submission_id

    async def list_all(self) -> List[QueuedSubmission]:
        """Return every queued submission in creation order."""

        def _select(conn: sqlite3.Connection) -> List[sqlite3.Row]:
            return conn.execute(
                f"SELECT id, timestamp, payload FROM {STORE_NAME} ORDER BY id"
            ).fetchall()

        rows = await self._run("list", _select)
        return [self._row_to_submission(row) for row in rows]

    async def get(self, submission_id: int) -> Optional[QueuedSubmission]:
        def _select(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
            return conn.execute(
                f"SELECT id, timestamp, payload FROM {STORE_NAME} WHERE id = ?",
                (submission_id,),
            ).fetchone()

        row = await self._run("get", _select)
        return self._row_to_submission(row) if row is not None else None

    async def remove(self, submission_id: int) -> None:
        """Delete a submission; unknown ids raise NotFoundError."""

        def _delete(conn: sqlite3.Connection) -> int:
            return conn.execute(
                f"DELETE FROM {STORE_NAME} WHERE id = ?", (submission_id,)
            ).rowcount

        deleted = await self._run("remove", _delete)
        if not deleted:
            raise NotFoundError(
                f"Queued submission {submission_id} not found",
                details={"id": submission_id},
            )
        self.logger.debug("Removed queued submission", id=submission_id)

    async def count(self) -> int:
        def _count(conn: sqlite3.Connection) -> int:
            return int(conn.execute(f"SELECT COUNT(*) FROM {STORE_NAME}").fetchone()[0])

        return await self._run("count", _count)

    @staticmethod
    def _row_to_submission(row: sqlite3.Row) -> QueuedSubmission:
        return QueuedSubmission(
            id=int(row["id"]),
            timestamp=row["timestamp"],
            payload=json.loads(row["payload"]),
        )
