"""
Repository pattern for data access.

Handles the append-only call record ledger: schema, inserts, and reads.
"""

import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from ai_observe.errors import StorageError
from .db import get_connection
from .models import CallRecord, CallStatus

_COLUMNS = (
    "id, created_at, model, prompt_hash, prompt_chars, tokens_in, tokens_out, "
    "latency_ms, status, error, prompt_text, response_text, token_breakdown"
)


class CallRepository:
    """Repository for the call record ledger.

    Each operation opens its own connection and always closes it, so a
    repository instance holds no connection state between calls.
    """

    def __init__(self, db_path: str = "ai_observe.db"):
        """Initialize the repository with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def initialize_schema(self) -> None:
        """Create the call_record table if it doesn't exist.

        This creates an append-only ledger for immutable call records.
        No UPDATE or DELETE operations should ever be performed on this table.
        """
        conn = self._connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS call_record (
                    id TEXT PRIMARY KEY,
                    created_at TEXT NOT NULL,
                    model TEXT NOT NULL,
                    prompt_hash TEXT NOT NULL,
                    prompt_chars INTEGER NOT NULL,
                    tokens_in INTEGER NOT NULL,
                    tokens_out INTEGER NOT NULL,
                    latency_ms INTEGER NOT NULL,
                    status TEXT NOT NULL CHECK (status IN ('ok', 'error')),
                    error TEXT,
                    prompt_text TEXT,
                    response_text TEXT,
                    token_breakdown TEXT
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_call_record_created_at "
                "ON call_record (created_at)"
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize schema: {e}") from e
        finally:
            conn.close()
        logger.debug("Call record schema ready at {}", self.db_path)

    def insert(self, record: CallRecord) -> None:
        """Append a single call record to the ledger.

        Args:
            record: The call record to persist

        Raises:
            StorageError: If the write fails
        """
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO call_record ({_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.created_at.isoformat(timespec="microseconds"),
                    record.model,
                    record.prompt_hash,
                    record.prompt_chars,
                    record.tokens_in,
                    record.tokens_out,
                    record.latency_ms,
                    record.status.value,
                    record.error,
                    record.prompt_text,
                    record.response_text,
                    record.token_breakdown
                )
            )
            conn.commit()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to insert call record: {e}") from e
        finally:
            conn.close()

    def fetch_recent(self, limit: int = 50) -> List[CallRecord]:
        """Fetch the most recent call records.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of call records ordered by creation time (newest first)
        """
        rows = self._query(
            f"SELECT {_COLUMNS} FROM call_record "
            "ORDER BY created_at DESC, rowid DESC LIMIT ?",
            (limit,)
        )
        return [_row_to_record(row) for row in rows]

    def fetch_all(self) -> List[CallRecord]:
        """Fetch every call record, newest first."""
        rows = self._query(
            f"SELECT {_COLUMNS} FROM call_record ORDER BY created_at DESC, rowid DESC"
        )
        return [_row_to_record(row) for row in rows]

    def fetch_latest_with_breakdown(self) -> Optional[CallRecord]:
        """Fetch the newest successful record that stored a token breakdown."""
        rows = self._query(
            f"SELECT {_COLUMNS} FROM call_record "
            "WHERE status = 'ok' AND token_breakdown IS NOT NULL "
            "ORDER BY created_at DESC, rowid DESC LIMIT 1"
        )
        return _row_to_record(rows[0]) if rows else None

    def get_call_totals(self) -> Dict[str, Any]:
        """Get raw totals over the full history.

        Token sums and mean latency only cover successful calls.

        Returns:
            Dictionary with total, successful and error counts, token sums
            and the unrounded mean latency (None when there are no
            successful calls)
        """
        rows = self._query("""
            SELECT
                COUNT(*),
                SUM(CASE WHEN status = 'ok' THEN 1 ELSE 0 END),
                SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END),
                SUM(CASE WHEN status = 'ok' THEN tokens_in ELSE 0 END),
                SUM(CASE WHEN status = 'ok' THEN tokens_out ELSE 0 END),
                AVG(CASE WHEN status = 'ok' THEN latency_ms END)
            FROM call_record
        """)
        row = rows[0]
        return {
            "total_requests": row[0] or 0,
            "successful_requests": row[1] or 0,
            "error_requests": row[2] or 0,
            "total_tokens_in": row[3] or 0,
            "total_tokens_out": row[4] or 0,
            "avg_latency_ms": row[5]
        }

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to open database {self.db_path}: {e}") from e

    def _query(self, sql: str, params: Tuple = ()) -> List[Tuple]:
        conn = self._connect()
        try:
            return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read call records: {e}") from e
        finally:
            conn.close()


def _row_to_record(row: Tuple) -> CallRecord:
    try:
        return CallRecord(
            id=row[0],
            created_at=datetime.fromisoformat(row[1]),
            model=row[2],
            prompt_hash=row[3],
            prompt_chars=row[4],
            tokens_in=row[5],
            tokens_out=row[6],
            latency_ms=row[7],
            status=CallStatus(row[8]),
            error=row[9],
            prompt_text=row[10],
            response_text=row[11],
            token_breakdown=row[12]
        )
    except ValueError as e:
        raise StorageError(f"Invalid call record {row[0]}: {e}") from e


# Global repository instance
_default_repository: Optional[CallRepository] = None


def get_repository(db_path: str = "ai_observe.db") -> CallRepository:
    """Get the shared repository instance for a database path.

    A new instance replaces the cached one when the path changes.

    Args:
        db_path: Path to SQLite database file

    Returns:
        An instance of CallRepository
    """
    global _default_repository
    if _default_repository is None or _default_repository.db_path != db_path:
        _default_repository = CallRepository(db_path)
    return _default_repository


def reset_repository() -> None:
    """Drop the shared repository instance."""
    global _default_repository
    _default_repository = None
