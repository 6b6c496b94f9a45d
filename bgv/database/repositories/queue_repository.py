from typing import Any

import psycopg
from psycopg.rows import dict_row

from bgv.database.connection import get_connection
from bgv.database.models import QUEUE_COMPLETED, QUEUE_PENDING, QueueEntry
from bgv.lookup.exceptions import RecordNotFoundError

_COLUMNS = """
    id, candidate_id, organization_id, user_id, lookup_type, lookup_value,
    candidate_mobile, status, attempts, locked_at, created_at, updated_at
"""


def _to_entry(row: dict[str, Any]) -> QueueEntry:
    return QueueEntry(
        id=row["id"],
        candidate_id=row["candidate_id"],
        organization_id=row["organization_id"],
        user_id=row["user_id"],
        lookup_type=row["lookup_type"],
        lookup_value=row["lookup_value"],
        candidate_mobile=row["candidate_mobile"],
        status=row["status"],
        attempts=row["attempts"],
        locked_at=row["locked_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class QueueRepository:
    """Database operations for the lookup_queue table.

    At most one pending entry per (candidate_id, lookup_type) is guaranteed by the
    lookup_queue_single_pending_idx partial unique index, so concurrent sessions
    for the same candidate cannot both enqueue.
    """

    def __init__(self, max_attempts: int, poll_interval_seconds: int = 30) -> None:
        self._max_attempts = max_attempts
        self._poll_interval_seconds = poll_interval_seconds

    def enqueue(self, entry: QueueEntry) -> bool:
        """Insert a pending entry. Returns False if one is already pending."""
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO lookup_queue
                    (candidate_id, organization_id, user_id, lookup_type,
                     lookup_value, candidate_mobile, status, attempts)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, 0)
                    ON CONFLICT (candidate_id, lookup_type)
                        WHERE status = 'pending'
                    DO NOTHING
                    RETURNING id
                    """,
                    (
                        entry.candidate_id,
                        entry.organization_id,
                        entry.user_id,
                        entry.lookup_type,
                        entry.lookup_value,
                        entry.candidate_mobile,
                        QUEUE_PENDING,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            return False
        entry.id = row[0]
        return True

    def is_pending(self, candidate_id: str, lookup_type: str) -> bool:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT 1
                    FROM lookup_queue
                    WHERE candidate_id = %s
                      AND lookup_type = %s
                      AND status = %s
                    LIMIT 1
                    """,
                    (candidate_id, lookup_type, QUEUE_PENDING),
                )
                row = cur.fetchone()
        return row is not None

    def find_pending(self, candidate_id: str) -> list[QueueEntry]:
        """Pending entries for a candidate, used to resync state after a reload."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM lookup_queue
                    WHERE candidate_id = %s
                      AND status = %s
                    ORDER BY created_at
                    """,
                    (candidate_id, QUEUE_PENDING),
                )
                rows = cur.fetchall()
        return [_to_entry(row) for row in rows]

    def mark_completed(self, candidate_id: str, lookup_type: str) -> None:
        """Resolve the pending entry for this pair. No-op if none is pending."""
        with get_connection() as conn:
            conn.execute(
                """
                UPDATE lookup_queue
                SET status = %s, locked_at = NULL, updated_at = NOW()
                WHERE candidate_id = %s
                  AND lookup_type = %s
                  AND status = %s
                """,
                (QUEUE_COMPLETED, candidate_id, lookup_type, QUEUE_PENDING),
            )
            conn.commit()

    def claim_next_entry(self, conn: psycopg.Connection[Any]) -> QueueEntry | None:
        """Claim the next pending entry due for a poll using SELECT FOR UPDATE SKIP LOCKED."""
        with conn.cursor(row_factory=dict_row) as cur:
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM lookup_queue
                WHERE status = %s
                  AND attempts < %s
                  AND (locked_at IS NULL
                       OR locked_at < NOW() - %s * INTERVAL '1 second')
                ORDER BY created_at
                LIMIT 1
                FOR UPDATE SKIP LOCKED
                """,
                (QUEUE_PENDING, self._max_attempts, self._poll_interval_seconds),
            )
            row = cur.fetchone()

        if row is None:
            return None

        conn.execute(
            """
            UPDATE lookup_queue
            SET locked_at = NOW(), updated_at = NOW()
            WHERE id = %s
            """,
            (row["id"],),
        )
        conn.commit()
        return _to_entry(row)

    def seconds_until_next_due(self, conn: psycopg.Connection[Any]) -> float | None:
        """Seconds until some pending entry can be claimed. None when nothing is pending."""
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT EXTRACT(EPOCH FROM
                           MIN(COALESCE(locked_at + %s * INTERVAL '1 second', NOW()))
                           - NOW())
                FROM lookup_queue
                WHERE status = %s
                  AND attempts < %s
                """,
                (self._poll_interval_seconds, QUEUE_PENDING, self._max_attempts),
            )
            row = cur.fetchone()
        if row is None or row[0] is None:
            return None
        return max(float(row[0]), 0.0)

    def release(self, entry_id: int) -> None:
        """Count a poll that is still pending. The lock stays until the interval passes."""
        with get_connection() as conn:
            cur = conn.execute(
                """
                UPDATE lookup_queue
                SET attempts = attempts + 1, updated_at = NOW()
                WHERE id = %s
                """,
                (entry_id,),
            )
            if cur.rowcount == 0:
                raise RecordNotFoundError(f"Queue entry {entry_id} not found")
            conn.commit()

    def find_by_id(self, entry_id: int) -> QueueEntry | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM lookup_queue WHERE id = %s",
                    (entry_id,),
                )
                row = cur.fetchone()
        return _to_entry(row) if row is not None else None
