from collections.abc import Sequence
from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from bgv.database.connection import get_connection
from bgv.database.models import NOT_FOUND_STATUS, LookupRecord

_COLUMNS = """
    id, candidate_id, organization_id, lookup_type, lookup_value,
    response_data, status_code, transaction_id, error_message, created_at
"""


def _to_record(row: dict[str, Any]) -> LookupRecord:
    return LookupRecord(
        id=row["id"],
        candidate_id=row["candidate_id"],
        organization_id=row["organization_id"],
        lookup_type=row["lookup_type"],
        lookup_value=row["lookup_value"],
        response_data=row["response_data"],
        status_code=row["status_code"],
        transaction_id=row["transaction_id"],
        error_message=row["error_message"],
        created_at=row["created_at"],
    )


class LookupRepository:
    """Append-only store of provider responses (the lookup_records table)."""

    def append(self, record: LookupRecord) -> LookupRecord:
        """Insert a record and return it with id and created_at populated."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    INSERT INTO lookup_records
                    (candidate_id, organization_id, lookup_type, lookup_value,
                     response_data, status_code, transaction_id, error_message)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_COLUMNS}
                    """,
                    (
                        record.candidate_id,
                        record.organization_id,
                        record.lookup_type,
                        record.lookup_value,
                        Jsonb(record.response_data),
                        record.status_code,
                        record.transaction_id,
                        record.error_message,
                    ),
                )
                row = cur.fetchone()
            conn.commit()

        if row is None:
            raise RuntimeError("INSERT INTO lookup_records returned no row")
        return _to_record(row)

    def find_negative(self, lookup_type: str, lookup_value: str) -> LookupRecord | None:
        """Find a permanent not-found record for this pair, from any candidate."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM lookup_records
                    WHERE lookup_type = %s
                      AND lookup_value = %s
                      AND status_code = %s
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    (lookup_type, lookup_value, NOT_FOUND_STATUS),
                )
                row = cur.fetchone()

        return _to_record(row) if row is not None else None

    def find_latest(
        self, candidate_id: str, lookup_types: Sequence[str]
    ) -> LookupRecord | None:
        """Most recent record for a candidate among the given types."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM lookup_records
                    WHERE candidate_id = %s
                      AND lookup_type = ANY(%s)
                    ORDER BY created_at DESC, id DESC
                    LIMIT 1
                    """,
                    (candidate_id, list(lookup_types)),
                )
                row = cur.fetchone()

        return _to_record(row) if row is not None else None

    def group_by_type(
        self, candidate_id: str, lookup_types: Sequence[str]
    ) -> dict[str, list[LookupRecord]]:
        """All records for a candidate grouped by type, newest first within each group."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_COLUMNS}
                    FROM lookup_records
                    WHERE candidate_id = %s
                      AND lookup_type = ANY(%s)
                    ORDER BY created_at DESC, id DESC
                    """,
                    (candidate_id, list(lookup_types)),
                )
                rows = cur.fetchall()

        grouped: dict[str, list[LookupRecord]] = {}
        for row in rows:
            record = _to_record(row)
            grouped.setdefault(record.lookup_type, []).append(record)
        return grouped

    def find_by_id(self, record_id: int) -> LookupRecord | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM lookup_records WHERE id = %s",
                    (record_id,),
                )
                row = cur.fetchone()

        return _to_record(row) if row is not None else None
