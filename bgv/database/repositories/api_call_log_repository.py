from psycopg.types.json import Jsonb

from bgv.database.connection import get_connection
from bgv.database.models import ApiCallLog


class ApiCallLogRepository:
    """Database operations for the api_call_logs table."""

    def record(self, log: ApiCallLog) -> None:
        """Persist one provider step outcome."""
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO api_call_logs
                (candidate_id, organization_id, transaction_id, api_type,
                 endpoint_name, request_payload, response_status_http,
                 response_body, error_message, success)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    log.candidate_id,
                    log.organization_id,
                    log.transaction_id,
                    log.api_type,
                    log.endpoint_name,
                    Jsonb(log.request_payload),
                    log.response_status_http,
                    log.response_body,
                    log.error_message,
                    log.success,
                ),
            )
            conn.commit()
