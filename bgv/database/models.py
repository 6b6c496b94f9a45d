from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

NOT_FOUND_STATUS = 9
SUCCESS_STATUS = 1
FAILURE_STATUS = 0

QUEUE_PENDING = "pending"
QUEUE_COMPLETED = "completed"


@dataclass(frozen=True)
class LookupRecord:
    """Represents a row from the lookup_records table."""

    candidate_id: str
    lookup_type: str
    lookup_value: str
    status_code: int
    response_data: Any = None
    organization_id: str | None = None
    transaction_id: str | None = None
    error_message: str | None = None
    id: int | None = None
    created_at: datetime | None = None

    @property
    def is_success(self) -> bool:
        return self.status_code == SUCCESS_STATUS

    @property
    def is_not_found(self) -> bool:
        return self.status_code == NOT_FOUND_STATUS


@dataclass
class QueueEntry:
    """Represents a row from the lookup_queue table."""

    candidate_id: str
    lookup_type: str
    lookup_value: str
    organization_id: str | None = None
    user_id: str | None = None
    candidate_mobile: str | None = None
    status: str = QUEUE_PENDING
    attempts: int = 0
    id: int | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ApiCallLog:
    """One provider pipeline step, as stored in api_call_logs."""

    transaction_id: str
    api_type: str
    endpoint_name: str
    success: bool
    candidate_id: str | None = None
    organization_id: str | None = None
    request_payload: dict[str, Any] = field(default_factory=dict)
    response_status_http: int | None = None
    response_body: str | None = None
    error_message: str | None = None
