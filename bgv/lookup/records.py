"""Turning provider answers into LookupRecord rows."""

from typing import Any

from bgv.database.models import FAILURE_STATUS, SUCCESS_STATUS, LookupRecord


def status_code_for(status: int | None, payload: Any) -> int:
    """Status code to persist. Status 1 only counts when the payload is structured."""
    if status == SUCCESS_STATUS:
        return SUCCESS_STATUS if isinstance(payload, (dict, list)) else FAILURE_STATUS
    return status if isinstance(status, int) else FAILURE_STATUS


def is_ambiguous(status: int | None, payload: Any) -> bool:
    return status == SUCCESS_STATUS and isinstance(payload, str)


def error_message_for(payload: Any, data: Any = None, default: str = "Verification failed.") -> str:
    """Provider wording for a failed answer, unchanged."""
    if isinstance(payload, str) and payload:
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    if isinstance(data, dict) and isinstance(data.get("error"), str) and data["error"]:
        return data["error"]
    return default


def build_record(
    *,
    candidate_id: str,
    lookup_type: str,
    lookup_value: str,
    organization_id: str | None,
    status: int | None,
    payload: Any,
    response_data: Any,
    transaction_id: str | None = None,
) -> LookupRecord:
    code = status_code_for(status, payload)
    return LookupRecord(
        candidate_id=candidate_id,
        lookup_type=lookup_type,
        lookup_value=lookup_value,
        organization_id=organization_id,
        status_code=code,
        response_data=response_data,
        transaction_id=transaction_id,
        error_message=None if code == SUCCESS_STATUS else error_message_for(payload, response_data),
    )


def failure_record(
    *,
    candidate_id: str,
    lookup_type: str,
    lookup_value: str,
    organization_id: str | None,
    message: str,
) -> LookupRecord:
    """Record for a job that ended without a provider answer."""
    return LookupRecord(
        candidate_id=candidate_id,
        lookup_type=lookup_type,
        lookup_value=lookup_value,
        organization_id=organization_id,
        status_code=FAILURE_STATUS,
        response_data={"status": FAILURE_STATUS, "error": message},
        error_message=message,
    )
