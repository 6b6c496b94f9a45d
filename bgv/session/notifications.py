"""Translate lookup outcomes, errors and pushed records into user notifications."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from bgv.database.models import LookupRecord
from bgv.lookup.exceptions import (
    LookupValidationError,
    ProviderStepError,
    VerificationError,
    VerifiedDocumentLockedError,
)
from bgv.lookup.models import (
    AlreadyQueued,
    CachedNotFound,
    Completed,
    LookupOutcome,
    LookupType,
    Queued,
)


class Level(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    level: Level = Level.INFO


NotificationSink = Callable[[Notification], None]

_LABELS = {
    LookupType.MOBILE_TO_UAN: "UAN lookup by mobile",
    LookupType.PAN_TO_UAN: "UAN lookup by PAN",
    LookupType.UAN_FULL_HISTORY: "UAN full history",
    LookupType.PAN_VERIFICATION: "PAN verification",
    LookupType.LATEST_EMPLOYMENT_MOBILE: "Latest employment by mobile",
    LookupType.LATEST_PASSBOOK_MOBILE: "EPFO passbook",
    LookupType.LATEST_EMPLOYMENT_UAN: "Latest employment by UAN",
    LookupType.UAN_FULL_HISTORY_GL: "Employment history",
}


def label_for(lookup_type: str) -> str:
    try:
        return _LABELS[LookupType(lookup_type)]
    except ValueError:
        return lookup_type


def for_outcome(outcome: LookupOutcome) -> Notification:
    if isinstance(outcome, CachedNotFound):
        return Notification(
            "No Record Found",
            f"{label_for(outcome.record.lookup_type)}: no record exists for this value "
            "(cached result, no new charge).",
            Level.ERROR,
        )
    if isinstance(outcome, AlreadyQueued):
        return Notification(
            "Already In Progress",
            f"{label_for(outcome.lookup_type.value)} is already queued for this candidate.",
        )
    if isinstance(outcome, Queued):
        return Notification(
            "Verification In Progress",
            outcome.message or "Verification is in progress. You will be notified when it completes.",
        )
    if isinstance(outcome, Completed):
        return for_record(outcome.record)
    raise TypeError(f"Unknown lookup outcome: {outcome!r}")


def for_record(record: LookupRecord) -> Notification:
    """Notification for a record, whether it came back inline or was pushed later."""
    label = label_for(record.lookup_type)
    if record.is_success:
        return Notification("Verification Successful", f"{label} completed.", Level.SUCCESS)
    if record.is_not_found:
        return Notification(
            "No Record Found",
            record.error_message or f"{label}: no record found.",
            Level.ERROR,
        )
    return Notification(
        "Verification Failed",
        record.error_message or f"{label} failed.",
        Level.ERROR,
    )


def for_error(exc: VerificationError) -> Notification:
    """The exception message is shown as-is so operators see the provider's wording."""
    if isinstance(exc, VerifiedDocumentLockedError):
        return Notification("Cannot edit verified document", str(exc), Level.ERROR)
    if isinstance(exc, LookupValidationError):
        return Notification("Validation Error", str(exc), Level.ERROR)
    if isinstance(exc, ProviderStepError):
        return Notification(f"Verification Failed ({exc.step})", str(exc), Level.ERROR)
    return Notification("Verification Failed", str(exc), Level.ERROR)
