import re
from collections.abc import Sequence
from typing import Any

from bgv.logging.logger import Log
from bgv.lookup.coordinator import LookupCoordinator
from bgv.lookup.exceptions import MissingEmployerError, ProviderRejectedError, VerificationError
from bgv.lookup.models import (
    AlreadyQueued,
    CachedNotFound,
    Completed,
    LookupContext,
    LookupType,
    Queued,
)
from bgv.lookup.normalization import clean_company_name
from bgv.session.state import DocumentState
from bgv.verification.models import DualEmploymentResult, WorkHistoryEntry

_LEADING_YEAR = re.compile(r"^\s*(\d+)")

NO_HISTORY_MESSAGE = "No employment history found for this UAN."


def start_year(years: str) -> int:
    """Leading start year of a "2018-2021" style range; 0 when it cannot be parsed."""
    match = _LEADING_YEAR.match((years or "").split("-")[0])
    return int(match.group(1)) if match else 0


def latest_employer(work_history: Sequence[WorkHistoryEntry]) -> str:
    """Company with the most recent start year. Ties keep input order.

    Raises:
        MissingEmployerError: if the history is empty or the company has no name.
    """
    if not work_history:
        raise MissingEmployerError("No work history available for dual employment check")
    latest = sorted(work_history, key=lambda entry: start_year(entry.years), reverse=True)[0]
    name = clean_company_name(latest.company_name)
    if not name:
        raise MissingEmployerError("No employer name available from work history")
    return name


def parse_results(response_data: Any) -> list[DualEmploymentResult]:
    payload = response_data.get("msg") if isinstance(response_data, dict) else response_data
    if not isinstance(payload, list):
        return []
    return [DualEmploymentResult.from_row(row) for row in payload if isinstance(row, dict)]


class DualEmploymentVerifier:
    """Checks a UAN's full employment history against the latest self-reported employer."""

    def __init__(self, lookups: LookupCoordinator) -> None:
        self._lookups = lookups

    def verify(
        self,
        candidate_id: str,
        uan_value: str,
        work_history: Sequence[WorkHistoryEntry],
        organization_id: str,
        user_id: str | None = None,
    ) -> list[DualEmploymentResult]:
        """Run the full-history lookup and return the establishments it lists.

        Raises:
            MissingEmployerError: no employer can be derived from work_history.
            ProviderRejectedError: the provider found nothing for the UAN.
            VerificationError: any other validation or provider failure.
        """
        employer = latest_employer(work_history)
        Log.info(f"Dual employment check for candidate {candidate_id} against {employer}")
        outcome = self._lookups.request_lookup(
            candidate_id,
            LookupType.UAN_FULL_HISTORY,
            uan_value,
            LookupContext(
                organization_id=organization_id,
                user_id=user_id,
                employer_name=employer,
            ),
        )

        if isinstance(outcome, Completed) and outcome.record.is_success:
            return parse_results(outcome.record.response_data)
        if isinstance(outcome, (Completed, CachedNotFound)):
            raise ProviderRejectedError(
                outcome.record.error_message or NO_HISTORY_MESSAGE,
                status_code=outcome.record.status_code,
            )
        if isinstance(outcome, (AlreadyQueued, Queued)):
            raise VerificationError("Dual employment check is already in progress")
        raise VerificationError(f"Unexpected lookup outcome: {outcome!r}")

    def run(
        self,
        state: DocumentState,
        candidate_id: str,
        work_history: Sequence[WorkHistoryEntry],
        organization_id: str,
        user_id: str | None = None,
    ) -> DocumentState:
        """Verify the UAN held by ``state`` and return the resulting state.

        Verification failures land in the Failed state; a locked document raises.
        """
        verifying = state.start_verifying()
        try:
            results = self.verify(
                candidate_id, verifying.value, work_history, organization_id, user_id
            )
        except VerificationError as exc:
            Log.warning(f"Dual employment check failed for candidate {candidate_id}: {exc}")
            return verifying.mark_failed(str(exc))
        return verifying.mark_verified(results, expand_details=True)
