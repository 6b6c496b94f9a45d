from datetime import datetime, timezone

import pytest

from bgv.lookup.exceptions import InvalidTransitionError, VerifiedDocumentLockedError
from bgv.session.state import DocumentState, Phase
from bgv.verification.models import DualEmploymentResult


def _result() -> DualEmploymentResult:
    return DualEmploymentResult(
        establishment_name="ACME",
        date_of_joining="01-01-2020",
        date_of_exit="NA",
        overlapping="No",
        member_id="MH/123",
        name="A Candidate",
        father_or_husband_name="B Parent",
    )


class TestDerivedFlags:
    def test_idle_by_default(self) -> None:
        state = DocumentState()
        assert state.phase is Phase.IDLE
        assert not (state.is_editing or state.is_verifying or state.is_verified)
        assert state.error is None

    def test_error_only_in_failed_phase(self) -> None:
        state = DocumentState().start_verifying("X").mark_failed("Invalid UAN")
        assert state.error == "Invalid UAN"
        assert state.start_verifying().error is None


class TestEditing:
    def test_toggle_editing(self) -> None:
        state = DocumentState(value="100200300400")
        editing = state.toggle_editing()
        assert editing.is_editing
        assert not editing.toggle_editing().is_editing

    def test_editing_verified_document_is_locked(self) -> None:
        verified = DocumentState(value="V").start_verifying().mark_verified()

        with pytest.raises(VerifiedDocumentLockedError, match="contact admin"):
            verified.start_editing()
        with pytest.raises(VerifiedDocumentLockedError):
            verified.change_value("other")

        assert verified.is_verified
        assert verified.value == "V"

    def test_cannot_edit_while_verifying(self) -> None:
        with pytest.raises(InvalidTransitionError):
            DocumentState().start_verifying("X").start_editing()

    def test_change_value_keeps_phase(self) -> None:
        state = DocumentState().start_editing().change_value("ABC")
        assert state.value == "ABC"
        assert state.is_editing


class TestVerification:
    def test_idle_to_verifying_to_verified(self) -> None:
        when = datetime(2024, 5, 1, tzinfo=timezone.utc)
        state = (
            DocumentState()
            .start_verifying("100200300400")
            .mark_verified([_result()], verified_at=when, expand_details=True)
        )
        assert state.is_verified
        assert state.verification_date == when
        assert state.results == (_result(),)
        assert state.details_expanded is True
        assert state.value == "100200300400"

    def test_editing_ends_when_verifying_starts(self) -> None:
        state = DocumentState().start_editing().start_verifying("X")
        assert state.is_verifying
        assert not state.is_editing

    def test_double_start_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="already in progress"):
            DocumentState().start_verifying("X").start_verifying("X")

    def test_mark_verified_twice_is_idempotent(self) -> None:
        once = DocumentState().start_verifying("X").mark_verified()
        assert once.mark_verified() is once

    def test_failure_clears_results(self) -> None:
        state = DocumentState(results=(_result(),), details_expanded=True)
        failed = state.start_verifying("X").mark_failed("No history")
        assert failed.results == ()
        assert failed.details_expanded is False

    def test_retry_after_failure(self) -> None:
        failed = DocumentState().start_verifying("X").mark_failed("boom")
        assert failed.start_verifying().is_verifying

    def test_verified_cannot_fail(self) -> None:
        verified = DocumentState().start_verifying("X").mark_verified()
        with pytest.raises(InvalidTransitionError):
            verified.mark_failed("late failure")

    def test_toggle_details(self) -> None:
        assert DocumentState().toggle_details().details_expanded is True
