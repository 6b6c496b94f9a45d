from collections.abc import Callable

from bgv.database.models import LookupRecord
from bgv.lookup.exceptions import (
    LookupValidationError,
    ProviderRejectedError,
    ProviderStepError,
    VerifiedDocumentLockedError,
)
from bgv.lookup.models import AlreadyQueued, CachedNotFound, Completed, LookupType, Queued
from bgv.session.notifications import Level, for_error, for_outcome, for_record


class TestForOutcome:
    def test_cached_not_found(self, make_record: Callable[..., LookupRecord]) -> None:
        note = for_outcome(CachedNotFound(record=make_record(status_code=9)))
        assert note.level is Level.ERROR
        assert "cached" in note.description

    def test_queued_uses_provider_message(self) -> None:
        note = for_outcome(Queued(lookup_type=LookupType.MOBILE_TO_UAN, message="Hang tight"))
        assert note.title == "Verification In Progress"
        assert note.description == "Hang tight"
        assert note.level is Level.INFO

    def test_already_queued(self) -> None:
        note = for_outcome(AlreadyQueued(lookup_type=LookupType.PAN_TO_UAN))
        assert "UAN lookup by PAN" in note.description

    def test_completed_delegates_to_record(self, make_record: Callable[..., LookupRecord]) -> None:
        note = for_outcome(Completed(record=make_record()))
        assert note.level is Level.SUCCESS


class TestForRecord:
    def test_failure_shows_provider_message(
        self, make_record: Callable[..., LookupRecord]
    ) -> None:
        note = for_record(make_record(status_code=0, error_message="Source timed out"))
        assert note.title == "Verification Failed"
        assert note.description == "Source timed out"

    def test_not_found(self, make_record: Callable[..., LookupRecord]) -> None:
        note = for_record(make_record(status_code=9, error_message=None))
        assert note.title == "No Record Found"

    def test_unknown_type_uses_raw_label(self, make_record: Callable[..., LookupRecord]) -> None:
        note = for_record(make_record(lookup_type="gst_verification", status_code=0))
        assert "gst_verification" in note.description

    def test_passbook_label(self, make_record: Callable[..., LookupRecord]) -> None:
        note = for_record(make_record(lookup_type="latest_passbook_mobile", status_code=0))
        assert "EPFO passbook" in note.description


class TestForError:
    def test_validation(self) -> None:
        note = for_error(LookupValidationError("UAN must be a 12-digit number"))
        assert note.title == "Validation Error"
        assert note.description == "UAN must be a 12-digit number"

    def test_locked(self) -> None:
        assert for_error(VerifiedDocumentLockedError("x")).title == "Cannot edit verified document"

    def test_step_error_names_step(self) -> None:
        note = for_error(ProviderStepError("decrypt", "Bad token"))
        assert note.title == "Verification Failed (decrypt)"
        assert note.description == "Bad token"

    def test_provider_message_verbatim(self) -> None:
        note = for_error(ProviderRejectedError("PAN does not exist", status_code=2))
        assert note.description == "PAN does not exist"
