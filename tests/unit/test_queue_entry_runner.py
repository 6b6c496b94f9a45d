from typing import Any
from unittest.mock import MagicMock

import httpx

from bgv.database.models import LookupRecord, QueueEntry
from bgv.lookup.exceptions import ProviderError
from bgv.provider.models import LookupRequest, ProviderReply
from bgv.worker.queue_entry_runner import QueueEntryRunner


def _make_runner(
    max_poll_attempts: int = 3,
    provider_name: str = "truthscreen",
) -> tuple[QueueEntryRunner, MagicMock, MagicMock, MagicMock]:
    """Create a QueueEntryRunner with mocked provider and repositories."""
    provider = MagicMock()
    lookup_repo = MagicMock()
    lookup_repo.append.side_effect = lambda record: record
    queue_repo = MagicMock()
    settings = MagicMock(max_poll_attempts=max_poll_attempts, full_history_doc_type="337")
    settings.provider_for.return_value = provider_name
    runner = QueueEntryRunner(provider, lookup_repo, queue_repo, settings)
    return runner, provider, lookup_repo, queue_repo


def _make_entry(**overrides: Any) -> QueueEntry:
    fields: dict[str, Any] = {
        "id": 4,
        "candidate_id": "cand-1",
        "lookup_type": "pan_to_uan",
        "lookup_value": "ABCDE1234F",
        "organization_id": "org-1",
        "user_id": "user-1",
        "status": "processing",
        "attempts": 0,
    }
    fields.update(overrides)
    return QueueEntry(**fields)


def _appended(lookup_repo: MagicMock) -> LookupRecord:
    return lookup_repo.append.call_args.args[0]


class TestCompleted:
    def test_writes_record_and_completes_entry(self) -> None:
        runner, provider, lookup_repo, queue_repo = _make_runner()
        provider.submit.return_value = ProviderReply(
            status="completed", data={"status": 1, "msg": {"uan": "100200300400"}}
        )

        runner.run(_make_entry())

        provider.submit.assert_called_once_with(
            LookupRequest(
                lookup_method="pan",
                lookup_value="ABCDE1234F",
                candidate_id="cand-1",
                organization_id="org-1",
                user_id="user-1",
            )
        )
        record = _appended(lookup_repo)
        assert record.status_code == 1
        assert record.error_message is None
        assert record.response_data == {"status": 1, "msg": {"uan": "100200300400"}}
        queue_repo.mark_completed.assert_called_once_with("cand-1", "pan_to_uan")
        queue_repo.release.assert_not_called()

    def test_not_found_answer_is_recorded(self) -> None:
        runner, provider, lookup_repo, _queue_repo = _make_runner()
        provider.submit.return_value = ProviderReply(
            status="completed", data={"status": 9, "msg": "No UAN linked to this PAN"}
        )

        runner.run(_make_entry())

        record = _appended(lookup_repo)
        assert record.status_code == 9
        assert record.error_message == "No UAN linked to this PAN"


class TestRouting:
    def test_organization_provider_routes_the_poll(self) -> None:
        runner, provider, lookup_repo, _queue_repo = _make_runner(provider_name="gridlines")
        provider.submit.return_value = ProviderReply(
            status="completed",
            data={"data": {"code": "1014", "message": "Latest record fetched"}},
        )

        runner.run(
            _make_entry(lookup_type="latest_employment_mobile", lookup_value="9876543210")
        )

        request = provider.submit.call_args.args[0]
        assert request.route == "gridlines"
        assert request.lookup_method == "latest_employment_mobile"
        assert _appended(lookup_repo).status_code == 1

    def test_full_history_entry_polls_its_own_route(self) -> None:
        runner, provider, _lookup_repo, _queue_repo = _make_runner()
        provider.submit.return_value = ProviderReply(status="pending")

        runner.run(_make_entry(lookup_type="uan_full_history", lookup_value="100200300400"))

        request = provider.submit.call_args.args[0]
        assert request.route == "full_history"
        assert request.doc_type == "337"
        assert request.transaction_id.startswith("cand-1-337-")


class TestPending:
    def test_releases_entry_for_next_poll(self) -> None:
        runner, provider, lookup_repo, queue_repo = _make_runner(max_poll_attempts=3)
        provider.submit.return_value = ProviderReply(status="pending", message="Queued")

        runner.run(_make_entry(attempts=0))

        queue_repo.release.assert_called_once_with(4)
        lookup_repo.append.assert_not_called()
        queue_repo.mark_completed.assert_not_called()

    def test_fails_when_attempts_run_out(self) -> None:
        runner, provider, lookup_repo, queue_repo = _make_runner(max_poll_attempts=3)
        provider.submit.return_value = ProviderReply(status="pending")

        runner.run(_make_entry(attempts=2))

        record = _appended(lookup_repo)
        assert record.status_code == 0
        assert record.error_message == "Verification did not complete after 3 attempts"
        assert record.response_data == {
            "status": 0,
            "error": "Verification did not complete after 3 attempts",
        }
        queue_repo.mark_completed.assert_called_once_with("cand-1", "pan_to_uan")
        queue_repo.release.assert_not_called()


class TestErrors:
    def test_provider_error_fails_immediately(self) -> None:
        runner, provider, lookup_repo, queue_repo = _make_runner()
        provider.submit.side_effect = ProviderError("Invalid API key")

        runner.run(_make_entry())

        assert _appended(lookup_repo).error_message == "Invalid API key"
        queue_repo.mark_completed.assert_called_once()
        queue_repo.release.assert_not_called()

    def test_unknown_lookup_type_fails(self) -> None:
        runner, provider, lookup_repo, _queue_repo = _make_runner()

        runner.run(_make_entry(lookup_type="gst_verification"))

        provider.submit.assert_not_called()
        assert _appended(lookup_repo).status_code == 0

    def test_transport_error_is_retried(self) -> None:
        runner, provider, lookup_repo, queue_repo = _make_runner()
        provider.submit.side_effect = httpx.ConnectError("connection refused")

        runner.run(_make_entry())

        queue_repo.release.assert_called_once_with(4)
        lookup_repo.append.assert_not_called()
