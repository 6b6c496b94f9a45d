import time

from bgv.config.settings import Settings
from bgv.database.models import QueueEntry
from bgv.database.repositories.lookup_repository import LookupRepository
from bgv.database.repositories.queue_repository import QueueRepository
from bgv.logging.logger import Log
from bgv.lookup.exceptions import ProviderError
from bgv.lookup.models import LookupType
from bgv.lookup.records import build_record, failure_record
from bgv.provider.adapter import ProviderAdapter
from bgv.provider.models import LookupRequest, ProviderReply, route_for


class QueueEntryRunner:
    """Poll the provider once for a queued lookup and settle the entry.

    Every entry ends with a LookupRecord, success or failure, so the requester
    hears about it through the same change notification either way.
    """

    def __init__(
        self,
        provider: ProviderAdapter,
        lookup_repo: LookupRepository,
        queue_repo: QueueRepository,
        settings: Settings,
    ) -> None:
        self._provider = provider
        self._lookup_repo = lookup_repo
        self._queue_repo = queue_repo
        self._settings = settings

    def run(self, entry: QueueEntry) -> None:
        """Poll a single entry with error handling."""
        attempt = entry.attempts + 1
        Log.info(
            f"Polling queue entry {entry.id} (attempt {attempt})",
            candidate_id=entry.candidate_id,
            lookup_type=entry.lookup_type,
        )
        try:
            reply = self._provider.submit(self._request_for(entry))
        except (ProviderError, ValueError) as exc:
            self._fail(entry, str(exc))
            return
        except Exception as exc:
            Log.exception(f"Queue entry {entry.id} poll failed: {exc}")
            self._retry_or_fail(entry, attempt, str(exc))
            return

        if reply.is_pending:
            self._retry_or_fail(
                entry,
                attempt,
                f"Verification did not complete after {attempt} attempts",
            )
            return
        self._complete(entry, reply)

    def _request_for(self, entry: QueueEntry) -> LookupRequest:
        lookup_type = LookupType(entry.lookup_type)
        doc_type: str | None = None
        transaction_id: str | None = None
        if lookup_type is LookupType.UAN_FULL_HISTORY:
            doc_type = self._settings.full_history_doc_type
            transaction_id = f"{entry.candidate_id}-{doc_type}-{int(time.time() * 1000)}"
        return LookupRequest(
            lookup_method=lookup_type.lookup_method,
            lookup_value=entry.lookup_value,
            candidate_id=entry.candidate_id,
            organization_id=entry.organization_id or "",
            user_id=entry.user_id,
            candidate_mobile=entry.candidate_mobile,
            route=route_for(entry.lookup_type, self._settings.provider_for(entry.organization_id)),
            doc_type=doc_type,
            transaction_id=transaction_id,
        )

    def _complete(self, entry: QueueEntry, reply: ProviderReply) -> None:
        payload = reply.payload
        record = self._lookup_repo.append(
            build_record(
                candidate_id=entry.candidate_id,
                lookup_type=entry.lookup_type,
                lookup_value=entry.lookup_value,
                organization_id=entry.organization_id,
                status=reply.status_code,
                payload=payload,
                response_data=reply.data,
            )
        )
        self._queue_repo.mark_completed(entry.candidate_id, entry.lookup_type)
        Log.info(
            f"Queue entry {entry.id} completed with status {record.status_code} "
            f"(record {record.id})"
        )

    def _retry_or_fail(self, entry: QueueEntry, attempt: int, reason: str) -> None:
        """Release for a later poll, or fail the entry once attempts run out."""
        if attempt >= self._settings.max_poll_attempts:
            self._fail(entry, reason)
            return
        self._queue_repo.release(entry.id)
        Log.warning(f"Queue entry {entry.id} still pending, will poll again (attempt {attempt})")

    def _fail(self, entry: QueueEntry, message: str) -> None:
        record = self._lookup_repo.append(
            failure_record(
                candidate_id=entry.candidate_id,
                lookup_type=entry.lookup_type,
                lookup_value=entry.lookup_value,
                organization_id=entry.organization_id,
                message=message,
            )
        )
        self._queue_repo.mark_completed(entry.candidate_id, entry.lookup_type)
        Log.error(
            f"Queue entry {entry.id} failed: {message} (record {record.id})",
            candidate_id=entry.candidate_id,
            lookup_type=entry.lookup_type,
        )
