import time
from collections.abc import Callable
from typing import Any

from bgv.config.settings import Settings
from bgv.database.models import LookupRecord, QueueEntry
from bgv.database.repositories.lookup_repository import LookupRepository
from bgv.database.repositories.queue_repository import QueueRepository
from bgv.logging.logger import Log
from bgv.lookup.exceptions import (
    AmbiguousSuccessError,
    LookupValidationError,
    ProviderRejectedError,
    ProviderStepError,
)
from bgv.lookup.models import (
    AlreadyQueued,
    CachedNotFound,
    Completed,
    LookupContext,
    LookupOutcome,
    LookupType,
    Queued,
)
from bgv.lookup.normalization import normalize_value, require_organization, validate_context
from bgv.lookup.records import build_record, is_ambiguous
from bgv.provider.adapter import ProviderAdapter
from bgv.provider.factory import ProviderAdapterFactory
from bgv.provider.models import TRUTHSCREEN, LookupRequest, route_for

PIPELINE_TYPES = frozenset({LookupType.PAN_VERIFICATION, LookupType.UAN_FULL_HISTORY})


def _default_provider(_organization_id: str | None) -> str:
    return TRUTHSCREEN


class LookupCoordinator:
    """Decides, per lookup request, whether to answer from the negative cache,
    refuse a duplicate, call the provider, or hand the lookup to the pending queue.
    """

    def __init__(
        self,
        result_store: LookupRepository,
        queue: QueueRepository,
        provider: ProviderAdapter,
        *,
        pan_doc_type: str = "PAN",
        dual_employment_doc_type: str = "464",
        full_history_doc_type: str = "337",
        provider_for: Callable[[str | None], str] = _default_provider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._results = result_store
        self._queue = queue
        self._provider = provider
        self._doc_types = {
            LookupType.PAN_VERIFICATION: pan_doc_type,
            LookupType.UAN_FULL_HISTORY: dual_employment_doc_type,
        }
        self._full_history_doc_type = full_history_doc_type
        self._provider_for = provider_for
        self._clock = clock

    def request_lookup(
        self,
        candidate_id: str,
        lookup_type: str | LookupType,
        raw_value: str | None,
        context: LookupContext,
    ) -> LookupOutcome:
        """Run one lookup request.

        Returns:
            CachedNotFound when a not-found answer is already on record for the value,
            AlreadyQueued when an identical lookup is still pending for the candidate,
            Completed with the appended record, or Queued when the provider deferred.

        Raises:
            LookupValidationError: bad type, value or context. Nothing is stored.
            ProviderStepError: a provider step failed. Nothing is stored.
            ProviderRejectedError: the provider answered with a failure status.
                The failure record is appended before raising.
        """
        if not candidate_id:
            raise LookupValidationError("Candidate is required for a lookup")
        try:
            resolved = LookupType.resolve(lookup_type)
        except ValueError as exc:
            raise LookupValidationError(f"Unsupported lookup type: {lookup_type}") from exc

        value = normalize_value(resolved, raw_value)
        context = validate_context(resolved, context)

        answered = self._answer_without_provider(candidate_id, resolved, value)
        if answered is not None:
            return answered

        if resolved in PIPELINE_TYPES:
            return self._run_pipeline(candidate_id, resolved, value, context)
        return self._submit(candidate_id, resolved, value, context)

    def request_full_history(
        self, candidate_id: str, raw_uan: str | None, context: LookupContext
    ) -> LookupOutcome:
        """Ask for the basic UAN employment history on its own deferrable route.

        Needs no employer, and the provider may defer the answer to the queue.
        Outcomes and errors are those of ``request_lookup``.
        """
        if not candidate_id:
            raise LookupValidationError("Candidate is required for a lookup")
        lookup_type = LookupType.UAN_FULL_HISTORY
        uan = normalize_value(lookup_type, raw_uan)
        require_organization(context)

        answered = self._answer_without_provider(candidate_id, lookup_type, uan)
        if answered is not None:
            return answered
        return self._submit(candidate_id, lookup_type, uan, context)

    def _answer_without_provider(
        self, candidate_id: str, lookup_type: LookupType, value: str
    ) -> LookupOutcome | None:
        cached = self._results.find_negative(lookup_type.value, value)
        if cached is not None:
            Log.info(
                "Negative cache hit, provider not called",
                candidate_id=candidate_id,
                lookup_type=lookup_type.value,
            )
            return CachedNotFound(record=cached)

        if self._queue.is_pending(candidate_id, lookup_type.value):
            Log.info(
                "Lookup already queued", candidate_id=candidate_id, lookup_type=lookup_type.value
            )
            return AlreadyQueued(lookup_type=lookup_type)
        return None

    def transaction_id(self, candidate_id: str, doc_type: str) -> str:
        return f"{candidate_id}-{doc_type}-{int(self._clock() * 1000)}"

    def _run_pipeline(
        self,
        candidate_id: str,
        lookup_type: LookupType,
        value: str,
        context: LookupContext,
    ) -> LookupOutcome:
        doc_type = self._doc_types[lookup_type]
        extra: dict[str, Any] = {}
        if lookup_type is LookupType.UAN_FULL_HISTORY:
            extra = {"uan": value, "employer_name": context.employer_name}

        transaction_id = self.transaction_id(candidate_id, doc_type)
        result = self._provider.execute(
            transaction_id,
            doc_type,
            value,
            candidate_id=candidate_id,
            organization_id=context.organization_id,
            **extra,
        )
        if result.failed:
            raise ProviderStepError(result.failed_step or "", result.message)

        record = self._results.append(
            build_record(
                candidate_id=candidate_id,
                lookup_type=lookup_type.value,
                lookup_value=value,
                organization_id=context.organization_id,
                status=result.status,
                payload=result.payload,
                response_data={
                    "status": result.status,
                    "msg": result.payload,
                    "transId": transaction_id,
                },
                transaction_id=transaction_id,
            )
        )
        return self._conclude(record, result.status, result.payload)

    def _submit(
        self,
        candidate_id: str,
        lookup_type: LookupType,
        value: str,
        context: LookupContext,
    ) -> LookupOutcome:
        doc_type: str | None = None
        transaction_id: str | None = None
        if lookup_type is LookupType.UAN_FULL_HISTORY:
            doc_type = self._full_history_doc_type
            transaction_id = self.transaction_id(candidate_id, doc_type)
        reply = self._provider.submit(
            LookupRequest(
                lookup_method=lookup_type.lookup_method,
                lookup_value=value,
                candidate_id=candidate_id,
                organization_id=context.organization_id,
                user_id=context.user_id,
                candidate_mobile=context.candidate_mobile,
                route=route_for(lookup_type.value, self._provider_for(context.organization_id)),
                doc_type=doc_type,
                transaction_id=transaction_id,
            )
        )

        if reply.is_pending:
            entry = QueueEntry(
                candidate_id=candidate_id,
                lookup_type=lookup_type.value,
                lookup_value=value,
                organization_id=context.organization_id,
                user_id=context.user_id,
                candidate_mobile=context.candidate_mobile,
            )
            if not self._queue.enqueue(entry):
                return AlreadyQueued(lookup_type=lookup_type)
            Log.info(
                f"Provider deferred lookup, queue entry {entry.id}",
                candidate_id=candidate_id,
                lookup_type=lookup_type.value,
            )
            return Queued(lookup_type=lookup_type, message=reply.message)

        payload = reply.payload
        record = self._results.append(
            build_record(
                candidate_id=candidate_id,
                lookup_type=lookup_type.value,
                lookup_value=value,
                organization_id=context.organization_id,
                status=reply.status_code,
                payload=payload,
                response_data=reply.data,
            )
        )
        return self._conclude(record, reply.status_code, payload)

    @staticmethod
    def _conclude(record: LookupRecord, status: int | None, payload: Any) -> LookupOutcome:
        if record.is_success or record.is_not_found:
            Log.info(
                f"{record.lookup_type} lookup for candidate {record.candidate_id} "
                f"completed with status {record.status_code}"
            )
            return Completed(record=record)

        message = record.error_message or "Verification failed."
        Log.warning(
            f"{record.lookup_type} lookup for candidate {record.candidate_id} "
            f"rejected: {message}"
        )
        if is_ambiguous(status, payload):
            raise AmbiguousSuccessError(message, status_code=status or 0, record=record)
        raise ProviderRejectedError(
            message, status_code=record.status_code, record=record
        )


def build_coordinator(
    settings: Settings,
    provider: ProviderAdapter | None = None,
) -> LookupCoordinator:
    """Build a LookupCoordinator over the database repositories."""
    return LookupCoordinator(
        result_store=LookupRepository(),
        queue=QueueRepository(settings.max_poll_attempts, settings.poll_interval_seconds),
        provider=provider if provider is not None else ProviderAdapterFactory.create(settings),
        pan_doc_type=settings.pan_doc_type,
        dual_employment_doc_type=settings.dual_employment_doc_type,
        full_history_doc_type=settings.full_history_doc_type,
        provider_for=settings.provider_for,
    )
