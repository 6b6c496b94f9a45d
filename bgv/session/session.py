import threading
from collections.abc import Callable, Sequence

from bgv.database.models import LookupRecord
from bgv.database.repositories.queue_repository import QueueRepository
from bgv.logging.logger import Log
from bgv.lookup.coordinator import LookupCoordinator
from bgv.lookup.exceptions import ProviderRejectedError, VerificationError
from bgv.lookup.models import (
    AlreadyQueued,
    CachedNotFound,
    Completed,
    LookupContext,
    LookupOutcome,
    LookupType,
    Queued,
)
from bgv.session import notifications
from bgv.session.notifications import Notification, NotificationSink
from bgv.session.state import DocumentState
from bgv.updates.bus import Subscription, UpdateBus
from bgv.verification.dual_employment import DualEmploymentVerifier
from bgv.verification.models import WorkHistoryEntry

ProfileWriter = Callable[[LookupRecord], None]


def _ignore(_: Notification) -> None:
    return None


class VerificationSession:
    """One requester's view of a candidate's verifications.

    Holds per-lookup-type document state and the set of lookups waiting on the
    provider. While open it is subscribed to the UpdateBus, so records written by
    the worker reach it long after ``lookup`` returned ``Queued``. Closing it
    unsubscribes but never cancels provider work.

    The feed thread and the requester may both hand it the same record, so state
    changes happen under one lock.
    """

    def __init__(
        self,
        candidate_id: str,
        context: LookupContext,
        lookups: LookupCoordinator,
        queue: QueueRepository,
        bus: UpdateBus,
        persist_to_profile: ProfileWriter,
        notify: NotificationSink = _ignore,
    ) -> None:
        self.candidate_id = candidate_id
        self.context = context
        self._lookups = lookups
        self._queue = queue
        self._bus = bus
        self._persist_to_profile = persist_to_profile
        self._notify = notify
        self._verifier = DualEmploymentVerifier(lookups)
        self._states: dict[LookupType, DocumentState] = {}
        self._queued: set[LookupType] = set()
        self._applied_record_ids: set[int] = set()
        self._persisted_record_ids: set[int] = set()
        self._subscription: Subscription | None = None
        self._lock = threading.RLock()

    def __enter__(self) -> "VerificationSession":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._subscription is not None

    def open(self) -> None:
        """Subscribe to record events and resync lookups still pending from earlier."""
        if self._subscription is None:
            self._subscription = self._bus.subscribe(self.candidate_id, self.handle_record)
        self.resync()

    def close(self) -> None:
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            self._subscription = None

    def resync(self) -> None:
        pending = self._queue.find_pending(self.candidate_id)
        with self._lock:
            for entry in pending:
                try:
                    lookup_type = LookupType(entry.lookup_type)
                except ValueError:
                    continue
                self._queued.add(lookup_type)
                state = self.state(lookup_type)
                if not (state.is_verifying or state.is_verified):
                    self._states[lookup_type] = state.start_verifying(entry.lookup_value)

    def state(self, lookup_type: str | LookupType) -> DocumentState:
        return self._states.get(LookupType.resolve(lookup_type), DocumentState())

    def is_queued(self, lookup_type: str | LookupType) -> bool:
        return LookupType.resolve(lookup_type) in self._queued

    def edit(self, lookup_type: str | LookupType) -> DocumentState:
        """Toggle editing. A verified document raises VerifiedDocumentLockedError."""
        resolved = LookupType.resolve(lookup_type)
        try:
            with self._lock:
                self._states[resolved] = self.state(resolved).toggle_editing()
                return self._states[resolved]
        except VerificationError as exc:
            self._notify(notifications.for_error(exc))
            raise

    def change_value(self, lookup_type: str | LookupType, value: str) -> DocumentState:
        resolved = LookupType.resolve(lookup_type)
        try:
            with self._lock:
                self._states[resolved] = self.state(resolved).change_value(value)
                return self._states[resolved]
        except VerificationError as exc:
            self._notify(notifications.for_error(exc))
            raise

    def toggle_details(self, lookup_type: str | LookupType) -> DocumentState:
        resolved = LookupType.resolve(lookup_type)
        with self._lock:
            self._states[resolved] = self.state(resolved).toggle_details()
            return self._states[resolved]

    def lookup(self, lookup_type: str | LookupType, value: str | None = None) -> LookupOutcome:
        """Request a lookup for this candidate and fold the outcome into local state.

        ``value`` defaults to the document's current value. Errors are notified
        and re-raised unchanged.
        """
        try:
            resolved = LookupType.resolve(lookup_type)
        except ValueError as exc:
            error = VerificationError(f"Unsupported lookup type: {lookup_type}")
            self._notify(notifications.for_error(error))
            raise error from exc
        return self._request(
            resolved,
            value,
            lambda raw: self._lookups.request_lookup(
                self.candidate_id, resolved, raw, self.context
            ),
        )

    def lookup_full_history(self, uan_value: str | None = None) -> LookupOutcome:
        """Request the basic UAN employment history. The provider may defer it."""
        return self._request(
            LookupType.UAN_FULL_HISTORY,
            uan_value,
            lambda raw: self._lookups.request_full_history(self.candidate_id, raw, self.context),
        )

    def _request(
        self,
        resolved: LookupType,
        value: str | None,
        call: Callable[[str | None], LookupOutcome],
    ) -> LookupOutcome:
        try:
            with self._lock:
                current = self.state(resolved)
                raw_value = current.value if value is None else value
                self._states[resolved] = current.start_verifying(raw_value)
        except VerificationError as exc:
            self._notify(notifications.for_error(exc))
            raise

        try:
            outcome = call(raw_value)
        except VerificationError as exc:
            rejected = exc.record if isinstance(exc, ProviderRejectedError) else None
            with self._lock:
                if rejected is not None and not self._claim(rejected):
                    # The feed already applied and announced this failure record.
                    raise
                state = self._states[resolved]
                if not state.is_verified:
                    self._states[resolved] = state.mark_failed(str(exc))
            self._notify(notifications.for_error(exc))
            raise

        if isinstance(outcome, Completed):
            self.handle_record(outcome.record)
            return outcome

        with self._lock:
            if isinstance(outcome, CachedNotFound):
                reason = outcome.record.error_message or "No record found for this value."
                self._states[resolved] = self._states[resolved].mark_failed(reason)
            elif isinstance(outcome, (Queued, AlreadyQueued)):
                self._queued.add(resolved)
        self._notify(notifications.for_outcome(outcome))
        return outcome

    def verify_dual_employment(
        self, work_history: Sequence[WorkHistoryEntry], uan_value: str | None = None
    ) -> DocumentState:
        resolved = LookupType.UAN_FULL_HISTORY
        with self._lock:
            state = self.state(resolved)
            if uan_value is not None:
                state = state.change_value(uan_value)
        state = self._verifier.run(
            state,
            self.candidate_id,
            work_history,
            self.context.organization_id,
            self.context.user_id,
        )
        with self._lock:
            self._states[resolved] = state
        if state.is_verified:
            self._notify(
                Notification(
                    "Dual Employment Verification Successful",
                    "UAN number verified successfully.",
                    notifications.Level.SUCCESS,
                )
            )
        else:
            self._notify(
                Notification(
                    "Verification Failed", state.error or "", notifications.Level.ERROR
                )
            )
        return state

    def handle_record(self, record: LookupRecord) -> None:
        """Apply a record for this candidate. Safe to call repeatedly with the same record.

        A record counts as applied only once every step below went through, so a
        delivery that raised midway is applied in full when the record comes again.
        """
        if record.candidate_id != self.candidate_id:
            return
        try:
            lookup_type = LookupType(record.lookup_type)
        except ValueError:
            Log.debug(f"Session ignores record {record.id} of type {record.lookup_type}")
            return

        with self._lock:
            if record.id is not None and record.id in self._applied_record_ids:
                return

            if lookup_type in self._queued:
                self._queue.mark_completed(self.candidate_id, lookup_type.value)
                self._queued.discard(lookup_type)

            state = self.state(lookup_type)
            announce = True
            if record.is_success:
                self._states[lookup_type] = state.mark_verified(value=record.lookup_value)
                self._persist(record)
                announce = not state.is_verified
            elif not state.is_verified:
                self._states[lookup_type] = state.mark_failed(
                    record.error_message or "Verification failed."
                )
            self._claim(record)

        if announce:
            self._notify(notifications.for_record(record))

    def _claim(self, record: LookupRecord) -> bool:
        """Mark a record applied. False when it already was."""
        if record.id is None:
            return True
        if record.id in self._applied_record_ids:
            return False
        self._applied_record_ids.add(record.id)
        return True

    def _persist(self, record: LookupRecord) -> None:
        if record.id is not None and record.id in self._persisted_record_ids:
            return
        try:
            self._persist_to_profile(record)
        except Exception as exc:
            Log.error(f"Failed to persist record {record.id} to candidate profile: {exc}")
            return
        if record.id is not None:
            self._persisted_record_ids.add(record.id)
