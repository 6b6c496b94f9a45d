import threading

from bgv.config.settings import Settings
from bgv.database.connection import get_connection
from bgv.database.models import QueueEntry
from bgv.database.repositories.queue_repository import QueueRepository
from bgv.logging.logger import Log
from bgv.worker.queue_entry_runner import QueueEntryRunner

# Floor for the idle wait, so a due entry held by another worker is not spun on.
MIN_IDLE_SECONDS = 0.5


class Worker:
    """Drains the pending-lookup queue.

    Claims whichever entry is due and polls the provider for it. With nothing
    due it waits until the earliest pending entry's poll interval has passed,
    never longer than one interval, and wakes early when stopped.
    """

    def __init__(
        self,
        queue_repo: QueueRepository,
        entry_runner: QueueEntryRunner,
        settings: Settings,
    ) -> None:
        self._queue_repo = queue_repo
        self._entry_runner = entry_runner
        self._settings = settings
        self._stopped = threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit once the entry in hand is settled."""
        self._stopped.set()

    def run(self, max_entries: int | None = None) -> None:
        """Poll until stopped or interrupted.

        If max_entries is set, stop after settling that many entries (for testing).
        """
        Log.info("Worker started, polling for queued lookups")
        settled = 0
        try:
            while not self._stopped.is_set():
                if max_entries is not None and settled >= max_entries:
                    break
                entry = self._try_claim_entry()
                if entry is not None:
                    self._entry_runner.run(entry)
                    settled += 1
                    continue
                delay = self._idle_delay()
                Log.debug(f"No queued lookups due, next check in {delay:.1f}s")
                self._stopped.wait(delay)
        except KeyboardInterrupt:
            Log.info("Worker interrupted")
        Log.info(f"Worker stopped after settling {settled} queue entries")

    def _try_claim_entry(self) -> QueueEntry | None:
        try:
            with get_connection() as conn:
                return self._queue_repo.claim_next_entry(conn)
        except Exception as exc:
            Log.warning(f"Database error while claiming, will retry: {exc}")
            return None

    def _idle_delay(self) -> float:
        interval = float(self._settings.poll_interval_seconds)
        try:
            with get_connection() as conn:
                due_in = self._queue_repo.seconds_until_next_due(conn)
        except Exception as exc:
            Log.warning(f"Database error while scheduling, waiting a full interval: {exc}")
            return interval
        if due_in is None:
            return interval
        return min(max(due_in, MIN_IDLE_SECONDS), interval)
