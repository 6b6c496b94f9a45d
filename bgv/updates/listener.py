import json
import threading
import time
from collections.abc import Callable
from typing import Any

import psycopg
from psycopg import sql

from bgv.config.settings import Settings
from bgv.database.connection import build_conninfo
from bgv.database.repositories.lookup_repository import LookupRepository
from bgv.logging.logger import Log
from bgv.updates.bus import UpdateBus

RECONNECT_DELAY_SECONDS = 5


class PostgresUpdateListener:
    """Feeds the UpdateBus from Postgres LISTEN/NOTIFY.

    The lookup_records insert trigger sends ``{"id": ..., "candidate_id": ...}``;
    the listener loads the full row and publishes it. LISTEN needs its own
    autocommit connection, so this does not borrow from the pool.
    """

    def __init__(
        self,
        connect: Callable[[], psycopg.Connection[Any]],
        records: LookupRepository,
        bus: UpdateBus,
        channel: str,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._connect = connect
        self._records = records
        self._bus = bus
        self._channel = channel
        self._timeout_seconds = timeout_seconds
        self._stopped = threading.Event()

    @classmethod
    def from_settings(
        cls, settings: Settings, records: LookupRepository, bus: UpdateBus
    ) -> "PostgresUpdateListener":
        conninfo = build_conninfo(settings)
        return cls(
            lambda: psycopg.connect(conninfo, autocommit=True),
            records,
            bus,
            settings.update_channel,
            settings.update_listen_timeout_seconds,
        )

    def start(self) -> threading.Thread:
        """Run the listen loop in a daemon thread."""
        thread = threading.Thread(target=self.run, name="bgv-update-listener", daemon=True)
        thread.start()
        return thread

    def stop(self) -> None:
        """Ask the loop to exit after the current wait times out."""
        self._stopped.set()

    def run(self, max_events: int | None = None) -> None:
        """Listen until stopped or interrupted.

        If max_events is set, stop after dispatching that many notifications (for testing).
        """
        Log.info(f"Update listener started on channel {self._channel}")
        dispatched = 0
        try:
            while not self._stopped.is_set():
                try:
                    dispatched += self._listen(max_events, dispatched)
                except psycopg.OperationalError as exc:
                    Log.warning(f"Update listener lost its connection, will retry: {exc}")
                    time.sleep(RECONNECT_DELAY_SECONDS)
                    continue
                if max_events is not None and dispatched >= max_events:
                    break
        except KeyboardInterrupt:
            Log.info("Update listener shutting down gracefully")

    def _listen(self, max_events: int | None, already: int) -> int:
        count = 0
        with self._connect() as conn:
            conn.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self._channel)))
            while not self._stopped.is_set():
                for notify in conn.notifies(timeout=self._timeout_seconds):
                    self.dispatch(notify.payload)
                    count += 1
                    if max_events is not None and already + count >= max_events:
                        return count
        return count

    def dispatch(self, payload: str) -> bool:
        """Publish the record a notification refers to. False if it cannot be loaded."""
        try:
            record_id = int(json.loads(payload)["id"])
        except (ValueError, KeyError, TypeError) as exc:
            Log.warning(f"Ignoring malformed change notification {payload!r}: {exc}")
            return False

        record = self._records.find_by_id(record_id)
        if record is None:
            Log.warning(f"Change notification for missing lookup record {record_id}")
            return False

        delivered = self._bus.publish(record)
        Log.debug(f"Lookup record {record_id} delivered to {delivered} subscription(s)")
        return True
