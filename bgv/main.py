import signal

from bgv.config.settings import Settings
from bgv.database.connection import apply_schema, close_pool, get_connection, init_pool
from bgv.database.repositories.lookup_repository import LookupRepository
from bgv.database.repositories.queue_repository import QueueRepository
from bgv.logging.logger import Log
from bgv.provider.adapter import ProviderAdapter
from bgv.provider.factory import ProviderAdapterFactory
from bgv.worker.queue_entry_runner import QueueEntryRunner
from bgv.worker.worker import Worker


def main() -> None:
    """Entry point: initialize pool -> ensure schema -> build dependencies -> start worker loop."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    provider: ProviderAdapter | None = None
    try:
        with get_connection() as conn:
            apply_schema(conn)
        provider = ProviderAdapterFactory.create(settings)
        queue_repo = QueueRepository(settings.max_poll_attempts, settings.poll_interval_seconds)
        entry_runner = QueueEntryRunner(provider, LookupRepository(), queue_repo, settings)
        worker = Worker(queue_repo, entry_runner, settings)
        signal.signal(signal.SIGTERM, lambda _signum, _frame: worker.stop())
        worker.run()
    finally:
        if provider is not None:
            provider.close()
        close_pool()


if __name__ == "__main__":
    main()
