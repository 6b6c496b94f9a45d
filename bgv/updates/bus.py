"""In-process publish/subscribe for lookup record creation events.

Subscriptions are scoped to one candidate. Delivery is at-least-once from the
feed, so each subscription remembers the record ids it has already seen and
drops repeats.
"""

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from bgv.database.models import LookupRecord
from bgv.logging.logger import Log

RecordHandler = Callable[[LookupRecord], None]

_subscription_ids = itertools.count(1)


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``UpdateBus.subscribe``; pass it back to unsubscribe."""

    candidate_id: str
    handler: RecordHandler
    id: int = field(default_factory=lambda: next(_subscription_ids))
    active: bool = True
    seen_record_ids: set[int] = field(default_factory=set)

    def first_delivery(self, record: LookupRecord) -> bool:
        """Mark the record as delivered. False when it was delivered before."""
        if record.id is None:
            return True
        if record.id in self.seen_record_ids:
            return False
        self.seen_record_ids.add(record.id)
        return True

    def forget(self, record: LookupRecord) -> None:
        """Allow the record to be delivered again."""
        if record.id is not None:
            self.seen_record_ids.discard(record.id)


class UpdateBus:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: dict[str, list[Subscription]] = {}

    def subscribe(self, candidate_id: str, handler: RecordHandler) -> Subscription:
        subscription = Subscription(candidate_id=candidate_id, handler=handler)
        with self._lock:
            self._subscriptions.setdefault(candidate_id, []).append(subscription)
        Log.debug(f"Subscription {subscription.id} opened for candidate {candidate_id}")
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Release a subscription. Unknown or already released handles are ignored."""
        with self._lock:
            subscription.active = False
            live = self._subscriptions.get(subscription.candidate_id, [])
            remaining = [s for s in live if s is not subscription]
            if remaining:
                self._subscriptions[subscription.candidate_id] = remaining
            else:
                self._subscriptions.pop(subscription.candidate_id, None)
        Log.debug(f"Subscription {subscription.id} released")

    def subscriber_count(self, candidate_id: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(candidate_id, []))

    def publish(self, record: LookupRecord) -> int:
        """Deliver a record to every live subscription for its candidate.

        Returns the number of handlers that completed. A failing handler is logged
        and does not block the others. It gets the record again on redelivery.
        """
        with self._lock:
            targets = [
                s
                for s in self._subscriptions.get(record.candidate_id, [])
                if s.active and s.first_delivery(record)
            ]

        delivered = 0
        for subscription in targets:
            try:
                subscription.handler(record)
                delivered += 1
            except Exception as exc:
                with self._lock:
                    subscription.forget(record)
                Log.error(
                    f"Subscription {subscription.id} failed handling record "
                    f"{record.id}: {exc}"
                )
        return delivered
