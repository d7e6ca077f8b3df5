"""Live subscriber registry and role-aware fan-out."""

import asyncio
import contextlib
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import structlog

from src.domains.fraud.alerts import create_alert
from src.domains.fraud.config import FraudConfig, default_config
from src.domains.fraud.models import Principal, Transaction, TransactionFilter
from src.domains.fraud.redaction import redact
from src.domains.fraud.stats import StatsAggregator

logger = structlog.get_logger()

SendFunc = Callable[[str, dict], Awaitable[None]]
CountListener = Callable[[int], None]

EVENT_WELCOME = "welcome"
EVENT_NEW_TRANSACTION = "newTransaction"
EVENT_HIGH_RISK_ALERT = "highRiskAlert"
EVENT_TRANSACTION_REVIEWED = "transactionReviewed"
EVENT_STATS = "stats"


@dataclass
class Subscriber:
    subscriber_id: str
    principal: Principal
    send: SendFunc
    outbox: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=256))
    pump: asyncio.Task | None = None


class BroadcastHub:
    """Fans scored transactions out to connected subscribers.

    Each subscriber gets its own ordered outbox drained by a pump task, so
    publishing never waits on a slow socket and every subscriber sees events
    in publish order. The registry only changes on connect and disconnect;
    each change is reported to the count listener (the generation controller).
    """

    def __init__(
        self,
        stats: StatsAggregator | None = None,
        config: FraudConfig | None = None,
    ) -> None:
        self._stats = stats
        self._config = config or default_config
        self._subscribers: dict[str, Subscriber] = {}
        self._count_listeners: list[CountListener] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def add_count_listener(self, listener: CountListener) -> None:
        self._count_listeners.append(listener)

    def _notify_count(self) -> None:
        count = self.subscriber_count
        for listener in self._count_listeners:
            listener(count)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def connect(self, principal: Principal, send: SendFunc) -> str:
        subscriber = Subscriber(
            subscriber_id=str(uuid.uuid4()),
            principal=principal,
            send=send,
        )
        subscriber.pump = asyncio.create_task(self._pump(subscriber))
        self._subscribers[subscriber.subscriber_id] = subscriber

        logger.info(
            "subscriber_connected",
            subscriber_id=subscriber.subscriber_id,
            user_id=principal.user_id,
            role=principal.role.value,
            subscribers=self.subscriber_count,
        )
        self._enqueue(subscriber, EVENT_WELCOME, {"message": "Connected to live fraud feed"})
        self._notify_count()
        return subscriber.subscriber_id

    async def disconnect(self, subscriber_id: str) -> None:
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return
        if subscriber.pump is not None:
            subscriber.pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await subscriber.pump
        self._discard_outbox(subscriber)

        logger.info(
            "subscriber_disconnected",
            subscriber_id=subscriber_id,
            subscribers=self.subscriber_count,
        )
        self._notify_count()

    async def close(self) -> None:
        for subscriber_id in list(self._subscribers):
            await self.disconnect(subscriber_id)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish(self, event: Transaction) -> None:
        """Queue ``newTransaction`` for every subscriber, redacted per role."""
        for subscriber in list(self._subscribers.values()):
            view = redact(event, subscriber.principal.role)
            self._enqueue(subscriber, EVENT_NEW_TRANSACTION, view)

    def publish_alert(self, event: Transaction) -> None:
        """Queue ``highRiskAlert`` for every subscriber. Alerts are not redacted."""
        alert = create_alert(event, self._config)
        if alert is None:
            return
        payload = alert.model_dump(mode="json")
        for subscriber in list(self._subscribers.values()):
            self._enqueue(subscriber, EVENT_HIGH_RISK_ALERT, payload)

    def publish_reviewed(self, event: Transaction, reviewer_name: str | None = None) -> None:
        """Tell every subscriber a transaction was reviewed, and by whom."""
        payload = {
            "transaction_id": event.transaction_id,
            "reviewed_by": event.reviewed_by,
            "reviewer_name": reviewer_name or event.reviewed_by,
            "reviewed_at": event.reviewed_at.isoformat() if event.reviewed_at else None,
        }
        for subscriber in list(self._subscribers.values()):
            self._enqueue(subscriber, EVENT_TRANSACTION_REVIEWED, payload)

    async def request_stats(
        self,
        subscriber_id: str,
        flt: TransactionFilter | None = None,
    ) -> None:
        """Answer a stats request to the asking subscriber only."""
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None or self._stats is None:
            return
        try:
            snapshot = await self._stats.compute(flt)
        except Exception:
            logger.exception("live_stats_failed", subscriber_id=subscriber_id)
            return
        self._enqueue(subscriber, EVENT_STATS, snapshot.model_dump(mode="json"))

    async def drain(self) -> None:
        """Wait until every queued message has been handed to its transport."""
        await asyncio.gather(*(s.outbox.join() for s in list(self._subscribers.values())))

    def _enqueue(self, subscriber: Subscriber, event_name: str, payload: dict) -> None:
        try:
            subscriber.outbox.put_nowait((event_name, payload))
        except asyncio.QueueFull:
            logger.warning(
                "subscriber_outbox_full",
                subscriber_id=subscriber.subscriber_id,
                event_name=event_name,
            )

    async def _pump(self, subscriber: Subscriber) -> None:
        while True:
            event_name, payload = await subscriber.outbox.get()
            try:
                await subscriber.send(event_name, payload)
            except Exception:
                logger.warning(
                    "subscriber_send_failed",
                    subscriber_id=subscriber.subscriber_id,
                    event_name=event_name,
                    exc_info=True,
                )
                self._drop(subscriber)
                return
            finally:
                subscriber.outbox.task_done()

    def _drop(self, subscriber: Subscriber) -> None:
        if self._subscribers.pop(subscriber.subscriber_id, None) is None:
            return
        self._discard_outbox(subscriber)
        logger.info(
            "subscriber_dropped",
            subscriber_id=subscriber.subscriber_id,
            subscribers=self.subscriber_count,
        )
        self._notify_count()

    @staticmethod
    def _discard_outbox(subscriber: Subscriber) -> None:
        # Unblock anyone draining this outbox
        while not subscriber.outbox.empty():
            subscriber.outbox.get_nowait()
            subscriber.outbox.task_done()
