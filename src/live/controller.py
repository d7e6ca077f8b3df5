"""Subscriber-gated generation loop: source -> scorer -> store -> hub."""

import asyncio
import contextlib
from enum import StrEnum

import structlog

from generators.transaction_generator import TransactionGenerator
from src.domains.fraud.config import FraudConfig, default_config
from src.domains.fraud.models import Transaction
from src.domains.fraud.scorer import RiskScorer
from src.domains.fraud.store import TransactionStore

from .hub import BroadcastHub

logger = structlog.get_logger()


class ControllerState(StrEnum):
    IDLE = "idle"
    RUNNING = "running"


class GenerationController:
    """Owns the single recurring generation timer.

    The timer runs only while at least one subscriber is connected. The
    explicit state check in ``start`` is what keeps it to one timer; nothing
    relies on the event loop being single-threaded for that.

    Stopping cancels a sleeping timer at once. If a tick is in flight it is
    allowed to finish, the loop then exits and the state goes back to idle.
    A ``start`` that arrives while that tick is still draining simply keeps
    the existing loop alive.
    """

    def __init__(
        self,
        source: TransactionGenerator,
        scorer: RiskScorer,
        store: TransactionStore,
        hub: BroadcastHub,
        config: FraudConfig | None = None,
    ) -> None:
        self._source = source
        self._scorer = scorer
        self._store = store
        self._hub = hub
        self._config = config or default_config

        self._state = ControllerState.IDLE
        self._task: asyncio.Task | None = None
        self._stop_requested = False
        self._in_tick = False
        self._successful_ticks = 0

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ControllerState.RUNNING

    @property
    def successful_ticks(self) -> int:
        return self._successful_ticks

    @property
    def interval_seconds(self) -> float:
        return self._config.generation.interval_ms / 1000

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_subscriber_count(self, count: int) -> None:
        """Count listener for the hub: first subscriber starts, last one stops."""
        if count > 0:
            self.start()
        else:
            self.stop()

    def start(self) -> bool:
        """Start the timer. Returns False when it was already running."""
        if self._state == ControllerState.RUNNING:
            if self._stop_requested:
                # Resubscribed while the last tick drains: keep that loop
                self._stop_requested = False
                logger.info("generation_resumed")
            return False

        self._state = ControllerState.RUNNING
        self._stop_requested = False
        self._task = asyncio.create_task(self._run())
        logger.info("generation_started", interval_ms=self._config.generation.interval_ms)
        return True

    def stop(self) -> bool:
        """Stop the timer. Returns False when it was not running."""
        if self._state == ControllerState.IDLE or self._stop_requested:
            return False

        if self._in_tick:
            self._stop_requested = True
            logger.info("generation_stopping", reason="tick_in_flight")
            return True

        task, self._task = self._task, None
        self._state = ControllerState.IDLE
        if task is not None:
            task.cancel()
        logger.info("generation_stopped")
        return True

    async def shutdown(self) -> None:
        """Stop and wait for the loop, in-flight tick included, to finish."""
        task = self._task
        self.stop()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _run(self) -> None:
        current = asyncio.current_task()
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                if self._stop_requested:
                    break
                self._in_tick = True
                try:
                    await self.tick()
                except Exception:
                    logger.exception("generation_tick_failed")
                finally:
                    self._in_tick = False
                if self._stop_requested:
                    break
        finally:
            if self._task is current:
                self._task = None
                self._state = ControllerState.IDLE
                self._stop_requested = False
                logger.info("generation_stopped")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> Transaction | None:
        """Generate, score, persist and broadcast one transaction.

        Failures are logged and abandon only this tick. Nothing is
        broadcast unless the insert succeeded.
        """
        try:
            raw = self._source.next()
            result = await self._scorer.score(raw)
            stored = await self._store.insert(raw.with_score(result))
        except Exception:
            logger.exception("generation_tick_failed")
            return None

        self._successful_ticks += 1
        try:
            self._hub.publish(stored)
            if stored.is_flagged:
                self._hub.publish_alert(stored)
        except Exception:
            logger.exception("generation_publish_failed", transaction_id=stored.transaction_id)
        logger.info(
            "transaction_generated",
            transaction_id=stored.transaction_id,
            amount=str(stored.amount),
            risk_score=stored.risk_score,
            is_flagged=stored.is_flagged,
            scoring_source=result.source,
        )
        await self._run_scheduled_maintenance()
        return stored

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def _run_scheduled_maintenance(self) -> None:
        retention = self._config.retention
        if retention.cleanup_every_ticks and (
            self._successful_ticks % retention.cleanup_every_ticks == 0
        ):
            await self.run_retention()
        if retention.history_sweep_every_ticks and (
            self._successful_ticks % retention.history_sweep_every_ticks == 0
        ):
            self.run_history_sweep()

    async def run_retention(self) -> int:
        """Evict everything beyond the retention cap. Never raises."""
        cap = self._config.retention.retention_cap
        try:
            return await self._store.evict_oldest(cap)
        except Exception:
            logger.exception("retention_sweep_failed", retention_cap=cap)
            return 0

    def run_history_sweep(self) -> int:
        """Forget customers first seen before the history horizon. Never raises."""
        hours = self._config.retention.history_horizon_hours
        try:
            dropped = self._source.cleanup_history(hours=hours)
        except Exception:
            logger.exception("customer_history_sweep_failed", horizon_hours=hours)
            return 0
        if dropped:
            logger.info("customer_history_swept", dropped=dropped, horizon_hours=hours)
        return dropped
