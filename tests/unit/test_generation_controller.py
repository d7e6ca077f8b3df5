"""Unit tests for the subscriber-gated generation controller."""

import asyncio

import pytest

from src.domains.fraud.config import FraudConfig
from src.domains.fraud.errors import StorageError
from src.domains.fraud.models import Principal, Role, ScoreResult
from src.live.controller import ControllerState, GenerationController
from src.live.hub import BroadcastHub
from tests.conftest import make_transaction


class FakeSource:
    def __init__(self):
        self.issued = 0
        self.history_sweeps: list[int] = []

    def next(self):
        self.issued += 1
        return make_transaction(transaction_id=f"TXN{self.issued}", risk_score=None)

    def cleanup_history(self, hours: int = 24) -> int:
        self.history_sweeps.append(hours)
        return 0


class FakeScorer:
    def __init__(self, risk_score: int = 20, fail_on: set[int] | None = None):
        self.risk_score = risk_score
        self.fail_on = fail_on or set()
        self.calls = 0
        self.gate: asyncio.Event | None = None

    async def score(self, event) -> ScoreResult:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.calls in self.fail_on:
            raise RuntimeError("scorer exploded")
        return ScoreResult(
            risk_score=self.risk_score,
            is_flagged=self.risk_score > 70,
            reasons=["test"],
        )


class FakeStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.inserted = []
        self.evictions: list[int] = []

    async def insert(self, event):
        if self.fail:
            raise StorageError("database down")
        self.inserted.append(event)
        return event

    async def evict_oldest(self, keep_newest: int) -> int:
        self.evictions.append(keep_newest)
        return 0


class FakeHub:
    def __init__(self):
        self.published = []
        self.alerts = []

    def publish(self, event):
        self.published.append(event)

    def publish_alert(self, event):
        self.alerts.append(event)


class FlakyHub(FakeHub):
    """Raises on the first publish only."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def publish(self, event):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("publish exploded")
        super().publish(event)


def _config(interval_ms: int = 3000) -> FraudConfig:
    config = FraudConfig()
    config.generation.interval_ms = interval_ms
    return config


def _controller(scorer=None, store=None, config=None):
    source, hub = FakeSource(), FakeHub()
    scorer = scorer or FakeScorer()
    store = store or FakeStore()
    controller = GenerationController(source, scorer, store, hub, config or _config())
    return controller, source, scorer, store, hub


class TestTick:
    @pytest.mark.asyncio
    async def test_tick_persists_then_publishes(self):
        controller, _, _, store, hub = _controller()
        stored = await controller.tick()

        assert stored.risk_score == 20
        assert stored.status == "completed"
        assert store.inserted == [stored]
        assert hub.published == [stored]
        assert hub.alerts == []

    @pytest.mark.asyncio
    async def test_flagged_tick_raises_alert(self):
        controller, _, _, _, hub = _controller(scorer=FakeScorer(risk_score=88))
        stored = await controller.tick()
        assert stored.status == "flagged"
        assert hub.alerts == [stored]

    @pytest.mark.asyncio
    async def test_scorer_failure_is_isolated(self):
        controller, _, _, store, hub = _controller(scorer=FakeScorer(fail_on={1}))
        assert await controller.tick() is None
        assert store.inserted == []
        assert hub.published == []

        assert await controller.tick() is not None
        assert len(hub.published) == 1

    @pytest.mark.asyncio
    async def test_store_failure_publishes_nothing(self):
        controller, _, _, _, hub = _controller(store=FakeStore(fail=True))
        assert await controller.tick() is None
        assert hub.published == []
        assert controller.successful_ticks == 0

    @pytest.mark.asyncio
    async def test_publish_failure_is_isolated(self):
        source, scorer, store, hub = FakeSource(), FakeScorer(), FakeStore(), FlakyHub()
        controller = GenerationController(source, scorer, store, hub, _config())

        stored = await controller.tick()
        assert stored is not None
        assert hub.published == []

        await controller.tick()
        assert len(hub.published) == 1

    @pytest.mark.asyncio
    async def test_eviction_every_tenth_successful_tick(self):
        controller, _, _, store, _ = _controller(scorer=FakeScorer(fail_on={3, 7}))
        for _ in range(27):
            await controller.tick()

        assert controller.successful_ticks == 25
        assert store.evictions == [100, 100]

    @pytest.mark.asyncio
    async def test_history_sweep_cadence(self):
        config = _config()
        config.retention.history_sweep_every_ticks = 5
        controller, source, _, _, _ = _controller(config=config)
        for _ in range(10):
            await controller.tick()
        assert source.history_sweeps == [24, 24]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        controller, *_ = _controller()
        assert controller.start() is True
        assert controller.start() is False
        assert controller.state == ControllerState.RUNNING
        await controller.shutdown()
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_stop_when_idle_is_noop(self):
        controller, *_ = _controller()
        assert controller.stop() is False
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_subscriber_count_drives_state(self):
        controller, *_ = _controller()
        controller.on_subscriber_count(1)
        assert controller.is_running
        controller.on_subscriber_count(2)
        assert controller.is_running
        controller.on_subscriber_count(0)
        assert controller.state == ControllerState.IDLE

    @pytest.mark.asyncio
    async def test_loop_ticks_until_stopped(self):
        controller, _, _, store, _ = _controller(config=_config(interval_ms=5))
        controller.start()
        await asyncio.sleep(0.1)
        controller.stop()

        produced = len(store.inserted)
        assert produced > 0
        await asyncio.sleep(0.05)
        assert len(store.inserted) == produced

    @pytest.mark.asyncio
    async def test_failed_tick_does_not_halt_timer(self):
        controller, _, _, store, _ = _controller(
            scorer=FakeScorer(fail_on={1, 2}), config=_config(interval_ms=5)
        )
        controller.start()
        await asyncio.sleep(0.15)
        await controller.shutdown()
        assert len(store.inserted) > 0

    @pytest.mark.asyncio
    async def test_broadcast_failure_does_not_halt_timer(self):
        source, scorer, store, hub = FakeSource(), FakeScorer(), FakeStore(), FlakyHub()
        controller = GenerationController(source, scorer, store, hub, _config(interval_ms=5))
        controller.start()
        await asyncio.sleep(0.15)

        assert controller.state == ControllerState.RUNNING
        assert hub.calls > 1
        assert len(hub.published) == hub.calls - 1
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_history_sweep_failure_is_logged_not_raised(self):
        controller, source, *_ = _controller()

        def broken_sweep(hours: int = 24) -> int:
            raise RuntimeError("sweep exploded")

        source.cleanup_history = broken_sweep
        assert controller.run_history_sweep() == 0

    @pytest.mark.asyncio
    async def test_restart_keeps_a_single_loop(self):
        controller, _, scorer, _, _ = _controller(config=_config(interval_ms=20))
        for _ in range(5):
            controller.start()
            controller.stop()
        controller.start()
        await asyncio.sleep(0.07)
        await controller.shutdown()
        # One loop at 20 ms fits at most three ticks into 70 ms
        assert scorer.calls <= 4

    @pytest.mark.asyncio
    async def test_stop_mid_tick_lets_tick_finish(self):
        scorer = FakeScorer()
        scorer.gate = asyncio.Event()
        controller, _, _, store, hub = _controller(scorer=scorer, config=_config(interval_ms=1))
        controller.start()
        while scorer.calls == 0:
            await asyncio.sleep(0.001)

        assert controller.stop() is True
        assert controller.state == ControllerState.RUNNING

        scorer.gate.set()
        for _ in range(50):
            if controller.state == ControllerState.IDLE:
                break
            await asyncio.sleep(0.001)

        assert controller.state == ControllerState.IDLE
        assert len(store.inserted) == 1
        assert hub.published == store.inserted

    @pytest.mark.asyncio
    async def test_resubscribe_mid_tick_keeps_running(self):
        scorer = FakeScorer()
        scorer.gate = asyncio.Event()
        controller, *_ = _controller(scorer=scorer, config=_config(interval_ms=1))
        controller.start()
        while scorer.calls == 0:
            await asyncio.sleep(0.001)

        controller.stop()
        assert controller.start() is False

        scorer.gate.set()
        await asyncio.sleep(0.01)
        assert controller.state == ControllerState.RUNNING
        await controller.shutdown()


class TestSubscriberGating:
    @pytest.mark.asyncio
    async def test_hub_drives_a_single_start(self):
        hub = BroadcastHub()
        controller = GenerationController(FakeSource(), FakeScorer(), FakeStore(), hub, _config())
        hub.add_count_listener(controller.on_subscriber_count)

        starts: list[bool] = []
        original_start = controller.start

        def recording_start() -> bool:
            started = original_start()
            starts.append(started)
            return started

        controller.start = recording_start

        async def send(event_name, payload):
            return None

        viewer = Principal(user_id="v1", role=Role.VIEWER)
        first = hub.connect(viewer, send)
        second = hub.connect(viewer, send)
        assert starts == [True, False]
        assert controller.state == ControllerState.RUNNING

        await hub.disconnect(first)
        assert controller.state == ControllerState.RUNNING
        await hub.disconnect(second)
        assert controller.state == ControllerState.IDLE

        third = hub.connect(viewer, send)
        assert starts == [True, False, True]
        assert controller.state == ControllerState.RUNNING

        await hub.disconnect(third)
        await controller.shutdown()
