"""Runtime container wiring the pipeline components together."""

from dataclasses import dataclass

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from generators.transaction_generator import TransactionGenerator
from src.config import Settings
from src.db.database import build_engine, build_session_factory
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.scorer import RiskScorer
from src.domains.fraud.stats import StatsAggregator
from src.domains.fraud.store import TransactionStore
from src.live.controller import GenerationController
from src.live.hub import BroadcastHub

logger = structlog.get_logger()


@dataclass
class Runtime:
    settings: Settings
    config: FraudConfig
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    store: TransactionStore
    stats: StatsAggregator
    scorer: RiskScorer
    source: TransactionGenerator
    hub: BroadcastHub
    controller: GenerationController

    @property
    def scorer_mode(self) -> str:
        return self.scorer.mode

    async def aclose(self) -> None:
        await self.controller.shutdown()
        await self.hub.close()
        await self.scorer.aclose()
        await self.engine.dispose()
        logger.info("runtime_closed")


def build_runtime(
    settings: Settings,
    config: FraudConfig,
    engine: AsyncEngine | None = None,
    scorer: RiskScorer | None = None,
    source: TransactionGenerator | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Runtime:
    """Construct every component once; the hub reports its count to the controller."""
    engine = engine or build_engine(settings.database_url, echo=settings.debug)
    session_factory = build_session_factory(engine)

    store = TransactionStore(session_factory)
    stats = StatsAggregator(session_factory, config)
    scorer = scorer or RiskScorer(
        config=config,
        api_url=settings.scorer_api_url,
        api_key=settings.scorer_api_key,
        model=settings.scorer_model,
        timeout_seconds=settings.scorer_timeout_seconds,
        client=http_client,
    )
    source = source or TransactionGenerator(
        seed=settings.generator_seed,
        settings=config.generation,
    )
    hub = BroadcastHub(stats=stats, config=config)
    controller = GenerationController(
        source=source,
        scorer=scorer,
        store=store,
        hub=hub,
        config=config,
    )
    hub.add_count_listener(controller.on_subscriber_count)

    return Runtime(
        settings=settings,
        config=config,
        engine=engine,
        session_factory=session_factory,
        store=store,
        stats=stats,
        scorer=scorer,
        source=source,
        hub=hub,
        controller=controller,
    )
