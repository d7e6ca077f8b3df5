"""Shared test fixtures for Fraud Pulse tests."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest
import pytest_asyncio

from src.config import Settings
from src.db.database import build_engine, build_session_factory, init_db
from src.domains.fraud.config import FraudConfig
from src.domains.fraud.models import (
    Customer,
    PaymentMethod,
    ScoreResult,
    Transaction,
    TransactionStatus,
)
from src.domains.fraud.stats import StatsAggregator
from src.domains.fraud.store import TransactionStore
from src.runtime import build_runtime

SQLITE_URL = "sqlite+aiosqlite:///:memory:"


def make_transaction(
    transaction_id: str = "TXN1700000000000123456",
    amount: str | Decimal = "125.50",
    risk_score: int | None = 20,
    timestamp: datetime | None = None,
    is_new: bool = False,
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD,
    **overrides,
) -> Transaction:
    """Build a transaction, scored unless ``risk_score`` is None."""
    event = Transaction(
        transaction_id=transaction_id,
        timestamp=timestamp or datetime(2026, 1, 15, 14, 0, tzinfo=UTC),
        amount=Decimal(str(amount)),
        currency="USD",
        customer=Customer(
            id="c0ffee01",
            name="Jane Doe",
            email="jane@x.com",
            location="New York, USA",
            is_new=is_new,
        ),
        merchant="Amazon",
        payment_method=payment_method,
        status=TransactionStatus.PENDING,
        metadata={"device": "desktop", "browser": "Chrome", "ip": "10.0.1.50"},
        **overrides,
    )
    if risk_score is None:
        return event
    return event.with_score(
        ScoreResult(risk_score=risk_score, is_flagged=risk_score > 70, reasons=["test"])
    )


@pytest.fixture
def fraud_config() -> FraudConfig:
    return FraudConfig()


@pytest.fixture
def sample_transaction() -> Transaction:
    return make_transaction()


@pytest_asyncio.fixture
async def engine():
    engine = build_engine(SQLITE_URL)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def store(session_factory) -> TransactionStore:
    return TransactionStore(session_factory)


@pytest.fixture
def stats(session_factory, fraud_config) -> StatsAggregator:
    return StatsAggregator(session_factory, fraud_config)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(database_url=SQLITE_URL, scorer_api_key=None, json_logs=False)


@pytest_asyncio.fixture
async def runtime(engine, test_settings, fraud_config):
    rt = build_runtime(test_settings, fraud_config, engine=engine)
    yield rt
    await rt.controller.shutdown()
    await rt.hub.close()
    await rt.scorer.aclose()
