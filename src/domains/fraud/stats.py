"""On-demand aggregate statistics over the transaction store."""

import structlog
from sqlalchemy import case, extract, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import TransactionRecord

from .config import FraudConfig, default_config
from .errors import StorageError
from .models import AggregateStats, HourlyBucket, RiskBucket, TransactionFilter
from .store import apply_filter

logger = structlog.get_logger()

# (label, lower bound inclusive, upper bound exclusive)
RISK_BUCKETS: tuple[tuple[str, int, int], ...] = (
    ("Low", 0, 30),
    ("Medium", 30, 70),
    ("High", 70, 85),
    ("Critical", 85, 101),
)


def empty_risk_distribution() -> list[RiskBucket]:
    return [
        RiskBucket(
            label=label,
            risk_range=f"{label} ({lo}-{hi - 1})",
            min_score=lo,
            max_score=hi - 1,
        )
        for label, lo, hi in RISK_BUCKETS
    ]


def empty_hourly_pattern() -> list[HourlyBucket]:
    return [HourlyBucket(hour=h) for h in range(24)]


def format_percentage(part: int, total: int) -> str:
    if total == 0:
        return "0"
    return f"{part / total * 100:.1f}"


class StatsAggregator:
    """Computes point-in-time snapshots; nothing is cached between calls.

    Each aggregate runs as its own statement, so inserts landing mid-way may
    show up in some figures and not others. That drift is accepted.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: FraudConfig | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._config = config or default_config

    async def compute(self, flt: TransactionFilter | None = None) -> AggregateStats:
        flt = flt or TransactionFilter()
        high = self._config.thresholds.high
        risk = TransactionRecord.risk_score

        summary_stmt = apply_filter(
            select(
                func.count(TransactionRecord.id),
                func.sum(TransactionRecord.amount),
                func.avg(TransactionRecord.amount),
                func.avg(risk),
                func.sum(case((risk >= high, 1), else_=0)),
                func.sum(case((TransactionRecord.is_flagged.is_(True), 1), else_=0)),
                *[
                    func.sum(case(((risk >= lo) & (risk < hi), 1), else_=0))
                    for _, lo, hi in RISK_BUCKETS
                ],
            ),
            flt,
        )

        hour = extract("hour", TransactionRecord.timestamp)
        hourly_stmt = apply_filter(
            select(hour.label("hour"), func.count(TransactionRecord.id), func.avg(risk)),
            flt,
        ).group_by(hour)

        try:
            async with self._session_factory() as session:
                summary = (await session.execute(summary_stmt)).one()
                hourly_rows = (await session.execute(hourly_stmt)).all()
        except (SQLAlchemyError, OSError) as exc:
            logger.error("stats_query_failed", error=str(exc))
            raise StorageError("Storage unavailable while computing stats") from exc

        period = {
            "date_from": flt.date_from.isoformat() if flt.date_from else None,
            "date_to": flt.date_to.isoformat() if flt.date_to else None,
        }

        total = int(summary[0] or 0)
        if total == 0:
            return AggregateStats(
                risk_distribution=empty_risk_distribution(),
                hourly_pattern=empty_hourly_pattern(),
                period=period,
            )

        high_risk = int(summary[4] or 0)
        distribution = empty_risk_distribution()
        for bucket, count in zip(distribution, summary[6:], strict=True):
            bucket.count = int(count or 0)

        pattern = empty_hourly_pattern()
        for hour_value, count, avg_risk in hourly_rows:
            slot = pattern[int(hour_value)]
            slot.count = int(count)
            slot.avg_risk = round(float(avg_risk)) if count else 0

        return AggregateStats(
            total_transactions=total,
            flagged_transactions=int(summary[5] or 0),
            high_risk_transactions=high_risk,
            high_risk_percentage=format_percentage(high_risk, total),
            avg_risk_score=round(float(summary[3] or 0), 2),
            total_amount=round(float(summary[1] or 0), 2),
            avg_amount=round(float(summary[2] or 0), 2),
            risk_distribution=distribution,
            hourly_pattern=pattern,
            period=period,
        )
