"""Transaction record store: persistence, querying, review and retention."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import Select, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.models import TransactionRecord

from .errors import AlreadyReviewed, InvalidQuery, StorageError, TransactionNotFound
from .models import Customer, Transaction, TransactionFilter

logger = structlog.get_logger()

SORTABLE_FIELDS: dict[str, Any] = {
    "timestamp": TransactionRecord.timestamp,
    "created_at": TransactionRecord.created_at,
    "amount": TransactionRecord.amount,
    "currency": TransactionRecord.currency,
    "risk_score": TransactionRecord.risk_score,
    "merchant": TransactionRecord.merchant,
    "payment_method": TransactionRecord.payment_method,
    "status": TransactionRecord.status,
    "is_flagged": TransactionRecord.is_flagged,
    "is_reviewed": TransactionRecord.is_reviewed,
    "customer_name": TransactionRecord.customer_name,
    "customer_location": TransactionRecord.customer_location,
}


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC. Naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def apply_filter(stmt: Select, flt: TransactionFilter | None) -> Select:
    """Narrow a select on ``transactions`` by date range, risk floor and flag."""
    if flt is None:
        return stmt
    if flt.date_from:
        stmt = stmt.where(TransactionRecord.timestamp >= as_utc(flt.date_from))
    if flt.date_to:
        stmt = stmt.where(TransactionRecord.timestamp <= as_utc(flt.date_to))
    if flt.min_risk_score is not None:
        stmt = stmt.where(TransactionRecord.risk_score >= flt.min_risk_score)
    if flt.flagged_only:
        stmt = stmt.where(TransactionRecord.is_flagged.is_(True))
    return stmt


def _to_record(event: Transaction, created_at: datetime) -> TransactionRecord:
    return TransactionRecord(
        transaction_id=event.transaction_id,
        timestamp=as_utc(event.timestamp),
        amount=event.amount,
        currency=event.currency,
        customer_id=event.customer.id,
        customer_name=event.customer.name,
        customer_email=event.customer.email,
        customer_location=event.customer.location,
        customer_is_new=event.customer.is_new,
        merchant=event.merchant,
        payment_method=event.payment_method.value,
        status=event.status.value,
        risk_score=event.risk_score,
        is_flagged=event.is_flagged,
        risk_reasons=list(event.risk_reasons),
        is_reviewed=event.is_reviewed,
        reviewed_by=event.reviewed_by,
        reviewed_at=as_utc(event.reviewed_at),
        extra=dict(event.metadata),
        created_at=created_at,
    )


def _to_model(row: TransactionRecord) -> Transaction:
    return Transaction(
        transaction_id=row.transaction_id,
        timestamp=as_utc(row.timestamp),
        amount=row.amount,
        currency=row.currency,
        customer=Customer(
            id=row.customer_id,
            name=row.customer_name,
            email=row.customer_email,
            location=row.customer_location,
            is_new=row.customer_is_new,
        ),
        merchant=row.merchant,
        payment_method=row.payment_method,
        status=row.status,
        risk_score=row.risk_score,
        is_flagged=row.is_flagged,
        risk_reasons=list(row.risk_reasons or []),
        is_reviewed=row.is_reviewed,
        reviewed_by=row.reviewed_by,
        reviewed_at=as_utc(row.reviewed_at),
        metadata=dict(row.extra or {}),
        created_at=as_utc(row.created_at),
    )


class TransactionStore:
    """Single source of truth for scored transactions.

    Every public operation opens its own session, so the store is safe to
    share between the generation loop and request handlers. Backing-store
    failures surface as ``StorageError``; domain errors pass through.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        try:
            yield
        except (SQLAlchemyError, OSError) as exc:
            logger.error("storage_operation_failed", operation=operation, error=str(exc))
            raise StorageError(f"Storage unavailable during {operation}") from exc

    async def insert(self, event: Transaction) -> Transaction:
        """Persist a scored transaction and return it with ``created_at`` set."""
        if not event.is_scored:
            raise ValueError(f"Transaction {event.transaction_id} must be scored before insert")

        created_at = datetime.now(UTC)
        with self._guard("insert"):
            async with self._session_factory() as session:
                session.add(_to_record(event, created_at))
                await session.commit()

        return event.model_copy(update={"created_at": created_at})

    async def list_transactions(
        self,
        flt: TransactionFilter | None = None,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Transaction], int]:
        """Return one page of transactions plus the total matching count."""
        if page < 1:
            raise InvalidQuery("page must be >= 1")
        if page_size < 1:
            raise InvalidQuery("page_size must be >= 1")
        if sort_order not in ("asc", "desc"):
            raise InvalidQuery(f"Unsupported sort order: {sort_order}")
        column = SORTABLE_FIELDS.get(sort_by)
        if column is None:
            raise InvalidQuery(f"Unsupported sort field: {sort_by}")

        if sort_order == "desc":
            ordering = (column.desc(), TransactionRecord.id.desc())
        else:
            ordering = (column.asc(), TransactionRecord.id.asc())

        stmt = (
            apply_filter(select(TransactionRecord), flt)
            .order_by(*ordering)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        count_stmt = apply_filter(select(func.count()).select_from(TransactionRecord), flt)

        with self._guard("list"):
            async with self._session_factory() as session:
                total = (await session.execute(count_stmt)).scalar_one()
                rows = (await session.execute(stmt)).scalars().all()

        return [_to_model(r) for r in rows], total

    async def get(self, transaction_id: str) -> Transaction:
        stmt = select(TransactionRecord).where(TransactionRecord.transaction_id == transaction_id)
        with self._guard("get"):
            async with self._session_factory() as session:
                row = (await session.execute(stmt)).scalar_one_or_none()

        if row is None:
            raise TransactionNotFound(transaction_id)
        return _to_model(row)

    async def mark_reviewed(self, transaction_id: str, reviewer: str) -> Transaction:
        """Mark a transaction reviewed exactly once.

        The conditional update only matches unreviewed rows, so of two
        concurrent reviewers exactly one wins and the other gets
        ``AlreadyReviewed`` with the first reviewer's fields intact.
        """
        lookup = select(TransactionRecord).where(TransactionRecord.transaction_id == transaction_id)
        stmt = (
            update(TransactionRecord)
            .where(
                TransactionRecord.transaction_id == transaction_id,
                TransactionRecord.is_reviewed.is_(False),
            )
            .values(is_reviewed=True, reviewed_by=reviewer, reviewed_at=datetime.now(UTC))
        )

        with self._guard("mark_reviewed"):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
                row = (await session.execute(lookup)).scalar_one_or_none()

        if row is None:
            raise TransactionNotFound(transaction_id)
        if result.rowcount == 0:
            raise AlreadyReviewed(transaction_id)

        logger.info("transaction_reviewed", transaction_id=transaction_id, reviewed_by=reviewer)
        return _to_model(row)

    async def evict_oldest(self, keep_newest: int) -> int:
        """Delete all but the newest ``keep_newest`` transactions by creation time.

        The victims are chosen from a snapshot of ids, so rows inserted while
        the eviction runs are never deleted by it. Returns the number deleted.
        """
        if keep_newest < 0:
            raise InvalidQuery("keep_newest must be >= 0")

        with self._guard("evict_oldest"):
            async with self._session_factory() as session:
                total = (
                    await session.execute(select(func.count()).select_from(TransactionRecord))
                ).scalar_one()
                excess = total - keep_newest
                if excess <= 0:
                    logger.debug("eviction_skipped", count=total, retention_cap=keep_newest)
                    return 0

                victims = (
                    await session.execute(
                        select(TransactionRecord.id)
                        .order_by(TransactionRecord.created_at.asc(), TransactionRecord.id.asc())
                        .limit(excess)
                    )
                ).scalars().all()
                result = await session.execute(
                    delete(TransactionRecord)
                    .where(TransactionRecord.id.in_(victims))
                    .execution_options(synchronize_session=False)
                )
                await session.commit()

        logger.info(
            "transactions_evicted",
            deleted=result.rowcount,
            previous_count=total,
            retention_cap=keep_newest,
        )
        return result.rowcount

    async def count(self, flt: TransactionFilter | None = None) -> int:
        stmt = apply_filter(select(func.count()).select_from(TransactionRecord), flt)
        with self._guard("count"):
            async with self._session_factory() as session:
                return (await session.execute(stmt)).scalar_one()

    async def export(self, flt: TransactionFilter | None = None) -> list[Transaction]:
        """All matching transactions, newest first."""
        stmt = apply_filter(select(TransactionRecord), flt).order_by(
            TransactionRecord.timestamp.desc(), TransactionRecord.id.desc()
        )
        with self._guard("export"):
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
        return [_to_model(r) for r in rows]
