"""SQLAlchemy ORM models for persisted transaction state."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKeyType = BigInteger().with_variant(Integer(), "sqlite")


class Base(DeclarativeBase):
    pass


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(PrimaryKeyType, primary_key=True, autoincrement=True)
    transaction_id: Mapped[str] = mapped_column(String, unique=True, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="USD")

    customer_id: Mapped[str] = mapped_column(String, index=True)
    customer_name: Mapped[str] = mapped_column(String)
    customer_email: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_location: Mapped[str] = mapped_column(String)
    customer_is_new: Mapped[bool] = mapped_column(Boolean, default=False)

    merchant: Mapped[str] = mapped_column(String)
    payment_method: Mapped[str] = mapped_column(String, default="credit_card")
    status: Mapped[str] = mapped_column(String, default="completed")

    risk_score: Mapped[int] = mapped_column(Integer)
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_reasons: Mapped[list] = mapped_column(JSONType, default=list)

    is_reviewed: Mapped[bool] = mapped_column(Boolean, default=False)
    reviewed_by: Mapped[str | None] = mapped_column(String, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    extra: Mapped[dict] = mapped_column("metadata", JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


# Newest-first listing and the flagged-only feed
Index(
    "ix_transactions_timestamp_risk",
    TransactionRecord.timestamp.desc(),
    TransactionRecord.risk_score.desc(),
)
Index(
    "ix_transactions_flagged_timestamp",
    TransactionRecord.is_flagged,
    TransactionRecord.timestamp.desc(),
)
