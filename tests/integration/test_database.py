"""Integration tests for database models."""

import pytest

from src.db.database import check_db
from src.db.models import TransactionRecord

pytestmark = pytest.mark.integration


class TestDatabase:
    def test_table_name(self):
        assert TransactionRecord.__tablename__ == "transactions"

    def test_transaction_columns(self):
        columns = {c.name for c in TransactionRecord.__table__.columns}
        assert {
            "transaction_id",
            "timestamp",
            "amount",
            "currency",
            "customer_id",
            "customer_name",
            "customer_email",
            "customer_location",
            "customer_is_new",
            "merchant",
            "payment_method",
            "status",
            "risk_score",
            "is_flagged",
            "risk_reasons",
            "is_reviewed",
            "reviewed_by",
            "reviewed_at",
            "metadata",
            "created_at",
        } <= columns

    def test_transaction_id_unique(self):
        assert TransactionRecord.__table__.c.transaction_id.unique is True

    def test_listing_indexes(self):
        indexes = {ix.name: ix for ix in TransactionRecord.__table__.indexes}
        assert "ix_transactions_timestamp_risk" in indexes
        assert "ix_transactions_flagged_timestamp" in indexes

    @pytest.mark.asyncio
    async def test_check_db(self, engine):
        assert await check_db(engine) is True
