"""Pydantic models for the transaction pipeline."""

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class PaymentMethod(StrEnum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    CRYPTO = "crypto"
    BANK_TRANSFER = "bank_transfer"


class TransactionStatus(StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    FLAGGED = "flagged"


class Role(StrEnum):
    ADMIN = "admin"
    VIEWER = "viewer"


class AlertSeverity(StrEnum):
    HIGH = "high"
    CRITICAL = "critical"


class Principal(BaseModel):
    """Caller identity handed over by the upstream auth collaborator."""

    user_id: str
    role: Role = Role.VIEWER
    display_name: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class Customer(BaseModel):
    id: str
    name: str
    email: str | None = None
    location: str
    is_new: bool = False


class ScoreResult(BaseModel):
    risk_score: int = Field(ge=0, le=100)
    is_flagged: bool
    reasons: list[str] = []
    source: Literal["remote", "fallback"] = "fallback"


class Transaction(BaseModel):
    transaction_id: str
    timestamp: datetime
    amount: Decimal = Field(gt=0, decimal_places=2)
    currency: str = "USD"
    customer: Customer
    merchant: str
    payment_method: PaymentMethod = PaymentMethod.CREDIT_CARD
    status: TransactionStatus = TransactionStatus.PENDING
    risk_score: int | None = Field(default=None, ge=0, le=100)
    is_flagged: bool = False
    risk_reasons: list[str] = []
    is_reviewed: bool = False
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    metadata: dict = Field(default_factory=dict)
    created_at: datetime | None = None

    @property
    def is_scored(self) -> bool:
        return self.risk_score is not None

    def with_score(self, result: ScoreResult) -> "Transaction":
        """Return a scored copy. Scores are assigned once and never recomputed."""
        if self.is_scored:
            raise ValueError(f"Transaction {self.transaction_id} is already scored")
        return self.model_copy(
            update={
                "risk_score": result.risk_score,
                "is_flagged": result.is_flagged,
                "risk_reasons": list(result.reasons),
                "status": (
                    TransactionStatus.FLAGGED if result.is_flagged else TransactionStatus.COMPLETED
                ),
            }
        )


class Alert(BaseModel):
    alert_id: str
    severity: AlertSeverity
    message: str
    transaction_id: str
    risk_score: int
    amount: Decimal
    customer_id: str
    reasons: list[str] = []
    created_at: datetime
    transaction: dict = Field(default_factory=dict)


class TransactionFilter(BaseModel):
    date_from: datetime | None = None
    date_to: datetime | None = None
    min_risk_score: int | None = Field(default=None, ge=0, le=100)
    flagged_only: bool = False


class RiskBucket(BaseModel):
    label: str
    risk_range: str
    min_score: int
    max_score: int
    count: int = 0


class HourlyBucket(BaseModel):
    hour: int = Field(ge=0, le=23)
    count: int = 0
    avg_risk: int = 0


class AggregateStats(BaseModel):
    total_transactions: int = 0
    flagged_transactions: int = 0
    high_risk_transactions: int = 0
    high_risk_percentage: str = "0"
    avg_risk_score: float = 0.0
    total_amount: float = 0.0
    avg_amount: float = 0.0
    risk_distribution: list[RiskBucket] = []
    hourly_pattern: list[HourlyBucket] = []
    period: dict = Field(default_factory=dict)


class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int
