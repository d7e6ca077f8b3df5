"""Transaction risk domain."""

from .alerts import create_alert
from .config import FraudConfig, default_config
from .errors import (
    AlreadyReviewed,
    AuthenticationRequired,
    AuthorizationDenied,
    InvalidQuery,
    PipelineError,
    StorageError,
    TransactionNotFound,
    TransientScoringFailure,
)
from .models import AggregateStats, Alert, Principal, Role, ScoreResult, Transaction
from .redaction import redact
from .scorer import FallbackScorer, RiskScorer
from .stats import StatsAggregator
from .store import TransactionStore

__all__ = [
    "AggregateStats",
    "Alert",
    "AlreadyReviewed",
    "AuthenticationRequired",
    "AuthorizationDenied",
    "FallbackScorer",
    "FraudConfig",
    "InvalidQuery",
    "PipelineError",
    "Principal",
    "RiskScorer",
    "Role",
    "ScoreResult",
    "StatsAggregator",
    "StorageError",
    "Transaction",
    "TransactionNotFound",
    "TransactionStore",
    "TransientScoringFailure",
    "create_alert",
    "default_config",
    "redact",
]
