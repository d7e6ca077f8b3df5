"""High-risk alert derivation for the live channel."""

import uuid
from datetime import UTC, datetime

import structlog

from .config import FraudConfig, default_config
from .models import Alert, AlertSeverity, Transaction

logger = structlog.get_logger()


def alert_severity(risk_score: int, config: FraudConfig | None = None) -> AlertSeverity:
    config = config or default_config
    if risk_score >= config.thresholds.critical:
        return AlertSeverity.CRITICAL
    return AlertSeverity.HIGH


def create_alert(event: Transaction, config: FraudConfig | None = None) -> Alert | None:
    """Build an alert for a flagged transaction; None for anything else.

    Alerts carry the full, unredacted transaction.
    """
    if not event.is_flagged or event.risk_score is None:
        return None

    severity = alert_severity(event.risk_score, config)
    alert = Alert(
        alert_id=str(uuid.uuid4()),
        severity=severity,
        message=f"High Risk Transaction: ${event.amount} at {event.merchant}",
        transaction_id=event.transaction_id,
        risk_score=event.risk_score,
        amount=event.amount,
        customer_id=event.customer.id,
        reasons=list(event.risk_reasons),
        created_at=datetime.now(UTC),
        transaction=event.model_dump(mode="json"),
    )

    logger.warning(
        "fraud_alert_created",
        alert_id=alert.alert_id,
        transaction_id=event.transaction_id,
        risk_score=event.risk_score,
        severity=severity.value,
    )
    return alert
