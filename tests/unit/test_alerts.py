"""Tests for high-risk alert derivation."""

from src.domains.fraud.alerts import alert_severity, create_alert
from src.domains.fraud.models import AlertSeverity
from tests.conftest import make_transaction


class TestAlerts:
    def test_no_alert_for_unflagged(self):
        assert create_alert(make_transaction(risk_score=70)) is None

    def test_high_severity_below_critical(self):
        alert = create_alert(make_transaction(risk_score=84))
        assert alert is not None
        assert alert.severity == AlertSeverity.HIGH

    def test_critical_at_85(self):
        assert alert_severity(85) == AlertSeverity.CRITICAL
        assert create_alert(make_transaction(risk_score=85)).severity == AlertSeverity.CRITICAL

    def test_alert_content(self):
        event = make_transaction(amount="1234.50", risk_score=90)
        alert = create_alert(event)
        assert alert.message == "High Risk Transaction: $1234.50 at Amazon"
        assert alert.transaction_id == event.transaction_id
        assert alert.customer_id == "c0ffee01"
        assert alert.reasons == ["test"]

    def test_alert_carries_unredacted_transaction(self):
        alert = create_alert(make_transaction(risk_score=95))
        assert alert.transaction["customer"]["name"] == "Jane Doe"
        assert alert.transaction["customer"]["email"] == "jane@x.com"
