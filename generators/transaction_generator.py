"""Live payment event source with anomaly injection and customer history."""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from src.domains.fraud.config import GenerationSettings
from src.domains.fraud.models import Customer, PaymentMethod, Transaction, TransactionStatus

from .base import BaseGenerator
from .utils.catalogs import AMOUNT_TIERS, BROWSERS, DEVICES, LOCATIONS, MERCHANTS
from .utils.distributions import numeric_suffix, tiered_amount, to_cents


@dataclass
class CustomerHistory:
    first_seen: datetime
    name: str
    email: str
    transaction_count: int = 0
    total_spent: Decimal = field(default_factory=lambda: Decimal("0.00"))


class TransactionGenerator(BaseGenerator):
    """Produces one unscored transaction per ``next()`` call.

    Config keys (all optional) override the catalogs and the rates from
    ``GenerationSettings``: ``merchants``, ``locations``, ``payment_methods``,
    ``amount_tiers``, ``new_customer_probability``, ``returning_customer_rate``,
    ``amount_anomaly_probability``, ``amount_anomaly_multiplier``,
    ``location_anomaly_probability``, ``high_risk_location``,
    ``max_tracked_customers``.
    """

    def __init__(self, *args, settings: GenerationSettings | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        defaults = settings or GenerationSettings()

        self.merchants: list[str] = self._setting("merchants", MERCHANTS)
        self.locations: list[str] = self._setting("locations", LOCATIONS)
        self.payment_methods: list[PaymentMethod] = [
            PaymentMethod(m) for m in self._setting("payment_methods", list(PaymentMethod))
        ]
        self.amount_tiers = [tuple(t) for t in self._setting("amount_tiers", AMOUNT_TIERS)]

        self.new_customer_probability = self._setting(
            "new_customer_probability", defaults.new_customer_probability
        )
        self.returning_customer_rate = self._setting(
            "returning_customer_rate", defaults.returning_customer_rate
        )
        self.amount_anomaly_probability = self._setting(
            "amount_anomaly_probability", defaults.amount_anomaly_probability
        )
        self.amount_anomaly_multiplier = self._setting(
            "amount_anomaly_multiplier", defaults.amount_anomaly_multiplier
        )
        self.location_anomaly_probability = self._setting(
            "location_anomaly_probability", defaults.location_anomaly_probability
        )
        self.high_risk_location = self._setting("high_risk_location", defaults.high_risk_location)
        self.max_tracked_customers = self._setting(
            "max_tracked_customers", defaults.max_tracked_customers
        )

        # Insertion-ordered so the bound drops the oldest customers first
        self.customer_history: OrderedDict[str, CustomerHistory] = OrderedDict()
        self._ids_this_ms: tuple[int, set[str]] = (0, set())

    def next(self) -> Transaction:
        now = self.clock()
        customer_id, history = self._resolve_customer(now)
        is_new = history.transaction_count == 0 or (
            self.rng.random() < self.new_customer_probability
        )

        amount = tiered_amount(self.rng, self.amount_tiers)
        merchant = self.rng.choice(self.merchants)
        payment_method = self.rng.choice(self.payment_methods)
        location = self.rng.choice(self.locations)

        if self.rng.random() < self.amount_anomaly_probability:
            amount = to_cents(amount * self.amount_anomaly_multiplier)
        if self.rng.random() < self.location_anomaly_probability:
            location = self.high_risk_location

        history.transaction_count += 1
        history.total_spent += amount

        return Transaction(
            transaction_id=self._transaction_id(now),
            timestamp=now,
            amount=amount,
            currency="USD",
            customer=Customer(
                id=customer_id,
                name=history.name,
                email=history.email,
                location=location,
                is_new=is_new,
            ),
            merchant=merchant,
            payment_method=payment_method,
            status=TransactionStatus.PENDING,
            metadata={
                "device": self.rng.choice(DEVICES),
                "browser": self.rng.choice(BROWSERS),
                "ip": self.fake.ipv4(),
            },
        )

    def generate(self, count: int) -> list[Transaction]:
        return [self.next() for _ in range(count)]

    def cleanup_history(self, hours: int = 24, now: datetime | None = None) -> int:
        """Drop customers first seen more than ``hours`` ago. Returns the number dropped."""
        cutoff = (now or self.clock()) - timedelta(hours=hours)
        stale = [cid for cid, h in self.customer_history.items() if h.first_seen < cutoff]
        for cid in stale:
            del self.customer_history[cid]
        return len(stale)

    def _resolve_customer(self, now: datetime) -> tuple[str, CustomerHistory]:
        if self.customer_history and self.rng.random() < self.returning_customer_rate:
            customer_id = self.rng.choice(list(self.customer_history))
            return customer_id, self.customer_history[customer_id]

        customer_id = self._short_id()
        while customer_id in self.customer_history:
            customer_id = self._short_id()
        history = CustomerHistory(
            first_seen=now,
            name=self.fake.name(),
            email=self.fake.email().lower(),
        )
        self.customer_history[customer_id] = history
        while len(self.customer_history) > self.max_tracked_customers:
            self.customer_history.popitem(last=False)
        return customer_id, history

    def _transaction_id(self, now: datetime) -> str:
        millis = int(now.timestamp() * 1000)
        current_ms, issued = self._ids_this_ms
        if current_ms != millis:
            issued = set()
            self._ids_this_ms = (millis, issued)

        transaction_id = f"TXN{millis}{numeric_suffix(self.rng)}"
        while transaction_id in issued:
            transaction_id = f"TXN{millis}{numeric_suffix(self.rng)}"
        issued.add(transaction_id)
        return transaction_id
