"""Fraud pipeline configuration with sensible defaults."""

import os
from dataclasses import dataclass, field


@dataclass
class RiskThresholds:
    high: int = 70
    critical: int = 85


@dataclass
class FallbackWeights:
    base_max: float = 30.0
    high_amount_min: float = 1_000.0
    high_amount_delta: int = 30
    very_high_amount_min: float = 5_000.0
    very_high_amount_delta: int = 30
    new_customer_delta: int = 20
    late_night_hours: tuple[int, int] = (0, 5)
    late_night_delta: int = 25
    crypto_delta: int = 35
    cosmetic_reason_probability: float = 0.3


@dataclass
class GenerationSettings:
    interval_ms: int = 3000
    new_customer_probability: float = 0.2
    returning_customer_rate: float = 0.7
    amount_anomaly_probability: float = 0.10
    amount_anomaly_multiplier: int = 10
    location_anomaly_probability: float = 0.05
    high_risk_location: str = "Lagos, Nigeria"
    max_tracked_customers: int = 10_000


@dataclass
class RetentionSettings:
    retention_cap: int = 100
    cleanup_every_ticks: int = 10
    history_horizon_hours: int = 24
    history_sweep_every_ticks: int = 100


@dataclass
class FraudConfig:
    thresholds: RiskThresholds = field(default_factory=RiskThresholds)
    fallback: FallbackWeights = field(default_factory=FallbackWeights)
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    retention: RetentionSettings = field(default_factory=RetentionSettings)

    @classmethod
    def from_env(cls) -> "FraudConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Threshold overrides
        if v := os.getenv("FRAUD_HIGH_THRESHOLD"):
            config.thresholds.high = int(v)
        if v := os.getenv("FRAUD_CRITICAL_THRESHOLD"):
            config.thresholds.critical = int(v)

        # Generation overrides
        if v := os.getenv("FRAUD_GENERATION_INTERVAL_MS"):
            config.generation.interval_ms = int(v)
        if v := os.getenv("FRAUD_NEW_CUSTOMER_PROBABILITY"):
            config.generation.new_customer_probability = float(v)

        # Retention overrides
        if v := os.getenv("FRAUD_RETENTION_CAP"):
            config.retention.retention_cap = int(v)
        if v := os.getenv("FRAUD_CLEANUP_EVERY_TICKS"):
            config.retention.cleanup_every_ticks = int(v)
        if v := os.getenv("FRAUD_HISTORY_HORIZON_HOURS"):
            config.retention.history_horizon_hours = int(v)

        return config


# Module-level default instance
default_config = FraudConfig()
