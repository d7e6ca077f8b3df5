"""Tests for application and domain configuration."""

from src.config import Settings
from src.domains.fraud.config import FraudConfig


class TestSettings:
    def test_default_settings(self):
        settings = Settings()
        assert settings.app_name == "fraud-pulse"
        assert settings.app_version == "0.1.0"
        assert settings.port == 8000

    def test_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("APP_NAME", "test-app")
        monkeypatch.setenv("PORT", "9000")
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings()
        assert settings.app_name == "test-app"
        assert settings.port == 9000
        assert settings.debug is True

    def test_database_url_default(self):
        settings = Settings()
        assert "postgresql+asyncpg" in settings.database_url

    def test_remote_scorer_disabled_without_key(self, monkeypatch):
        monkeypatch.delenv("SCORER_API_KEY", raising=False)
        settings = Settings()
        assert settings.scorer_api_key is None
        assert settings.scorer_timeout_seconds == 3.0


class TestFraudConfig:
    def test_defaults(self):
        config = FraudConfig()
        assert config.thresholds.high == 70
        assert config.thresholds.critical == 85
        assert config.generation.interval_ms == 3000
        assert config.retention.retention_cap == 100
        assert config.retention.cleanup_every_ticks == 10
        assert config.retention.history_horizon_hours == 24

    def test_fallback_weights(self):
        weights = FraudConfig().fallback
        assert weights.base_max == 30.0
        assert weights.late_night_hours == (0, 5)
        assert weights.crypto_delta == 35

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FRAUD_GENERATION_INTERVAL_MS", "500")
        monkeypatch.setenv("FRAUD_RETENTION_CAP", "25")
        monkeypatch.setenv("FRAUD_HIGH_THRESHOLD", "60")
        config = FraudConfig.from_env()
        assert config.generation.interval_ms == 500
        assert config.retention.retention_cap == 25
        assert config.thresholds.high == 60

    def test_from_env_does_not_mutate_defaults(self, monkeypatch):
        monkeypatch.setenv("FRAUD_RETENTION_CAP", "5")
        FraudConfig.from_env()
        assert FraudConfig().retention.retention_cap == 100
