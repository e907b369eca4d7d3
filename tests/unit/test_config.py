"""Tests for settings, controller config and the configuration guard."""

from __future__ import annotations

from pathlib import Path

import pytest

from rollkeeper.config import RolloutSettings
from rollkeeper.core.production_guard import (
    ProductionConfigError,
    enforce_production_constraints,
)
from rollkeeper.models.config import ControllerConfig, RetryPolicy


class TestRolloutSettings:
    def test_defaults(self):
        settings = RolloutSettings()
        assert settings.environment == "development"
        assert settings.log_level == "INFO"
        assert settings.latest_alias == "latest"
        assert settings.retry_max_attempts == 5
        assert settings.lock_wait_seconds == 0.0

    def test_default_paths(self):
        settings = RolloutSettings()
        assert settings.manifest_path == Path(".rollkeeper/manifests")
        assert settings.result_log_path == Path(".rollkeeper/results")

    def test_is_production(self):
        assert RolloutSettings().is_production is False
        assert RolloutSettings(environment="production").is_production is True

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ROLLKEEPER_REPOSITORY", "registry.local:5000/app")
        monkeypatch.setenv("ROLLKEEPER_VERIFICATION_TIMEOUT_SECONDS", "42")
        settings = RolloutSettings()
        assert settings.repository == "registry.local:5000/app"
        assert settings.verification_timeout_seconds == 42.0


class TestControllerConfig:
    def test_from_settings(self):
        settings = RolloutSettings(
            repository="registry.local:5000/app",
            retry_base_delay_seconds=0.5,
            retry_max_attempts=3,
            health_poll_interval_seconds=2,
            verification_timeout_seconds=60,
            lock_wait_seconds=1.5,
        )
        config = ControllerConfig.from_settings(settings)
        assert config.repository == "registry.local:5000/app"
        assert config.retry.base_delay_seconds == 0.5
        assert config.retry.max_attempts == 3
        assert config.verification.poll_interval_seconds == 2
        assert config.verification.timeout_seconds == 60
        assert config.lock_wait_seconds == 1.5

    def test_retry_delays_are_bounded(self):
        policy = RetryPolicy(base_delay_seconds=1, factor=2, max_attempts=10, max_delay_seconds=5)
        assert [policy.delay_for(n) for n in range(1, 6)] == [1, 2, 4, 5, 5]

    def test_invalid_retry_policy(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestConfigurationGuard:
    def test_development_passes(self):
        enforce_production_constraints(RolloutSettings())

    def test_production_with_repository_passes(self):
        enforce_production_constraints(
            RolloutSettings(environment="production", repository="registry.local/app")
        )

    def test_production_requires_repository(self):
        with pytest.raises(ProductionConfigError, match="repository"):
            enforce_production_constraints(RolloutSettings(environment="production"))

    def test_production_rejects_debug(self):
        settings = RolloutSettings(
            environment="production", repository="registry.local/app", debug=True
        )
        with pytest.raises(ProductionConfigError, match="debug"):
            enforce_production_constraints(settings)

    def test_poll_interval_must_be_below_timeout(self):
        settings = RolloutSettings(
            health_poll_interval_seconds=30, verification_timeout_seconds=30
        )
        with pytest.raises(ProductionConfigError, match="health_poll_interval_seconds"):
            enforce_production_constraints(settings)

    def test_all_violations_reported(self):
        settings = RolloutSettings(
            environment="production",
            debug=True,
            health_poll_interval_seconds=600,
        )
        with pytest.raises(ProductionConfigError) as exc_info:
            enforce_production_constraints(settings)
        message = str(exc_info.value)
        assert "debug" in message
        assert "repository" in message
        assert "health_poll_interval_seconds" in message
