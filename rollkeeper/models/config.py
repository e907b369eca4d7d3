"""Controller configuration models, derived from ``RolloutSettings``."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from rollkeeper.config import RolloutSettings


class RetryPolicy(BaseModel):
    """Bounded exponential backoff for retryable collaborator errors."""

    model_config = ConfigDict(frozen=True)

    base_delay_seconds: float = Field(default=1.0, ge=0)
    factor: float = Field(default=2.0, ge=1)
    max_attempts: int = Field(default=5, ge=1)
    max_delay_seconds: float = Field(default=30.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the *attempt*-th failure (1-based)."""
        delay = self.base_delay_seconds * (self.factor ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


class VerificationPolicy(BaseModel):
    """How long and how often to poll workload health."""

    model_config = ConfigDict(frozen=True)

    poll_interval_seconds: float = Field(default=5.0, gt=0)
    timeout_seconds: float = Field(default=300.0, gt=0)


class ControllerConfig(BaseModel):
    """Per-controller configuration."""

    model_config = ConfigDict(frozen=True)

    repository: str = ""
    latest_alias: str = "latest"
    retry: RetryPolicy = RetryPolicy()
    verification: VerificationPolicy = VerificationPolicy()
    lock_wait_seconds: float = Field(default=0.0, ge=0)

    @classmethod
    def from_settings(cls, settings: RolloutSettings) -> ControllerConfig:
        return cls(
            repository=settings.repository,
            latest_alias=settings.latest_alias,
            retry=RetryPolicy(
                base_delay_seconds=settings.retry_base_delay_seconds,
                factor=settings.retry_factor,
                max_attempts=settings.retry_max_attempts,
                max_delay_seconds=settings.retry_max_delay_seconds,
            ),
            verification=VerificationPolicy(
                poll_interval_seconds=settings.health_poll_interval_seconds,
                timeout_seconds=settings.verification_timeout_seconds,
            ),
            lock_wait_seconds=settings.lock_wait_seconds,
        )
