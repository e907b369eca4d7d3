"""Environment-driven settings for the rollout controller.

Centralized config using pydantic-settings. Reads from a .env file and
ROLLKEEPER_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class RolloutSettings(BaseSettings):
    """Controller settings with environment variable overrides.

    All settings can be overridden via ROLLKEEPER_* environment variables
    or a .env file in the working directory.

    Examples
    --------
    Override via environment::

        export ROLLKEEPER_REPOSITORY=registry.local:5000/sample-nestjs
        export ROLLKEEPER_VERIFICATION_TIMEOUT_SECONDS=120
        export ROLLKEEPER_LOG_LEVEL=DEBUG

    Or via .env file::

        ROLLKEEPER_ENVIRONMENT=production
        ROLLKEEPER_KUBECTL_CONTEXT=docker-desktop
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ROLLKEEPER_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Artifact naming
    repository: str = ""
    latest_alias: str = "latest"

    # Storage paths
    manifest_path: Path = Path(".rollkeeper/manifests")
    result_log_path: Path = Path(".rollkeeper/results")

    # Retry policy for registry and orchestrator calls
    retry_base_delay_seconds: float = 1.0
    retry_factor: float = 2.0
    retry_max_attempts: int = 5
    retry_max_delay_seconds: float = 30.0

    # Health verification
    health_poll_interval_seconds: float = 5.0
    verification_timeout_seconds: float = 300.0

    # 0 rejects a concurrent trigger immediately; >0 queues it that long
    lock_wait_seconds: float = 0.0

    # External tooling
    docker_binary: str = "docker"
    kubectl_binary: str = "kubectl"
    kubectl_context: str = ""
    kubectl_container: str = ""
    command_timeout_seconds: float = 120.0

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"
