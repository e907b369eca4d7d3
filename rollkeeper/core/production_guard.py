"""Configuration guard — enforces hard constraints before any rollout.

The guard runs once at controller construction and fails hard
(raises ``ProductionConfigError``) if any constraint is violated.
"""

from __future__ import annotations

import logging

from rollkeeper.config import RolloutSettings

logger = logging.getLogger(__name__)


class ProductionConfigError(RuntimeError):
    """Raised when configuration constraints are violated.

    The controller cannot safely run with the current configuration;
    the process should exit.
    """


def enforce_production_constraints(settings: RolloutSettings) -> None:
    """Validate rollout-critical configuration constraints.

    Constraints enforced
    --------------------
    1. (always) The health poll interval is shorter than the verification
       timeout, so verification gets more than one look at the workload.
    2. (production) Debug mode must be disabled.
    3. (production) An artifact repository must be configured.

    Raises
    ------
    ProductionConfigError
        Listing every violated constraint at once.
    """
    violations: list[str] = []

    if settings.health_poll_interval_seconds >= settings.verification_timeout_seconds:
        violations.append(
            "health_poll_interval_seconds must be smaller than "
            "verification_timeout_seconds."
        )

    if settings.is_production:
        if settings.debug:
            violations.append(
                "debug=True is not allowed in production. Set ROLLKEEPER_DEBUG=false."
            )
        if not settings.repository:
            violations.append(
                "An artifact repository is required in production. "
                "Set ROLLKEEPER_REPOSITORY."
            )

    if violations:
        msg = "Configuration guard failed.\n" + "\n".join(f"  - {v}" for v in violations)
        logger.critical(msg)
        raise ProductionConfigError(msg)

    logger.debug("Configuration guard passed (environment=%s).", settings.environment)
