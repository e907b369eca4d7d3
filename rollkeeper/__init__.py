"""rollkeeper: a self-updating rollout controller.

Advances a workload to a newly built container image (build tag ->
registry push -> orchestrator apply -> health verification -> manifest
record), with bounded retries, idempotent re-triggers, optimistic
concurrency on the manifest record and a rollback safety path.
"""

__version__ = "0.1.0"
__description__ = "Self-updating rollout controller for container workloads"

from rollkeeper.core.controller import RolloutController
from rollkeeper.models.attempt import RolloutResult, RolloutTrigger

__all__ = ["RolloutController", "RolloutResult", "RolloutTrigger", "__version__"]
