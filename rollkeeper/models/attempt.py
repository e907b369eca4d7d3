"""Rollout attempt models — states, transitions, triggers and results."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field

from rollkeeper.models.artifacts import ArtifactReference


class AttemptState(str, Enum):
    """Strict state model for one rollout attempt."""

    IDLE = "idle"
    TAGGED = "tagged"
    PUSHED = "pushed"
    APPLIED = "applied"
    VERIFYING = "verifying"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


# Valid state transitions, enforced by RolloutAttempt.
# Once APPLIED, the only ways out are verification or the rollback path;
# APPLIED/VERIFYING -> FAILED without ROLLED_BACK means the revert did not happen.
VALID_TRANSITIONS: dict[AttemptState, set[AttemptState]] = {
    AttemptState.IDLE: {AttemptState.TAGGED, AttemptState.FAILED},
    AttemptState.TAGGED: {AttemptState.PUSHED, AttemptState.FAILED},
    AttemptState.PUSHED: {
        AttemptState.APPLIED,
        AttemptState.ROLLED_BACK,  # apply outcome unknown after a retryable failure
        AttemptState.FAILED,
    },
    AttemptState.APPLIED: {
        AttemptState.VERIFYING,
        AttemptState.ROLLED_BACK,
        AttemptState.FAILED,  # rollback impossible or failed
    },
    AttemptState.VERIFYING: {
        AttemptState.COMMITTED,
        AttemptState.ROLLED_BACK,
        AttemptState.FAILED,
    },
    AttemptState.ROLLED_BACK: {AttemptState.FAILED},
    AttemptState.COMMITTED: set(),  # terminal
    AttemptState.FAILED: set(),  # terminal
}

TERMINAL_STATES: frozenset[AttemptState] = frozenset(
    {AttemptState.COMMITTED, AttemptState.FAILED}
)


class ExitStatus(IntEnum):
    """Process exit status for a finished attempt."""

    SUCCESS = 0
    ROLLED_BACK = 3
    DEGRADED = 4  # manual intervention required
    RETRYABLE_EXHAUSTED = 75
    FATAL_CONFIGURATION = 78


class AttemptTransition(BaseModel):
    """Records a single state transition for the attempt's audit trail."""

    model_config = ConfigDict(frozen=True)

    from_state: AttemptState
    to_state: AttemptState
    at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    detail: str = ""


class RolloutTrigger(BaseModel):
    """An external request to roll a workload forward to a revision."""

    model_config = ConfigDict(frozen=True)

    revision: str
    workload_name: str
    namespace: str = "default"


class RolloutResult(BaseModel):
    """The single structured outcome of a finished attempt.

    Suitable for logging and alerting; ``exit_status`` maps directly to
    a process exit code.
    """

    model_config = ConfigDict(frozen=True)

    attempt_id: str
    workload_name: str
    namespace: str
    revision: str
    final_state: AttemptState
    exit_status: ExitStatus
    applied_image: ArtifactReference | None = None
    previous_image: ArtifactReference | None = None
    error: str | None = None
    error_code: str | None = None
    rolled_back: bool = False
    requires_intervention: bool = False
    transitions: list[AttemptTransition] = []
    started_at: datetime
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def succeeded(self) -> bool:
        return self.final_state == AttemptState.COMMITTED
