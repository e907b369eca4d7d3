"""Deterministic rollout attempt state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Terminal states (COMMITTED, FAILED) accept no further transitions
- Every transition recorded in the attempt's transition history
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from rollkeeper.core.errors import InvalidTransitionError
from rollkeeper.models.attempt import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    AttemptState,
    AttemptTransition,
    RolloutTrigger,
)

logger = logging.getLogger(__name__)


def new_attempt_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"ro-{ts}-{uuid.uuid4().hex[:6]}"


class RolloutAttempt:
    """Tracks the progress of one rollout through its states.

    Parameters
    ----------
    trigger:
        The request this attempt serves.
    attempt_id:
        Explicit identifier; generated when omitted.
    """

    def __init__(self, trigger: RolloutTrigger, attempt_id: str | None = None) -> None:
        self.trigger = trigger
        self.attempt_id = attempt_id or new_attempt_id()
        self.started_at = datetime.now(timezone.utc)
        self._state = AttemptState.IDLE
        self._transitions: list[AttemptTransition] = []

    @property
    def state(self) -> AttemptState:
        return self._state

    @property
    def transitions(self) -> list[AttemptTransition]:
        """A snapshot of the transitions recorded so far."""
        return list(self._transitions)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def has_visited(self, state: AttemptState) -> bool:
        """Whether the attempt has been in *state* at any point."""
        return self._state == state or any(
            t.from_state == state for t in self._transitions
        )

    def transition(self, target: AttemptState, detail: str = "") -> AttemptTransition:
        """Move to *target*, recording the transition.

        Raises ``InvalidTransitionError`` if VALID_TRANSITIONS forbids it.
        """
        current = self._state
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition attempt {self.attempt_id} from {current.value} "
                f"to {target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )

        record = AttemptTransition(from_state=current, to_state=target, detail=detail)
        self._transitions.append(record)
        self._state = target
        logger.info(
            "[%s] %s/%s: %s -> %s%s",
            self.attempt_id,
            self.trigger.namespace,
            self.trigger.workload_name,
            current.value,
            target.value,
            f" ({detail})" if detail else "",
        )
        return record
