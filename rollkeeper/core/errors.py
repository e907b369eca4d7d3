"""Rollout error taxonomy.

Every error carries a stable ``code`` (reported in ``RolloutResult``),
whether the call site may retry it, and the exit status it maps to when
it ends an attempt.
"""

from __future__ import annotations

from rollkeeper.models.attempt import ExitStatus


class RolloutError(RuntimeError):
    """Base class for all controller and collaborator failures."""

    code: str = "RolloutError"
    retryable: bool = False
    exit_status: ExitStatus = ExitStatus.FATAL_CONFIGURATION


class InvalidTransitionError(RuntimeError):
    """Raised when a requested attempt state transition is not valid."""


class InvalidRevisionError(RolloutError):
    """The revision identifier is empty or malformed."""

    code = "InvalidRevision"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class RegistryError(RolloutError):
    """Base for artifact registry failures."""


class RegistryUnavailableError(RegistryError):
    """The registry could not be reached; expected to recover on its own."""

    code = "RegistryUnavailable"
    retryable = True
    exit_status = ExitStatus.RETRYABLE_EXHAUSTED


class RegistryRejectedError(RegistryError):
    """The registry refused the push (auth, missing image, bad name)."""

    code = "RegistryRejected"


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class OrchestratorError(RolloutError):
    """Base for workload orchestrator failures."""


class OrchestratorUnavailableError(OrchestratorError):
    """The orchestrator API could not be reached."""

    code = "OrchestratorUnavailable"
    retryable = True
    exit_status = ExitStatus.RETRYABLE_EXHAUSTED


class WorkloadNotFoundError(OrchestratorError):
    """The named workload does not exist in the namespace."""

    code = "WorkloadNotFound"


class OrchestratorRejectedError(OrchestratorError):
    """The orchestrator refused the request (forbidden, tooling missing)."""

    code = "OrchestratorRejected"


# ---------------------------------------------------------------------------
# Verification, commit, scheduling
# ---------------------------------------------------------------------------


class VerificationTimeoutError(RolloutError):
    """The workload did not converge on the new image in time."""

    code = "VerificationTimeout"
    exit_status = ExitStatus.ROLLED_BACK


class CommitConflictError(RolloutError):
    """The manifest store changed since it was read."""

    code = "CommitConflict"
    exit_status = ExitStatus.RETRYABLE_EXHAUSTED


class ManifestCorruptError(RolloutError):
    """A stored rollout record could not be parsed."""

    code = "ManifestCorrupt"


class AttemptInProgressError(RolloutError):
    """Another attempt for the same workload is already running."""

    code = "AttemptInProgress"
    exit_status = ExitStatus.RETRYABLE_EXHAUSTED


class AttemptCancelledError(RolloutError):
    """The attempt was cancelled by an external signal."""

    code = "AttemptCancelled"
    exit_status = ExitStatus.RETRYABLE_EXHAUSTED
