"""Collaborator contracts the rollout controller depends on.

The controller never talks to a registry, orchestrator or manifest
backend directly; any object with the matching methods satisfies these
protocols.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.deployment import RolloutRecord, WorkloadHealth


@runtime_checkable
class ArtifactRegistry(Protocol):
    """Pushes and looks up artifacts by tag."""

    def push(self, reference: ArtifactReference) -> None:
        """Publish *reference*.

        Raises ``RegistryUnavailableError`` (retryable) or
        ``RegistryRejectedError`` (fatal).
        """
        ...

    def exists(self, reference: ArtifactReference) -> bool:
        """Return ``True`` if the registry already serves *reference*."""
        ...


@runtime_checkable
class WorkloadOrchestrator(Protocol):
    """Owns the desired state of workloads and reports their health."""

    def set_desired_image(
        self, workload: str, namespace: str, reference: ArtifactReference
    ) -> None:
        """Point the workload at *reference*. Must be idempotent.

        Raises ``OrchestratorUnavailableError`` (retryable),
        ``WorkloadNotFoundError`` or ``OrchestratorRejectedError`` (fatal).
        """
        ...

    def get_health(self, workload: str, namespace: str) -> WorkloadHealth:
        """Report ready/total replicas and the image they run."""
        ...


@runtime_checkable
class ManifestStore(Protocol):
    """Versioned storage of one ``RolloutRecord`` per ``(workload, namespace)``.

    Writes are keyed by *workload* and the record's own ``namespace``.
    """

    def read(
        self, workload: str, namespace: str = "default"
    ) -> tuple[RolloutRecord | None, str]:
        """Return the current record (or ``None``) and its version token."""
        ...

    def write_if_unchanged(
        self, workload: str, record: RolloutRecord, expected_version_token: str
    ) -> None:
        """Replace the record atomically if the version token still matches.

        Raises ``CommitConflictError`` otherwise.
        """
        ...
