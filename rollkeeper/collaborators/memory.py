"""In-memory collaborator backends.

Suitable for the ``demo`` command and for tests; failures and health
convergence can be scripted.
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from rollkeeper.core.errors import (
    CommitConflictError,
    RolloutError,
    WorkloadNotFoundError,
)
from rollkeeper.core.hasher import canonical_json_bytes, version_token
from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.deployment import DeploymentIntent, RolloutRecord, WorkloadHealth

logger = logging.getLogger(__name__)


class InMemoryRegistry:
    """A registry that keeps pushed references in a set.

    ``fail_next`` queues errors raised by upcoming pushes, one per call;
    ``fail_always`` makes every push raise a fresh copy of an error.
    """

    def __init__(self) -> None:
        self.pushed: set[ArtifactReference] = set()
        self.push_calls: list[ArtifactReference] = []
        self._pending_failures: deque[RolloutError] = deque()
        self._always: type[RolloutError] | None = None

    def fail_next(self, *errors: RolloutError) -> None:
        self._pending_failures.extend(errors)

    def fail_always(self, error_type: type[RolloutError] | None) -> None:
        self._always = error_type

    def push(self, reference: ArtifactReference) -> None:
        self.push_calls.append(reference)
        if self._always is not None:
            raise self._always(f"push of {reference.image} failed")
        if self._pending_failures:
            raise self._pending_failures.popleft()
        self.pushed.add(reference)

    def exists(self, reference: ArtifactReference) -> bool:
        return reference in self.pushed


class InMemoryOrchestrator:
    """A single-cluster orchestrator keeping ``DeploymentIntent``s in a dict.

    Health convergence is scripted per workload with ``converge_after``:
    ``0`` converges on the first poll, ``n`` after *n* non-converged polls,
    ``None`` never converges.
    """

    def __init__(self, *, converge_after: int | None = 0) -> None:
        self._intents: dict[tuple[str, str], DeploymentIntent] = {}
        self._running: dict[tuple[str, str], ArtifactReference] = {}
        self._polls: dict[tuple[str, str], int] = {}
        self._lock = threading.Lock()
        self.converge_after = converge_after
        self.apply_calls: list[tuple[str, str, ArtifactReference]] = []
        self.health_calls = 0
        self._apply_failures: deque[RolloutError] = deque()
        self._health_failures: deque[RolloutError] = deque()

    # ------------------------------------------------------------------
    # Test/demo helpers
    # ------------------------------------------------------------------

    def register_workload(
        self,
        workload: str,
        namespace: str,
        image: ArtifactReference,
        replicas: int = 1,
    ) -> DeploymentIntent:
        intent = DeploymentIntent(
            workload_name=workload,
            namespace=namespace,
            desired_image=image,
            replicas=replicas,
        )
        self._intents[(namespace, workload)] = intent
        self._running[(namespace, workload)] = image
        return intent

    def intent(self, workload: str, namespace: str) -> DeploymentIntent:
        try:
            return self._intents[(namespace, workload)]
        except KeyError:
            raise WorkloadNotFoundError(
                f"Deployment {namespace}/{workload} not found"
            ) from None

    def fail_next_apply(self, *errors: RolloutError) -> None:
        self._apply_failures.extend(errors)

    def fail_next_health(self, *errors: RolloutError) -> None:
        self._health_failures.extend(errors)

    # ------------------------------------------------------------------
    # WorkloadOrchestrator protocol
    # ------------------------------------------------------------------

    def set_desired_image(
        self, workload: str, namespace: str, reference: ArtifactReference
    ) -> None:
        self.apply_calls.append((workload, namespace, reference))
        if self._apply_failures:
            raise self._apply_failures.popleft()
        with self._lock:
            key = (namespace, workload)
            current = self.intent(workload, namespace)
            if current.desired_image == reference:
                return
            self._intents[key] = current.model_copy(
                update={
                    "desired_image": reference,
                    "generation": current.generation + 1,
                }
            )
            self._polls[key] = 0
            logger.debug("%s/%s desired image -> %s", namespace, workload, reference.image)

    def get_health(self, workload: str, namespace: str) -> WorkloadHealth:
        self.health_calls += 1
        if self._health_failures:
            raise self._health_failures.popleft()
        with self._lock:
            key = (namespace, workload)
            intent = self.intent(workload, namespace)
            polls = self._polls.get(key, 0)
            self._polls[key] = polls + 1

            if self._running[key] != intent.desired_image:
                if self.converge_after is not None and polls >= self.converge_after:
                    self._running[key] = intent.desired_image

            if self._running[key] == intent.desired_image:
                return WorkloadHealth(
                    ready_replicas=intent.replicas,
                    total_replicas=intent.replicas,
                    current_image=intent.desired_image,
                )
            return WorkloadHealth(
                ready_replicas=0,
                total_replicas=intent.replicas,
                current_image=intent.desired_image,
                stale_replicas=intent.replicas,
            )


class InMemoryManifestStore:
    """Manifest store keeping canonical record bytes per ``(namespace, workload)``."""

    def __init__(self) -> None:
        self._data: dict[tuple[str, str], bytes] = {}
        self._lock = threading.Lock()
        self.write_calls = 0

    def read(
        self, workload: str, namespace: str = "default"
    ) -> tuple[RolloutRecord | None, str]:
        with self._lock:
            data = self._data.get((namespace, workload))
        if data is None:
            return None, version_token(None)
        return RolloutRecord.model_validate_json(data), version_token(data)

    def write_if_unchanged(
        self, workload: str, record: RolloutRecord, expected_version_token: str
    ) -> None:
        key = (record.namespace, workload)
        with self._lock:
            self.write_calls += 1
            current = version_token(self._data.get(key))
            if current != expected_version_token:
                raise CommitConflictError(
                    f"Manifest for {record.namespace}/{workload} changed since read"
                )
            self._data[key] = canonical_json_bytes(record.model_dump(mode="json"))
