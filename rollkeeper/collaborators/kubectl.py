"""Workload orchestrator backed by the ``kubectl`` CLI.

Workloads are Deployments. ``set_desired_image`` runs ``kubectl set
image``, which is a no-op when the container already runs that image.
Health is read from the Deployment's status.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any

from rollkeeper.core.errors import (
    OrchestratorRejectedError,
    OrchestratorUnavailableError,
    WorkloadNotFoundError,
)
from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.deployment import WorkloadHealth

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("notfound", "not found", "unable to find container")
_REJECTION_MARKERS = ("forbidden", "unauthorized", "must be logged in")


def health_from_deployment(doc: dict[str, Any], container: str = "") -> WorkloadHealth:
    """Build ``WorkloadHealth`` from a ``kubectl get deployment -o json`` document.

    Replicas not yet updated to the current pod template are reported as
    stale. Until the controller has observed the latest generation, no
    replica counts as ready.
    """
    spec = doc.get("spec", {})
    status = doc.get("status", {})
    metadata = doc.get("metadata", {})

    desired = int(spec.get("replicas", 1))
    existing = int(status.get("replicas", 0))
    updated = int(status.get("updatedReplicas", 0))
    ready = int(status.get("readyReplicas", 0))

    observed = int(status.get("observedGeneration", 0))
    if observed < int(metadata.get("generation", 0)):
        ready = 0

    containers = spec.get("template", {}).get("spec", {}).get("containers", [])
    image = None
    for entry in containers:
        if entry.get("name") == container:
            image = entry.get("image")
            break
    if image is None and containers:
        image = containers[0].get("image")

    return WorkloadHealth(
        ready_replicas=min(ready, updated, desired),
        total_replicas=desired,
        current_image=ArtifactReference.parse(image) if image else None,
        stale_replicas=max(existing - updated, 0),
    )


class KubectlOrchestrator:
    """Drives Deployments with kubectl.

    Parameters
    ----------
    container:
        Container whose image is managed. Defaults to the workload name,
        which is how single-container deployments are usually named.
    context:
        kubeconfig context; the current context when empty.
    """

    def __init__(
        self,
        *,
        container: str = "",
        context: str = "",
        binary: str = "kubectl",
        timeout_seconds: float = 120.0,
    ) -> None:
        self.container = container
        self.context = context
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def _run(self, namespace: str, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary]
        if self.context:
            cmd += ["--context", self.context]
        cmd += ["-n", namespace, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise OrchestratorRejectedError(f"{self.binary} not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise OrchestratorUnavailableError(
                f"{' '.join(cmd)} timed out after {self.timeout_seconds}s"
            ) from exc

        if result.returncode != 0:
            stderr = (result.stderr or result.stdout or "").strip()
            lowered = stderr.lower()
            if any(marker in lowered for marker in _NOT_FOUND_MARKERS):
                raise WorkloadNotFoundError(stderr)
            if any(marker in lowered for marker in _REJECTION_MARKERS):
                raise OrchestratorRejectedError(stderr)
            raise OrchestratorUnavailableError(
                f"kubectl exited {result.returncode}: {stderr}"
            )
        return result

    def set_desired_image(
        self, workload: str, namespace: str, reference: ArtifactReference
    ) -> None:
        container = self.container or workload
        self._run(
            namespace,
            "set", "image", f"deployment/{workload}", f"{container}={reference.image}",
        )
        logger.info("Set %s/%s %s=%s", namespace, workload, container, reference.image)

    def get_health(self, workload: str, namespace: str) -> WorkloadHealth:
        result = self._run(namespace, "get", "deployment", workload, "-o", "json")
        try:
            doc = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise OrchestratorUnavailableError(
                f"Unparseable deployment status for {namespace}/{workload}"
            ) from exc
        return health_from_deployment(doc, self.container or workload)
