"""Deployment-side models: orchestrator intent, health, and the durable record."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from rollkeeper.models.artifacts import ArtifactReference


class DeploymentIntent(BaseModel):
    """The orchestrator's target state for one workload.

    Owned by the Workload Orchestrator; the controller only submits
    updates to ``desired_image``. ``generation`` advances only when the
    desired image actually changes.
    """

    workload_name: str
    namespace: str
    desired_image: ArtifactReference
    replicas: int = Field(default=1, ge=0)
    generation: int = 1


class WorkloadHealth(BaseModel):
    """Point-in-time rollout health reported by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    ready_replicas: int = Field(ge=0)
    total_replicas: int = Field(ge=0)
    current_image: ArtifactReference | None = None
    stale_replicas: int = Field(default=0, ge=0)  # replicas still on a previous image

    def is_converged_on(self, reference: ArtifactReference) -> bool:
        """True only when every replica is ready and running *reference*."""
        return (
            self.total_replicas > 0
            and self.ready_replicas == self.total_replicas
            and self.stale_replicas == 0
            and self.current_image == reference
        )


class RolloutRecord(BaseModel):
    """The durable record of the image last rolled out to a workload.

    One logical record per workload, overwritten on each successful
    rollout through the Manifest Store.
    """

    model_config = ConfigDict(frozen=True)

    workload_name: str
    namespace: str = "default"
    applied_image: ArtifactReference
    revision_id: str
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
