"""Pydantic data models for rollkeeper."""

from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.attempt import (
    VALID_TRANSITIONS,
    AttemptState,
    AttemptTransition,
    ExitStatus,
    RolloutResult,
    RolloutTrigger,
)
from rollkeeper.models.config import ControllerConfig, RetryPolicy, VerificationPolicy
from rollkeeper.models.deployment import DeploymentIntent, RolloutRecord, WorkloadHealth

__all__ = [
    "ArtifactReference",
    "AttemptState",
    "AttemptTransition",
    "ControllerConfig",
    "DeploymentIntent",
    "ExitStatus",
    "RetryPolicy",
    "RolloutRecord",
    "RolloutResult",
    "RolloutTrigger",
    "VALID_TRANSITIONS",
    "VerificationPolicy",
    "WorkloadHealth",
]
