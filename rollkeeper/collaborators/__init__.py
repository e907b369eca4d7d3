"""Collaborator contracts and backends: registry, orchestrator, manifest store."""

from rollkeeper.collaborators.docker import DockerRegistry
from rollkeeper.collaborators.file_store import FileManifestStore
from rollkeeper.collaborators.kubectl import KubectlOrchestrator
from rollkeeper.collaborators.memory import (
    InMemoryManifestStore,
    InMemoryOrchestrator,
    InMemoryRegistry,
)
from rollkeeper.collaborators.protocols import (
    ArtifactRegistry,
    ManifestStore,
    WorkloadOrchestrator,
)

__all__ = [
    "ArtifactRegistry",
    "DockerRegistry",
    "FileManifestStore",
    "InMemoryManifestStore",
    "InMemoryOrchestrator",
    "InMemoryRegistry",
    "KubectlOrchestrator",
    "ManifestStore",
    "WorkloadOrchestrator",
]
