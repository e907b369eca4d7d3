"""Shared test fixtures for rollkeeper."""

from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from rollkeeper.collaborators.file_store import FileManifestStore
from rollkeeper.collaborators.memory import (
    InMemoryManifestStore,
    InMemoryOrchestrator,
    InMemoryRegistry,
)
from rollkeeper.config import RolloutSettings
from rollkeeper.core.controller import RolloutController
from rollkeeper.core.locks import WorkloadLockTable
from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.attempt import RolloutTrigger
from rollkeeper.models.config import ControllerConfig, RetryPolicy, VerificationPolicy
from rollkeeper.models.deployment import RolloutRecord

REPOSITORY = "localhost:5000/sample-nestjs"
WORKLOAD = "sample-nestjs"
NAMESPACE = "default"


class FakeClock:
    """Monotonic clock that only moves when the controller sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep ROLLKEEPER_* variables from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("ROLLKEEPER_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def initial_image() -> ArtifactReference:
    return ArtifactReference(repository=REPOSITORY, tag="00c0ffee")


@pytest.fixture
def registry() -> InMemoryRegistry:
    return InMemoryRegistry()


@pytest.fixture
def orchestrator(initial_image: ArtifactReference) -> InMemoryOrchestrator:
    """An orchestrator running the sample workload at ``initial_image``."""
    orch = InMemoryOrchestrator(converge_after=0)
    orch.register_workload(WORKLOAD, NAMESPACE, initial_image, replicas=1)
    return orch


@pytest.fixture
def store(initial_image: ArtifactReference) -> InMemoryManifestStore:
    """A manifest store already holding a record for ``initial_image``."""
    manifest = InMemoryManifestStore()
    manifest.write_if_unchanged(
        WORKLOAD,
        RolloutRecord(
            workload_name=WORKLOAD,
            namespace=NAMESPACE,
            applied_image=initial_image,
            revision_id="00c0ffee11",
        ),
        "",
    )
    return manifest


@pytest.fixture
def file_store(tmp_path: Path) -> FileManifestStore:
    return FileManifestStore(tmp_path / "manifests", lock_timeout_seconds=0.2)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller_config() -> ControllerConfig:
    return ControllerConfig(
        repository=REPOSITORY,
        retry=RetryPolicy(base_delay_seconds=1.0, factor=2.0, max_attempts=5),
        verification=VerificationPolicy(poll_interval_seconds=1.0, timeout_seconds=10.0),
    )


@pytest.fixture
def make_controller(
    registry: InMemoryRegistry,
    orchestrator: InMemoryOrchestrator,
    store: InMemoryManifestStore,
    controller_config: ControllerConfig,
    clock: FakeClock,
) -> Callable[..., RolloutController]:
    """Factory fixture: a controller over the in-memory collaborators."""

    def _factory(**overrides: Any) -> RolloutController:
        kwargs: dict[str, Any] = {
            "config": controller_config,
            "settings": RolloutSettings(),
            "lock_table": WorkloadLockTable(),
            "sleep": clock.sleep,
            "clock": clock,
        }
        collaborators = {
            "registry": overrides.pop("registry", registry),
            "orchestrator": overrides.pop("orchestrator", orchestrator),
            "manifest_store": overrides.pop("manifest_store", store),
        }
        kwargs.update(overrides)
        return RolloutController(
            collaborators["registry"],
            collaborators["orchestrator"],
            collaborators["manifest_store"],
            **kwargs,
        )

    return _factory


@pytest.fixture
def trigger() -> RolloutTrigger:
    return RolloutTrigger(revision="9314b46bxxxx", workload_name=WORKLOAD, namespace=NAMESPACE)
