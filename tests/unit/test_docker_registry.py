"""Tests for DockerRegistry: command composition and failure classification."""

from __future__ import annotations

import subprocess
from typing import Any

import pytest

from rollkeeper.collaborators.docker import DockerRegistry, classify_registry_failure
from rollkeeper.collaborators.protocols import ArtifactRegistry
from rollkeeper.core.errors import RegistryRejectedError, RegistryUnavailableError
from rollkeeper.models.artifacts import ArtifactReference

REF = ArtifactReference(repository="localhost:5000/sample-nestjs", tag="9314b46b")


class _FakeRun:
    """Records commands and replies with scripted (returncode, stderr) pairs."""

    def __init__(self, *replies: tuple[int, str]) -> None:
        self.replies = list(replies)
        self.commands: list[list[str]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        self.commands.append(cmd)
        code, stderr = self.replies.pop(0) if self.replies else (0, "")
        return subprocess.CompletedProcess(cmd, code, stdout="", stderr=stderr)


@pytest.fixture
def fake_run(monkeypatch: pytest.MonkeyPatch):
    def install(*replies: tuple[int, str]) -> _FakeRun:
        fake = _FakeRun(*replies)
        monkeypatch.setattr("rollkeeper.collaborators.docker.subprocess.run", fake)
        return fake

    return install


class TestDockerRegistry:
    def test_satisfies_protocol(self):
        assert isinstance(DockerRegistry(), ArtifactRegistry)

    def test_push_tags_source_image_first(self, fake_run):
        fake = fake_run()
        DockerRegistry("sample-nestjs:build").push(REF)
        assert fake.commands == [
            ["docker", "tag", "sample-nestjs:build", REF.image],
            ["docker", "push", REF.image],
        ]

    def test_push_without_source_image(self, fake_run):
        fake = fake_run()
        DockerRegistry(binary="/usr/bin/docker").push(REF)
        assert fake.commands == [["/usr/bin/docker", "push", REF.image]]

    def test_auth_failure_is_rejected(self, fake_run):
        fake_run((1, "denied: requested access to the resource is denied"))
        with pytest.raises(RegistryRejectedError):
            DockerRegistry().push(REF)

    def test_network_failure_is_unavailable(self, fake_run):
        fake_run((1, "dial tcp 127.0.0.1:5000: connect: connection refused"))
        with pytest.raises(RegistryUnavailableError):
            DockerRegistry().push(REF)

    def test_missing_source_image_is_rejected(self, fake_run):
        fake_run((1, "Error response from daemon: No such image: sample-nestjs:build"))
        with pytest.raises(RegistryRejectedError):
            DockerRegistry("sample-nestjs:build").push(REF)

    def test_missing_binary_is_rejected(self, monkeypatch: pytest.MonkeyPatch):
        def missing(cmd, **kwargs):
            raise FileNotFoundError(cmd[0])

        monkeypatch.setattr("rollkeeper.collaborators.docker.subprocess.run", missing)
        with pytest.raises(RegistryRejectedError):
            DockerRegistry().push(REF)

    def test_timeout_is_unavailable(self, monkeypatch: pytest.MonkeyPatch):
        def slow(cmd, **kwargs):
            raise subprocess.TimeoutExpired(cmd, kwargs.get("timeout", 0))

        monkeypatch.setattr("rollkeeper.collaborators.docker.subprocess.run", slow)
        with pytest.raises(RegistryUnavailableError):
            DockerRegistry(timeout_seconds=1).push(REF)

    def test_exists(self, fake_run):
        fake = fake_run((0, ""), (1, "no such manifest"))
        registry = DockerRegistry()
        assert registry.exists(REF) is True
        assert registry.exists(REF) is False
        assert fake.commands[0] == ["docker", "manifest", "inspect", REF.image]


class TestClassifyRegistryFailure:
    @pytest.mark.parametrize(
        "stderr",
        ["unauthorized: authentication required", "403 Forbidden", "invalid reference format"],
    )
    def test_rejections(self, stderr: str):
        assert classify_registry_failure(stderr) is RegistryRejectedError

    def test_unknown_is_unavailable(self):
        assert classify_registry_failure("received unexpected HTTP status: 503") is RegistryUnavailableError
