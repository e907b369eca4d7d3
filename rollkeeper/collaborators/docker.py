"""Artifact registry backed by the ``docker`` CLI.

``push`` retags a locally built source image (when one is configured)
and pushes it; ``exists`` asks the registry via ``docker manifest
inspect``. CLI failures are classified from stderr into retryable and
fatal registry errors.
"""

from __future__ import annotations

import logging
import subprocess

from rollkeeper.core.errors import RegistryRejectedError, RegistryUnavailableError
from rollkeeper.models.artifacts import ArtifactReference

logger = logging.getLogger(__name__)

_REJECTION_MARKERS = (
    "denied",
    "unauthorized",
    "authentication required",
    "forbidden",
    "no such image",
    "invalid reference format",
)


def classify_registry_failure(stderr: str) -> type[RegistryRejectedError] | type[RegistryUnavailableError]:
    """Map docker CLI stderr to the registry error it represents."""
    lowered = stderr.lower()
    if any(marker in lowered for marker in _REJECTION_MARKERS):
        return RegistryRejectedError
    return RegistryUnavailableError


class DockerRegistry:
    """Pushes images with the docker CLI.

    Parameters
    ----------
    source_image:
        Locally built image to tag as each pushed reference. When
        ``None`` the reference is assumed to exist locally already.
    binary:
        docker executable name or path.
    timeout_seconds:
        Per-command timeout; a timeout counts as the registry being
        unavailable.
    """

    def __init__(
        self,
        source_image: str | None = None,
        *,
        binary: str = "docker",
        timeout_seconds: float = 120.0,
    ) -> None:
        self.source_image = source_image
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        cmd = [self.binary, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
            )
        except FileNotFoundError as exc:
            raise RegistryRejectedError(f"{self.binary} not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise RegistryUnavailableError(
                f"{' '.join(cmd)} timed out after {self.timeout_seconds}s"
            ) from exc

    def _check(self, result: subprocess.CompletedProcess[str], action: str) -> None:
        if result.returncode == 0:
            return
        stderr = (result.stderr or result.stdout or "").strip()
        error_type = classify_registry_failure(stderr)
        raise error_type(f"docker {action} failed (exit {result.returncode}): {stderr}")

    def push(self, reference: ArtifactReference) -> None:
        if self.source_image and self.source_image != reference.image:
            self._check(self._run("tag", self.source_image, reference.image), "tag")
        self._check(self._run("push", reference.image), "push")
        logger.info("Pushed %s", reference.image)

    def exists(self, reference: ArtifactReference) -> bool:
        result = self._run("manifest", "inspect", reference.image)
        return result.returncode == 0
