"""File-backed manifest store with optimistic concurrency.

Layout: {root}/{workload}.json for the ``default`` namespace and
{root}/{namespace}/{workload}.json for every other one, one
canonical-JSON ``RolloutRecord`` each.

Writes go to a temp file in the same directory and are swapped in with
``os.replace``, so readers only ever see the old or the new record. The
check-and-swap is serialized across processes by an ``fcntl.flock`` on a
sibling ``.lock`` file. The kernel drops the lock when its holder exits,
so a writer that crashed mid-commit never blocks later writers.
"""

from __future__ import annotations

import fcntl
import logging
import os
import re
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from rollkeeper.core.errors import CommitConflictError, ManifestCorruptError
from rollkeeper.core.hasher import canonical_json_bytes, version_token
from rollkeeper.models.deployment import RolloutRecord

logger = logging.getLogger(__name__)

_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
# Namespaces are DNS labels, so a namespace directory never looks like a record file.
_NAMESPACE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

DEFAULT_NAMESPACE = "default"


class FileManifestStore:
    """Stores rollout records as versioned JSON files.

    Parameters
    ----------
    root:
        Directory holding one file per workload. Created if missing.
    lock_timeout_seconds:
        How long a writer waits for another writer's lock.
    """

    def __init__(self, root: Path | str, *, lock_timeout_seconds: float = 10.0) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._lock_timeout = lock_timeout_seconds

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, workload: str, namespace: str = DEFAULT_NAMESPACE) -> Path:
        if not _NAME.match(workload):
            raise ValueError(f"Invalid workload name for a manifest file: {workload!r}")
        if namespace == DEFAULT_NAMESPACE:
            return self._root / f"{workload}.json"
        if not _NAMESPACE.match(namespace):
            raise ValueError(f"Invalid namespace for a manifest file: {namespace!r}")
        return self._root / namespace / f"{workload}.json"

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def _read_bytes(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None

    def read(
        self, workload: str, namespace: str = DEFAULT_NAMESPACE
    ) -> tuple[RolloutRecord | None, str]:
        """Return the stored record for *workload* and its version token."""
        path = self.path_for(workload, namespace)
        data = self._read_bytes(path)
        if data is None:
            return None, version_token(None)
        try:
            record = RolloutRecord.model_validate_json(data)
        except ValidationError as exc:
            raise ManifestCorruptError(f"Unreadable rollout record at {path}: {exc}") from exc
        return record, version_token(data)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write_if_unchanged(
        self, workload: str, record: RolloutRecord, expected_version_token: str
    ) -> None:
        """Atomically replace the record if nobody changed it since read."""
        path = self.path_for(workload, record.namespace)
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._exclusive(path):
            current = version_token(self._read_bytes(path))
            if current != expected_version_token:
                raise CommitConflictError(
                    f"Manifest for {record.namespace}/{workload} changed since read "
                    f"(expected {expected_version_token or '<none>'}, found {current or '<none>'})"
                )
            self._atomic_write(path, canonical_json_bytes(record.model_dump(mode="json")))
        logger.info("Recorded %s for %s in %s", record.applied_image.image, workload, path)

    def _atomic_write(self, path: Path, data: bytes) -> None:
        tmp = path.with_name(f".{path.name}.{os.getpid()}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            with open(tmp, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

    @contextmanager
    def _exclusive(self, path: Path) -> Iterator[None]:
        # The lock file is never removed: unlinking it would let two
        # writers hold locks on different inodes.
        lock_path = path.with_name(path.name + ".lock")
        deadline = time.monotonic() + self._lock_timeout
        with open(lock_path, "a+b") as fh:
            while True:
                try:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise CommitConflictError(
                            f"Timed out waiting for manifest lock {lock_path}"
                        ) from None
                    time.sleep(0.05)
            try:
                fh.seek(0)
                fh.truncate()
                fh.write(str(os.getpid()).encode("ascii"))
                fh.flush()
                yield
            finally:
                fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
