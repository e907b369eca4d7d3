"""Result log — writes each ``RolloutResult`` to a local JSON file.

Layout: {base_path}/{workload}/{attempt_id}.json
"""

from __future__ import annotations

import logging
from pathlib import Path

from rollkeeper.core.hasher import canonical_json_bytes
from rollkeeper.models.attempt import RolloutResult

logger = logging.getLogger(__name__)


class ResultLog:
    """Durable record of finished attempts, one canonical-JSON file each.

    Parameters
    ----------
    base_path:
        Root directory for result files. Defaults to ``.rollkeeper/results``.
    """

    def __init__(self, base_path: Path | str | None = None) -> None:
        self._base = Path(base_path) if base_path else Path(".rollkeeper/results")
        self._base.mkdir(parents=True, exist_ok=True)

    def append(self, result: RolloutResult) -> Path:
        target_dir = self._base / result.workload_name
        target_dir.mkdir(parents=True, exist_ok=True)
        target_file = target_dir / f"{result.attempt_id}.json"
        target_file.write_bytes(canonical_json_bytes(result.model_dump(mode="json")))
        logger.debug("ResultLog: wrote %s to %s", result.attempt_id, target_file)
        return target_file

    def list_results(self, workload: str) -> list[RolloutResult]:
        """All recorded results for *workload*, oldest first."""
        workload_dir = self._base / workload
        if not workload_dir.exists():
            return []
        results = [
            RolloutResult.model_validate_json(path.read_bytes())
            for path in workload_dir.glob("*.json")
        ]
        return sorted(results, key=lambda r: r.started_at)

    def latest(self, workload: str) -> RolloutResult | None:
        results = self.list_results(workload)
        return results[-1] if results else None
