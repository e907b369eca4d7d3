"""Rollout controller — the central coordinator for one rollout attempt.

The controller wires the Artifact Registry, Workload Orchestrator and
Manifest Store together and walks a ``RolloutAttempt`` through

    IDLE -> TAGGED -> PUSHED -> APPLIED -> VERIFYING -> COMMITTED

taking the rollback path when verification does not converge, and
producing exactly one ``RolloutResult`` per attempt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from rollkeeper.collaborators.protocols import (
    ArtifactRegistry,
    ManifestStore,
    WorkloadOrchestrator,
)
from rollkeeper.config import RolloutSettings
from rollkeeper.core.attempt_machine import RolloutAttempt
from rollkeeper.core.errors import (
    AttemptCancelledError,
    CommitConflictError,
    RolloutError,
    VerificationTimeoutError,
)
from rollkeeper.core.locks import DEFAULT_LOCK_TABLE, CancellationToken, WorkloadLockTable
from rollkeeper.core.production_guard import enforce_production_constraints
from rollkeeper.core.result_log import ResultLog
from rollkeeper.core.retry import call_with_backoff
from rollkeeper.core.tagging import reference_for
from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.attempt import AttemptState, ExitStatus, RolloutResult, RolloutTrigger
from rollkeeper.models.config import ControllerConfig
from rollkeeper.models.deployment import RolloutRecord, WorkloadHealth

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RolloutController:
    """Advances workloads to newly built artifacts, safely.

    Parameters
    ----------
    registry, orchestrator, manifest_store:
        The external collaborators (see ``rollkeeper.collaborators``).
    config:
        Controller configuration. Built from *settings* if not provided.
    settings:
        Environment settings; validated by the configuration guard.
    lock_table:
        In-flight table shared by controllers of this process.
    result_log:
        When given, every result is also written there.
    sleep, clock:
        Injection points for waiting and measuring time. By default the
        controller waits on the attempt's cancellation token, so a
        cancel wakes it up early.
    """

    def __init__(
        self,
        registry: ArtifactRegistry,
        orchestrator: WorkloadOrchestrator,
        manifest_store: ManifestStore,
        *,
        config: ControllerConfig | None = None,
        settings: RolloutSettings | None = None,
        lock_table: WorkloadLockTable | None = None,
        result_log: ResultLog | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings or RolloutSettings()
        enforce_production_constraints(self._settings)
        self.config = config or ControllerConfig.from_settings(self._settings)
        if not self.config.repository:
            raise ValueError(
                "An artifact repository must be configured (ROLLKEEPER_REPOSITORY)."
            )

        self.registry = registry
        self.orchestrator = orchestrator
        self.manifest_store = manifest_store
        self.lock_table = lock_table or DEFAULT_LOCK_TABLE
        self.result_log = result_log
        self._sleep = sleep
        self._clock = clock

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(
        self,
        trigger: RolloutTrigger,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> RolloutResult:
        """Run one rollout attempt for *trigger* and return its result.

        Raises ``AttemptInProgressError`` without starting an attempt when
        another one for the same workload is in flight.
        """
        token = cancel_token or CancellationToken()
        with self.lock_table.claim(
            trigger.workload_name,
            trigger.namespace,
            wait_seconds=self.config.lock_wait_seconds,
        ):
            attempt = RolloutAttempt(trigger)
            result = self._execute(attempt, token)

        if self.result_log is not None:
            self.result_log.append(result)

        if result.succeeded:
            logger.info(
                "[%s] %s/%s committed %s",
                result.attempt_id, result.namespace, result.workload_name,
                result.applied_image.image if result.applied_image else "-",
            )
        else:
            logger.error(
                "[%s] %s/%s ended %s (%s): %s%s",
                result.attempt_id, result.namespace, result.workload_name,
                result.final_state.value, result.error_code, result.error,
                "; manual intervention required" if result.requires_intervention else "",
            )
        return result

    # ------------------------------------------------------------------
    # Sequencing
    # ------------------------------------------------------------------

    def _execute(self, attempt: RolloutAttempt, token: CancellationToken) -> RolloutResult:
        trigger = attempt.trigger
        workload, namespace = trigger.workload_name, trigger.namespace

        # IDLE -> TAGGED -> PUSHED
        try:
            self._check_cancelled(token, attempt)
            record, version = self.manifest_store.read(workload, namespace)
            reference = reference_for(self.config.repository, trigger.revision)
            attempt.transition(AttemptState.TAGGED, reference.image)

            self._check_cancelled(token, attempt)
            self._push(reference, token)
            attempt.transition(AttemptState.PUSHED)

            self._check_cancelled(token, attempt)
            previous = self._rollback_target(record, workload, namespace, token)
        except RolloutError as exc:
            attempt.transition(AttemptState.FAILED, exc.code)
            return self._finish(attempt, error=exc)

        # PUSHED -> APPLIED. A retryable failure may still have reached the
        # orchestrator, so from then on every exit goes through the
        # rollback path.
        ambiguous = False

        def apply() -> None:
            nonlocal ambiguous
            try:
                self.orchestrator.set_desired_image(workload, namespace, reference)
            except RolloutError as exc:
                ambiguous = ambiguous or exc.retryable
                raise

        try:
            self._with_retry(apply, f"apply {reference.image} to {namespace}/{workload}", token)
        except RolloutError as exc:
            if ambiguous:
                return self._roll_back(attempt, reference, previous, exc)
            attempt.transition(AttemptState.FAILED, exc.code)
            return self._finish(attempt, error=exc)
        attempt.transition(AttemptState.APPLIED, reference.image)

        if token.cancelled:
            return self._roll_back(
                attempt, reference, previous, AttemptCancelledError("Cancelled after apply")
            )

        attempt.transition(AttemptState.VERIFYING)
        try:
            self._await_convergence(workload, namespace, reference, token)
        except RolloutError as exc:
            return self._roll_back(attempt, reference, previous, exc)

        return self._commit(attempt, reference, previous, version)

    def _push(self, reference: ArtifactReference, token: CancellationToken) -> None:
        """Push the revision tag (unless already present) and the floating alias."""
        already = self._with_retry(
            lambda: self.registry.exists(reference), f"look up {reference.image}", token
        )
        if already:
            logger.info("%s already in registry; skipping push", reference.image)
        else:
            self._with_retry(
                lambda: self.registry.push(reference), f"push {reference.image}", token
            )

        alias = reference.with_tag(self.config.latest_alias)
        if alias != reference:
            self._with_retry(lambda: self.registry.push(alias), f"push {alias.image}", token)

    def _rollback_target(
        self,
        record: RolloutRecord | None,
        workload: str,
        namespace: str,
        token: CancellationToken,
    ) -> ArtifactReference | None:
        """The image to restore if verification fails.

        The recorded image wins; for a workload without a record in this
        namespace the orchestrator's current image is used.
        """
        if record is not None and record.namespace == namespace:
            return record.applied_image
        if record is not None:
            logger.warning(
                "Ignoring record for %s/%s found under namespace %s",
                namespace, workload, record.namespace,
            )
        health: WorkloadHealth = self._with_retry(
            lambda: self.orchestrator.get_health(workload, namespace),
            f"read health of {namespace}/{workload}",
            token,
        )
        return health.current_image

    def _await_convergence(
        self,
        workload: str,
        namespace: str,
        reference: ArtifactReference,
        token: CancellationToken,
    ) -> WorkloadHealth:
        """Poll health until every replica is ready on *reference*.

        Raises ``VerificationTimeoutError`` once the timeout elapses and
        ``AttemptCancelledError`` if cancelled between polls.
        """
        policy = self.config.verification
        deadline = self._clock() + policy.timeout_seconds
        polls = 0
        while True:
            polls += 1
            try:
                health = self.orchestrator.get_health(workload, namespace)
            except RolloutError as exc:
                if not exc.retryable:
                    raise
                logger.warning("Health poll %d for %s/%s failed: %s", polls, namespace, workload, exc)
            else:
                if health.is_converged_on(reference):
                    logger.info(
                        "%s/%s converged on %s (%d/%d ready) after %d poll(s)",
                        namespace, workload, reference.image,
                        health.ready_replicas, health.total_replicas, polls,
                    )
                    return health
                logger.info(
                    "%s/%s: %d/%d ready, %d stale, image %s",
                    namespace, workload, health.ready_replicas, health.total_replicas,
                    health.stale_replicas,
                    health.current_image.image if health.current_image else "?",
                )

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise VerificationTimeoutError(
                    f"{namespace}/{workload} did not converge on {reference.image} "
                    f"within {policy.timeout_seconds}s"
                )
            self._pause(min(policy.poll_interval_seconds, remaining), token)
            if token.cancelled:
                raise AttemptCancelledError("Cancelled during verification")

    def _roll_back(
        self,
        attempt: RolloutAttempt,
        reference: ArtifactReference,
        previous: ArtifactReference | None,
        cause: RolloutError,
    ) -> RolloutResult:
        """Best-effort revert of the desired image, then FAILED."""
        workload, namespace = attempt.trigger.workload_name, attempt.trigger.namespace

        if previous is None:
            logger.error(
                "No previous image known for %s/%s; cannot roll back from %s",
                namespace, workload, reference.image,
            )
            attempt.transition(AttemptState.FAILED, f"{cause.code}; no rollback target")
            return self._finish(attempt, error=cause, requires_intervention=True)

        try:
            # Cancellation must not abort the safety action itself.
            self._with_retry(
                lambda: self.orchestrator.set_desired_image(workload, namespace, previous),
                f"revert {namespace}/{workload} to {previous.image}",
                CancellationToken(),
            )
        except RolloutError as exc:
            logger.error(
                "Rollback of %s/%s to %s failed: %s", namespace, workload, previous.image, exc
            )
            attempt.transition(AttemptState.FAILED, f"{cause.code}; rollback failed: {exc.code}")
            return self._finish(attempt, error=cause, requires_intervention=True)

        attempt.transition(AttemptState.ROLLED_BACK, previous.image)
        attempt.transition(AttemptState.FAILED, cause.code)
        return self._finish(
            attempt, error=cause, applied_image=previous, previous=previous, rolled_back=True
        )

    def _commit(
        self,
        attempt: RolloutAttempt,
        reference: ArtifactReference,
        previous: ArtifactReference | None,
        version: str,
    ) -> RolloutResult:
        """Record the verified image, re-reading once on a conflict."""
        trigger = attempt.trigger
        record = RolloutRecord(
            workload_name=trigger.workload_name,
            namespace=trigger.namespace,
            applied_image=reference,
            revision_id=trigger.revision.strip(),
        )
        try:
            try:
                self.manifest_store.write_if_unchanged(trigger.workload_name, record, version)
            except CommitConflictError as exc:
                logger.warning("Commit for %s conflicted (%s); re-reading once", trigger.workload_name, exc)
                _, fresh_version = self.manifest_store.read(
                    trigger.workload_name, trigger.namespace
                )
                self.manifest_store.write_if_unchanged(trigger.workload_name, record, fresh_version)
        except RolloutError as exc:
            attempt.transition(AttemptState.FAILED, exc.code)
            return self._finish(attempt, error=exc, applied_image=reference, previous=previous)

        attempt.transition(AttemptState.COMMITTED, reference.image)
        return self._finish(attempt, applied_image=reference, previous=previous)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _pause(self, seconds: float, token: CancellationToken) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            token.wait(seconds)

    def _with_retry(self, func: Callable[[], T], description: str, token: CancellationToken) -> T:
        def backoff(delay: float) -> None:
            self._pause(delay, token)
            if token.cancelled:
                raise AttemptCancelledError(f"Cancelled while retrying {description}")

        return call_with_backoff(
            func, self.config.retry, description=description, sleep=backoff
        )

    @staticmethod
    def _check_cancelled(token: CancellationToken, attempt: RolloutAttempt) -> None:
        if token.cancelled:
            raise AttemptCancelledError(
                f"Attempt {attempt.attempt_id} cancelled in state {attempt.state.value}"
            )

    def _finish(
        self,
        attempt: RolloutAttempt,
        *,
        error: RolloutError | None = None,
        applied_image: ArtifactReference | None = None,
        previous: ArtifactReference | None = None,
        rolled_back: bool = False,
        requires_intervention: bool = False,
    ) -> RolloutResult:
        if attempt.state == AttemptState.COMMITTED:
            status = ExitStatus.SUCCESS
        elif requires_intervention:
            status = ExitStatus.DEGRADED
        elif rolled_back:
            status = ExitStatus.ROLLED_BACK
        elif error is not None:
            status = error.exit_status
        else:
            status = ExitStatus.FATAL_CONFIGURATION

        trigger = attempt.trigger
        return RolloutResult(
            attempt_id=attempt.attempt_id,
            workload_name=trigger.workload_name,
            namespace=trigger.namespace,
            revision=trigger.revision,
            final_state=attempt.state,
            exit_status=status,
            applied_image=applied_image,
            previous_image=previous,
            error=str(error) if error is not None else None,
            error_code=error.code if error is not None else None,
            rolled_back=rolled_back,
            requires_intervention=requires_intervention,
            transitions=attempt.transitions,
            started_at=attempt.started_at,
        )
