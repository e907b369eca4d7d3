"""Tests for the Pydantic data models: validation, immutability, convergence."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from rollkeeper.models.artifacts import ArtifactReference
from rollkeeper.models.attempt import (
    VALID_TRANSITIONS,
    AttemptState,
    ExitStatus,
    RolloutTrigger,
)
from rollkeeper.models.config import RetryPolicy
from rollkeeper.models.deployment import DeploymentIntent, RolloutRecord, WorkloadHealth

REPO = "localhost:5000/sample-nestjs"


class TestArtifactReference:
    def test_equality_is_by_repository_and_tag(self):
        a = ArtifactReference(repository=REPO, tag="9314b46b")
        b = ArtifactReference(repository=REPO, tag="9314b46b")
        assert a == b
        assert a != a.with_tag("latest")
        assert a != ArtifactReference(repository="other/repo", tag="9314b46b")

    def test_frozen(self):
        ref = ArtifactReference(repository=REPO, tag="9314b46b")
        with pytest.raises(ValidationError):
            ref.tag = "other"  # type: ignore[misc]

    def test_image_string(self):
        assert ArtifactReference(repository=REPO, tag="abc12345").image == f"{REPO}:abc12345"

    def test_empty_parts_rejected(self):
        with pytest.raises(ValidationError):
            ArtifactReference(repository="", tag="abc")
        with pytest.raises(ValidationError):
            ArtifactReference(repository=REPO, tag="a b")

    def test_parse_keeps_registry_port(self):
        ref = ArtifactReference.parse("localhost:5000/sample-nestjs:9314b46b")
        assert ref.repository == "localhost:5000/sample-nestjs"
        assert ref.tag == "9314b46b"

    def test_parse_without_tag_means_latest(self):
        ref = ArtifactReference.parse("localhost:5000/sample-nestjs")
        assert ref.tag == "latest"

    def test_parse_digest_only(self):
        ref = ArtifactReference.parse("localhost:5000/sample-nestjs@sha256:abc123")
        assert ref.repository == "localhost:5000/sample-nestjs"
        assert ref.tag == ""
        assert ref.digest == "sha256:abc123"
        assert ref.image == "localhost:5000/sample-nestjs@sha256:abc123"

    def test_parse_tag_and_digest(self):
        ref = ArtifactReference.parse("registry.local/app:9314b46b@sha256:abc123")
        assert ref.repository == "registry.local/app"
        assert ref.tag == "9314b46b"
        assert ref.digest == "sha256:abc123"
        assert str(ref) == "registry.local/app:9314b46b@sha256:abc123"

    def test_digest_distinguishes_references(self):
        plain = ArtifactReference(repository=REPO, tag="9314b46b")
        pinned = ArtifactReference(repository=REPO, tag="9314b46b", digest="sha256:abc123")
        assert plain != pinned
        assert pinned.with_tag("9314b46b") == plain

    def test_tag_or_digest_required(self):
        with pytest.raises(ValidationError):
            ArtifactReference(repository=REPO, tag="")

    def test_hashable(self):
        ref = ArtifactReference(repository=REPO, tag="9314b46b")
        assert ref in {ArtifactReference(repository=REPO, tag="9314b46b")}


class TestWorkloadHealth:
    def setup_method(self):
        self.target = ArtifactReference(repository=REPO, tag="9314b46b")
        self.old = ArtifactReference(repository=REPO, tag="00c0ffee")

    def test_converged(self):
        health = WorkloadHealth(ready_replicas=1, total_replicas=1, current_image=self.target)
        assert health.is_converged_on(self.target)

    def test_not_converged_while_replicas_are_stale(self):
        health = WorkloadHealth(
            ready_replicas=2, total_replicas=2, current_image=self.target, stale_replicas=1
        )
        assert not health.is_converged_on(self.target)

    def test_not_converged_on_previous_image(self):
        health = WorkloadHealth(ready_replicas=1, total_replicas=1, current_image=self.old)
        assert not health.is_converged_on(self.target)

    def test_not_converged_when_partially_ready(self):
        health = WorkloadHealth(ready_replicas=1, total_replicas=3, current_image=self.target)
        assert not health.is_converged_on(self.target)

    def test_zero_replicas_never_converged(self):
        health = WorkloadHealth(ready_replicas=0, total_replicas=0, current_image=self.target)
        assert not health.is_converged_on(self.target)


class TestDeploymentModels:
    def test_intent_rejects_negative_replicas(self):
        with pytest.raises(ValidationError):
            DeploymentIntent(
                workload_name="w",
                namespace="default",
                desired_image=ArtifactReference(repository=REPO, tag="t"),
                replicas=-1,
            )

    def test_record_json_roundtrip_keeps_reference(self):
        record = RolloutRecord(
            workload_name="sample-nestjs",
            applied_image=ArtifactReference(repository=REPO, tag="9314b46b"),
            revision_id="9314b46bxxxx",
        )
        restored = RolloutRecord.model_validate_json(record.model_dump_json())
        assert restored.applied_image == record.applied_image
        assert restored.namespace == "default"

    def test_trigger_defaults_to_default_namespace(self):
        assert RolloutTrigger(revision="9314b46b", workload_name="w").namespace == "default"


class TestAttemptStates:
    def test_terminal_states_have_no_transitions(self):
        assert VALID_TRANSITIONS[AttemptState.COMMITTED] == set()
        assert VALID_TRANSITIONS[AttemptState.FAILED] == set()

    def test_rolled_back_only_leads_to_failed(self):
        assert VALID_TRANSITIONS[AttemptState.ROLLED_BACK] == {AttemptState.FAILED}

    def test_applied_cannot_commit_without_verifying(self):
        assert AttemptState.COMMITTED not in VALID_TRANSITIONS[AttemptState.APPLIED]

    def test_exit_status_codes(self):
        assert int(ExitStatus.SUCCESS) == 0
        assert int(ExitStatus.RETRYABLE_EXHAUSTED) == 75
        assert int(ExitStatus.FATAL_CONFIGURATION) == 78


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay_seconds=1.0, factor=2.0, max_attempts=5)
        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_is_capped(self):
        policy = RetryPolicy(base_delay_seconds=10.0, factor=10.0, max_delay_seconds=30.0)
        assert policy.delay_for(3) == 30.0
