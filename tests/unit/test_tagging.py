"""Tests for revision validation and tag derivation."""

from __future__ import annotations

import pytest

from rollkeeper.core.errors import InvalidRevisionError
from rollkeeper.core.tagging import derive_tag, reference_for, validate_revision


class TestDeriveTag:
    def test_first_eight_characters(self):
        assert derive_tag("9314b46bxxxx") == "9314b46b"

    def test_full_sha(self):
        assert derive_tag("9314b46b0c1d2e3f4a5b6c7d8e9f001122334455") == "9314b46b"

    def test_deterministic(self):
        revision = "deadbeefcafe"
        assert {derive_tag(revision) for _ in range(10)} == {"deadbeef"}

    def test_lowercases(self):
        assert derive_tag("DEADBEEF1234") == "deadbeef"

    def test_strips_surrounding_whitespace(self):
        assert derive_tag("  9314b46b0c1d\n") == "9314b46b"

    def test_same_prefix_same_tag(self):
        assert derive_tag("9314b46b-one") == derive_tag("9314b46b-two")


class TestValidateRevision:
    @pytest.mark.parametrize(
        "revision",
        ["", "   ", "9314b4", "zz14b46b0c1d", "9314b46b 0c1d", "9314b46b/../x"],
    )
    def test_malformed_revisions_rejected(self, revision: str):
        with pytest.raises(InvalidRevisionError):
            validate_revision(revision)

    def test_none_rejected(self):
        with pytest.raises(InvalidRevisionError):
            validate_revision(None)  # type: ignore[arg-type]

    def test_error_code(self):
        with pytest.raises(InvalidRevisionError) as excinfo:
            validate_revision("")
        assert excinfo.value.code == "InvalidRevision"
        assert excinfo.value.retryable is False


class TestReferenceFor:
    def test_builds_reference(self):
        ref = reference_for("localhost:5000/sample-nestjs", "9314b46bxxxx")
        assert ref.image == "localhost:5000/sample-nestjs:9314b46b"
