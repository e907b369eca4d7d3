"""Revision validation and deterministic image tag derivation."""

from __future__ import annotations

import re

from rollkeeper.core.errors import InvalidRevisionError
from rollkeeper.models.artifacts import ArtifactReference

TAG_LENGTH = 8

_REVISION_CHARS = re.compile(r"^[0-9A-Za-z._-]+$")
_HEX = re.compile(r"^[0-9a-fA-F]+$")


def validate_revision(revision: str) -> str:
    """Return the stripped revision, or raise ``InvalidRevisionError``.

    A revision is at least ``TAG_LENGTH`` characters of ``[0-9A-Za-z._-]``
    whose first ``TAG_LENGTH`` characters are hexadecimal.
    """
    if revision is None:
        raise InvalidRevisionError("Revision identifier is missing")
    cleaned = revision.strip()
    if not cleaned:
        raise InvalidRevisionError("Revision identifier is empty")
    if len(cleaned) < TAG_LENGTH:
        raise InvalidRevisionError(
            f"Revision {cleaned!r} is shorter than {TAG_LENGTH} characters"
        )
    if not _REVISION_CHARS.match(cleaned):
        raise InvalidRevisionError(
            f"Revision {cleaned!r} contains characters outside [0-9A-Za-z._-]"
        )
    if not _HEX.match(cleaned[:TAG_LENGTH]):
        raise InvalidRevisionError(
            f"Revision {cleaned!r} does not start with {TAG_LENGTH} hex characters"
        )
    return cleaned


def derive_tag(revision: str) -> str:
    """Image tag for a revision: its first 8 hex characters, lowercased.

    Pure: the same revision always yields the same tag.
    """
    return validate_revision(revision)[:TAG_LENGTH].lower()


def reference_for(repository: str, revision: str) -> ArtifactReference:
    """Build the ``ArtifactReference`` for a revision in *repository*."""
    return ArtifactReference(repository=repository, tag=derive_tag(revision))
