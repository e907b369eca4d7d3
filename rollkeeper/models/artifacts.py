"""Artifact reference model — immutable image coordinates."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator, model_validator


class ArtifactReference(BaseModel):
    """A container image in a registry, addressed by repository and tag.

    A reference may also be pinned to a content ``digest``
    (``repo@sha256:...``); the tag is then optional. Two references are
    equal iff repository, tag and digest all match exactly.
    """

    model_config = ConfigDict(frozen=True)

    repository: str
    tag: str = ""
    digest: str | None = None

    @field_validator("repository")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        if any(ch.isspace() for ch in value):
            raise ValueError("must not contain whitespace")
        return value

    @field_validator("tag", "digest")
    @classmethod
    def _no_whitespace(cls, value: str | None) -> str | None:
        if value is not None and any(ch.isspace() for ch in value):
            raise ValueError("must not contain whitespace")
        return value

    @model_validator(mode="after")
    def _tag_or_digest(self) -> ArtifactReference:
        if not self.tag and not self.digest:
            raise ValueError("either tag or digest is required")
        return self

    @property
    def image(self) -> str:
        """The ``repository[:tag][@digest]`` form understood by container tooling."""
        image = self.repository
        if self.tag:
            image += f":{self.tag}"
        if self.digest:
            image += f"@{self.digest}"
        return image

    def with_tag(self, tag: str) -> ArtifactReference:
        """Return a reference to the same repository under another tag.

        The digest is dropped: a new tag names whatever content it points to.
        """
        return ArtifactReference(repository=self.repository, tag=tag)

    @classmethod
    def parse(cls, image: str) -> ArtifactReference:
        """Split ``repository[:tag][@digest]`` into a reference.

        The digest follows the first ``@``. The tag separator is the last
        ``:`` after the last ``/`` of what remains, so registry ports
        (``localhost:5000/app:abc``) survive. An image with neither tag
        nor digest is read as ``latest``.
        """
        image = image.strip()
        name, at, digest = image.partition("@")
        slash = name.rfind("/")
        colon = name.rfind(":")
        if colon > slash:
            repository, tag = name[:colon], name[colon + 1:]
        else:
            repository, tag = name, ""
        if not at:
            return cls(repository=repository, tag=tag or "latest")
        return cls(repository=repository, tag=tag, digest=digest)

    def __str__(self) -> str:
        return self.image
