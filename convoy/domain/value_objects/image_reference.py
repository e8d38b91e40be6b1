"""
Image Reference Value Object

Architectural Intent:
- Immutable representation of a container image reference
  (registry/repository:tag)
- Parses explicit --image values so the release tag can be recovered
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ImageReference:
    repository: str
    tag: str = "latest"
    registry: str = ""

    def __post_init__(self) -> None:
        if not self.repository:
            raise ValueError("Image repository cannot be empty")
        if not self.tag:
            raise ValueError("Image tag cannot be empty")

    def __str__(self) -> str:
        if self.registry:
            return f"{self.registry}/{self.repository}:{self.tag}"
        return f"{self.repository}:{self.tag}"

    @property
    def uri(self) -> str:
        """Reference without the tag."""
        if self.registry:
            return f"{self.registry}/{self.repository}"
        return self.repository

    @staticmethod
    def parse(reference: str) -> "ImageReference":
        """
        Parses 'registry/repo:tag', 'repo:tag' or 'repo'.
        A colon before the last slash belongs to a registry port, not a tag.
        """
        reference = reference.strip()
        registry = ""
        remainder = reference
        if "/" in reference:
            head, tail = reference.rsplit("/", 1)
            first = head.split("/", 1)[0]
            if "." in first or ":" in first or first == "localhost":
                registry = first
                repository_prefix = head[len(first) + 1:]
            else:
                repository_prefix = head
            remainder = f"{repository_prefix}/{tail}" if repository_prefix else tail

        tag = "latest"
        last_slash = remainder.rfind("/")
        last_colon = remainder.rfind(":")
        if last_colon > last_slash:
            tag = remainder[last_colon + 1:]
            remainder = remainder[:last_colon]

        return ImageReference(repository=remainder, tag=tag, registry=registry)
