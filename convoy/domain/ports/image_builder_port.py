"""
Image Builder Port

Architectural Intent:
- Port interface for building container images
"""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from convoy.domain.ports.output_port import OutputPort


@dataclass(frozen=True)
class BuildRequest:
    context: str
    dockerfile: str
    tags: tuple[str, ...]
    build_args: dict[str, str] = field(default_factory=dict)
    cache_from: tuple[str, ...] = ()
    platform: str = "linux/amd64"


@runtime_checkable
class ImageBuilderPort(Protocol):
    async def build(self, request: BuildRequest, output: OutputPort) -> None: ...
