"""
Pipeline Driver Module

Architectural Intent:
- Adapts the per-service ServicePipeline lifecycle to the scheduler's
  "one async callable per node" contract
- Dispatch is on the node's kind only; the kind was fixed when the config
  was turned into ServiceNodes

Design Decisions:
- One pipeline instance per node, created lazily and cached
- Each call opens the node's output scope and flushes it on the way out so
  partial lines are never lost, even on failure
"""

from __future__ import annotations
import logging
from typing import Protocol

from convoy.application.orchestration.graph_scheduler import ServiceTask
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction, ServiceNode
from convoy.domain.errors import UpstreamAPIError
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline

logger = logging.getLogger(__name__)


class PipelineFactoryPort(Protocol):
    def for_node(self, node: ServiceNode) -> ServicePipeline: ...


class OutputScopes(Protocol):
    def scope(self, name: str) -> OutputPort: ...

    def header(self, text: str) -> None: ...


class PipelineDriver:
    def __init__(
        self,
        graph: DependencyGraph,
        factory: PipelineFactoryPort,
        outputs: OutputScopes,
    ) -> None:
        self._graph = graph
        self._factory = factory
        self._outputs = outputs
        self._pipelines: dict[str, ServicePipeline] = {}

    def pipeline(self, name: str) -> ServicePipeline:
        if name not in self._pipelines:
            self._pipelines[name] = self._factory.for_node(self._graph.node(name))
        return self._pipelines[name]

    def prepare(self) -> None:
        """Resolve every node's pipeline before the run starts."""
        for name in self._graph.names:
            self.pipeline(name)

    async def bring_up(self, name: str) -> None:
        """build -> push -> deploy, stopping at the first error."""
        pipeline = self.pipeline(name)
        output = self._outputs.scope(name)
        try:
            await pipeline.build(output)
            await pipeline.push(output)
            await pipeline.deploy(output)
        except UpstreamAPIError as e:
            if e.service:
                raise
            raise e.with_service(name) from e
        finally:
            output.flush()

    async def tear_down(self, name: str, auto_approve: bool = False) -> None:
        pipeline = self.pipeline(name)
        output = self._outputs.scope(name)
        try:
            await pipeline.destroy(output, auto_approve)
        except UpstreamAPIError as e:
            if e.service:
                raise
            raise e.with_service(name) from e
        finally:
            output.flush()

    def explain(self, name: str) -> None:
        output = self._outputs.scope(name)
        output.write(self.pipeline(name).explain().rstrip("\n") + "\n")
        output.flush()

    def task_for(self, direction: Direction, auto_approve: bool = False) -> ServiceTask:
        if direction is Direction.UP:
            return self.bring_up

        async def tear_down(name: str) -> None:
            await self.tear_down(name, auto_approve)

        return tear_down
