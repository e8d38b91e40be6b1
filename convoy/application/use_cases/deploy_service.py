"""
Deploy Service Use Case

Architectural Intent:
- Deploys exactly one container service: build, push, deploy
- With an explicit image, build and push are skipped and that image is
  rolled out as-is
- Runs through the same scheduler as whole-project runs so events and
  telemetry look the same
"""

import asyncio
import logging
from typing import Optional

from convoy.application.dtos.run_report import RunReport
from convoy.application.orchestration.graph_scheduler import GraphScheduler
from convoy.application.orchestration.pipeline_driver import OutputScopes, PipelineDriver
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction, ServiceKind
from convoy.domain.errors import ValidationError

logger = logging.getLogger(__name__)


class DeployService:
    def __init__(
        self,
        graph: DependencyGraph,
        scheduler: GraphScheduler,
        driver: PipelineDriver,
        outputs: OutputScopes,
    ) -> None:
        if len(graph) != 1:
            raise ValueError("DeployService expects a single-service graph")
        self.graph = graph
        self.scheduler = scheduler
        self.driver = driver
        self.outputs = outputs

    async def execute(self, cancel_event: Optional[asyncio.Event] = None) -> RunReport:
        node = next(iter(self.graph))
        if node.kind is not ServiceKind.CONTAINER:
            raise ValidationError(
                "service", f"{node.name} is a {node.kind.name.lower()} service; deploy supports container services only"
            )

        self.driver.prepare()
        self.outputs.header(f"Deploying {node.name}...")
        return await self.scheduler.run(
            self.graph,
            Direction.UP,
            self.driver.task_for(Direction.UP),
            cancel_event=cancel_event,
        )
