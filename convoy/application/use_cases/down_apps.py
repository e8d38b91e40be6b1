"""
Down Apps Use Case

Architectural Intent:
- Tears apps down in reverse dependency order: dependents first
- Tearing down everything also destroys the infrastructure stack, but only
  when every app was destroyed; a failed or declined app keeps infra up
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from convoy.application.dtos.run_report import RunReport
from convoy.application.orchestration.graph_scheduler import GraphScheduler
from convoy.application.orchestration.pipeline_driver import OutputScopes, PipelineDriver
from convoy.application.use_cases.manage_infra import ManageInfra
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownResult:
    report: RunReport
    infra_destroyed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.report.succeeded


class DownApps:
    def __init__(
        self,
        graph: DependencyGraph,
        scheduler: GraphScheduler,
        driver: PipelineDriver,
        outputs: OutputScopes,
        infra: Optional[ManageInfra] = None,
    ) -> None:
        self.graph = graph
        self.scheduler = scheduler
        self.driver = driver
        self.outputs = outputs
        self.infra = infra

    async def execute(
        self,
        auto_approve: bool = False,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DownResult:
        self.driver.prepare()
        self.outputs.header(f"Destroying {', '.join(self.graph.names)}...")
        report = await self.scheduler.run(
            self.graph,
            Direction.DOWN,
            self.driver.task_for(Direction.DOWN, auto_approve=auto_approve),
            cancel_event=cancel_event,
        )

        if self.infra is None:
            return DownResult(report)

        if not report.succeeded or report.declined or report.cancelled:
            logger.warning(
                "Keeping infrastructure: %d apps failed, %d declined",
                len(report.failures), len(report.declined),
            )
            self.outputs.header("Infrastructure kept because not every app was destroyed")
            return DownResult(report)

        await self.infra.down()
        return DownResult(report, infra_destroyed=True)
