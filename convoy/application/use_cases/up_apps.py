"""
Up Apps Use Case

Architectural Intent:
- Brings every app up in dependency order: build, push, deploy per app
- Independent apps run concurrently; a failure only stops its dependents
- --explain prints each app's plan in ready-set order and changes nothing
"""

import asyncio
import logging
from typing import Optional

from convoy.application.dtos.run_report import RunReport
from convoy.application.orchestration.graph_scheduler import GraphScheduler
from convoy.application.orchestration.pipeline_driver import OutputScopes, PipelineDriver
from convoy.domain.entities.dependency_graph import DependencyGraph
from convoy.domain.entities.service import Direction

logger = logging.getLogger(__name__)


class UpApps:
    def __init__(
        self,
        graph: DependencyGraph,
        scheduler: GraphScheduler,
        driver: PipelineDriver,
        outputs: OutputScopes,
    ) -> None:
        self.graph = graph
        self.scheduler = scheduler
        self.driver = driver
        self.outputs = outputs

    def explain(self) -> None:
        for step, names in enumerate(self.graph.ready_sets(Direction.UP), start=1):
            self.outputs.header(f"step {step}: {', '.join(names)}")
            for name in names:
                self.driver.explain(name)

    async def execute(self, cancel_event: Optional[asyncio.Event] = None) -> RunReport:
        self.driver.prepare()
        self.outputs.header(f"Deploying {len(self.graph)} apps...")
        report = await self.scheduler.run(
            self.graph,
            Direction.UP,
            self.driver.task_for(Direction.UP),
            cancel_event=cancel_event,
        )
        if report.succeeded and not report.cancelled:
            self.outputs.header("Deploy complete!")
        return report
