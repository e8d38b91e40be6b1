"""
Application Orchestration Package

Architectural Intent:
- Contains run orchestration components
- Dependency-ordered concurrent scheduling of per-service pipelines
"""

from convoy.application.orchestration.graph_scheduler import (
    GraphScheduler,
    RunContext,
    ServiceTask,
)
from convoy.application.orchestration.pipeline_driver import PipelineDriver

__all__ = ["GraphScheduler", "RunContext", "ServiceTask", "PipelineDriver"]
