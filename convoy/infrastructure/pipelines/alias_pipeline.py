"""
Alias Pipeline

An alias is a named dependency target with nothing to deploy. Every stage
succeeds immediately, so its dependents are gated only by the alias's own
dependencies.
"""

from convoy.domain.entities.service import ServiceNode
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline


class AliasPipeline(ServicePipeline):
    def __init__(self, node: ServiceNode) -> None:
        self.name = node.name

    async def build(self, output: OutputPort) -> None:
        pass

    async def push(self, output: OutputPort) -> None:
        pass

    async def deploy(self, output: OutputPort) -> None:
        pass

    async def destroy(self, output: OutputPort, auto_approve: bool) -> None:
        pass

    def explain(self) -> str:
        return f"# {self.name}: alias, nothing to do"
