"""
Manage Infra Use Case

Architectural Intent:
- Applies or destroys the project's terraform stack
- Output goes to its own "infra" scope like any service
"""

import logging

from convoy.application.orchestration.pipeline_driver import OutputScopes
from convoy.domain.ports.iac_runner_port import IacRunnerPort

logger = logging.getLogger(__name__)

INFRA_SCOPE = "infra"


class ManageInfra:
    def __init__(self, iac: IacRunnerPort, outputs: OutputScopes) -> None:
        self.iac = iac
        self.outputs = outputs

    async def up(self) -> None:
        self.outputs.header("Deploying infrastructure...")
        output = self.outputs.scope(INFRA_SCOPE)
        with output.step("terraform init"):
            await self.iac.run(["init", "-input=false"], output)
        with output.step("terraform apply"):
            await self.iac.run(["apply", "-auto-approve"], output)
        output.success("infrastructure is up")

    async def down(self) -> None:
        self.outputs.header("Destroying infrastructure...")
        output = self.outputs.scope(INFRA_SCOPE)
        with output.step("terraform destroy"):
            await self.iac.run(["destroy", "-auto-approve"], output)
        output.success("infrastructure destroyed")
