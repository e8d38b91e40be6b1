"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.service_pipeline_port import ServicePipeline
from convoy.domain.ports.container_platform_port import ContainerPlatformPort
from convoy.domain.ports.deployment_driver_port import DeploymentDriverPort, DeploymentRequest
from convoy.domain.ports.image_builder_port import ImageBuilderPort, BuildRequest
from convoy.domain.ports.registry_port import RegistryPort
from convoy.domain.ports.iac_runner_port import IacRunnerPort
from convoy.domain.ports.session_bridge_port import SessionBridgePort
from convoy.domain.ports.confirmation_port import ConfirmationPort
from convoy.domain.ports.event_bus_port import EventBusPort
from convoy.domain.ports.process_runner_port import ProcessRunnerPort, ProcessResult

__all__ = [
    "OutputPort",
    "ServicePipeline",
    "ContainerPlatformPort",
    "DeploymentDriverPort",
    "DeploymentRequest",
    "ImageBuilderPort",
    "BuildRequest",
    "RegistryPort",
    "IacRunnerPort",
    "SessionBridgePort",
    "ConfirmationPort",
    "EventBusPort",
    "ProcessRunnerPort",
    "ProcessResult",
]
