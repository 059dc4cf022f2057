"""
Interface definitions for hostmetrics.

This package defines the abstract interfaces (contracts) that components
must implement. Using interfaces keeps the transport out of the engine and
lets tests drive collectors with a recorded gateway.

Available Interfaces:

Gateway Interfaces:
    - CommandGatewayInterface: Runs a shell command for a session and returns stdout

Collector Interfaces:
    - DomainCollectorInterface: Interface for per-domain metric collectors
    - SectionResult: Result container for one computed cache section

Example Usage:
    from hostmetrics.interfaces import CommandGatewayInterface

    class RecordedGateway(CommandGatewayInterface):
        def __init__(self, outputs):
            self.outputs = outputs

        async def execute(self, session_id, command):
            return self.outputs.get(command, '')
"""

from hostmetrics.interfaces.gateway import (
    CommandGatewayInterface,
)

from hostmetrics.interfaces.collector import (
    DomainCollectorInterface,
    SectionResult,
)

__all__ = [
    # Gateway interfaces
    'CommandGatewayInterface',
    # Collector interfaces
    'DomainCollectorInterface',
    'SectionResult',
]
