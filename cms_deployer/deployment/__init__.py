"""
Deployment handoff to the external executor.
"""

from .handoff import (
    CommandExecutor,
    DeploymentExecutor,
    DeploymentHandoff,
    EndpointDescriptor,
    parse_endpoint,
)

__all__ = [
    'CommandExecutor',
    'DeploymentExecutor',
    'DeploymentHandoff',
    'EndpointDescriptor',
    'parse_endpoint',
]
