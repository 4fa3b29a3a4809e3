"""
CMS Deployer

Assembles a WordPress site into a serverless deployment tree, hands it to a
deployment executor and reports the DNS records the site still needs.
"""

__version__ = "0.1.0"

from cms_deployer.models.config import DeployConfig, DeploymentManifest
from cms_deployer.orchestrator.pipeline import PipelineCoordinator, PipelineResult, PipelineState

__all__ = [
    "DeployConfig",
    "DeploymentManifest",
    "PipelineCoordinator",
    "PipelineResult",
    "PipelineState",
]
