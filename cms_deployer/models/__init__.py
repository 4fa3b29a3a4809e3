"""
Data models for the CMS Deployer.

This module contains the Pydantic models used for configuration
and for the per-run deployment manifest.
"""

from cms_deployer.models.config import (
    DeployConfig,
    DeploymentManifest,
    DEFAULT_PLUGIN_ARCHIVE_URL,
    INVALIDATION_LIST_NAME,
    NODEPLOY_MARKER,
)

__all__ = [
    "DeployConfig",
    "DeploymentManifest",
    "DEFAULT_PLUGIN_ARCHIVE_URL",
    "INVALIDATION_LIST_NAME",
    "NODEPLOY_MARKER",
]
