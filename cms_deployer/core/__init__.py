"""
Core module for the CMS Deployer.

This module contains the exception hierarchy shared by all pipeline stages.
"""

from cms_deployer.core.exceptions import (
    CMSDeployerError,
    ConfigurationError,
    ClassificationAmbiguous,
    ConfigShapeUnrecognized,
    AssemblyIOError,
    DependencyInstallError,
    PreparationTaskError,
    InvalidEnvironmentLabel,
    HandoffExecutorError,
    ReconciliationLookupError,
)

__all__ = [
    "CMSDeployerError",
    "ConfigurationError",
    "ClassificationAmbiguous",
    "ConfigShapeUnrecognized",
    "AssemblyIOError",
    "DependencyInstallError",
    "PreparationTaskError",
    "InvalidEnvironmentLabel",
    "HandoffExecutorError",
    "ReconciliationLookupError",
]
