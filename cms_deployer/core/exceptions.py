"""
Custom exceptions for the CMS Deployer.

This module defines the exception hierarchy used by every pipeline stage
so failures can be reported with the stage and the check that produced them.
"""

from typing import Any, Dict, List, Optional


class CMSDeployerError(Exception):
    """Base exception class for CMS Deployer errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}


class ConfigurationError(CMSDeployerError):
    """Raised when the deployer configuration is invalid."""
    pass


class ClassificationAmbiguous(CMSDeployerError):
    """Raised internally when layout markers are inconclusive.

    Never escapes the layout detector: the detector falls back to the
    standard layout.
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Layout of {path} is ambiguous: {reason}")


class ConfigShapeUnrecognized(CMSDeployerError):
    """Raised when wp-config.php has no recognizable DB_NAME declaration."""

    def __init__(self, config_file: str, reason: str):
        self.config_file = config_file
        self.reason = reason
        super().__init__(f"Unrecognized database configuration in {config_file}: {reason}")


class AssemblyIOError(CMSDeployerError):
    """Raised when the staging tree cannot be assembled."""

    def __init__(self, operation: str, path: str, details: str):
        self.operation = operation
        self.path = path
        super().__init__(
            f"Assembly {operation} failed for {path}: {details}",
            details={"operation": operation, "path": path}
        )


class DependencyInstallError(AssemblyIOError):
    """Raised when the external dependency installer fails."""

    def __init__(self, path: str, details: str):
        super().__init__("dependency install", path, details)


class PreparationTaskError(CMSDeployerError):
    """Raised when one or more preparation tasks failed."""

    def __init__(self, failed_tasks: List[str], messages: Optional[Dict[str, str]] = None):
        self.failed_tasks = failed_tasks
        self.messages = messages or {}
        summary = "; ".join(
            f"{name}: {self.messages.get(name, 'failed')}" for name in failed_tasks
        )
        super().__init__(
            f"Preparation failed ({summary})",
            details={"failed_tasks": failed_tasks}
        )


class InvalidEnvironmentLabel(CMSDeployerError):
    """Raised when a deployment environment label is not acceptable."""

    def __init__(self, label: str, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"Invalid environment label {label!r}: {reason}")


class HandoffExecutorError(CMSDeployerError):
    """Raised when the deployment executor reports a failure.

    The executor output is kept verbatim in ``output``.
    """

    def __init__(self, message: str, returncode: Optional[int] = None, output: str = ""):
        self.returncode = returncode
        self.output = output
        super().__init__(
            message,
            details={"returncode": returncode, "output": output}
        )


class ReconciliationLookupError(CMSDeployerError):
    """Raised when a DNS lookup cannot be completed."""

    def __init__(self, hostname: str, record_type: str, details: str):
        self.hostname = hostname
        self.record_type = record_type
        super().__init__(f"{record_type} lookup for {hostname} failed: {details}")


class StageError(CMSDeployerError):
    """Raised when a pipeline stage fails with an error outside this hierarchy."""

    def __init__(self, stage: str, error: Exception):
        self.stage = stage
        self.error = error
        super().__init__(
            f"{stage} failed: {error.__class__.__name__}: {error}",
            details={"stage": stage, "exception": error.__class__.__name__}
        )
