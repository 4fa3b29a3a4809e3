"""
Utilities module for the CMS Deployer.

This module contains helper functions and the logging setup
used throughout the application.
"""

from cms_deployer.utils.helpers import (
    validate_environment_label,
    alternate_hostname,
    normalize_hostname,
    format_duration,
    load_config_file,
    sanitize_dict,
)
from cms_deployer.utils.logging import (
    setup_logging,
    get_logger,
    DeployLogger,
)

__all__ = [
    # Helper functions
    "validate_environment_label",
    "alternate_hostname",
    "normalize_hostname",
    "format_duration",
    "load_config_file",
    "sanitize_dict",
    # Logging utilities
    "setup_logging",
    "get_logger",
    "DeployLogger",
]
