"""
Helper utilities for the CMS Deployer.

This module contains small functions shared by the configuration layer,
the pipeline stages and the CLI.
"""

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from cms_deployer.core.exceptions import InvalidEnvironmentLabel


_LABEL_PATTERN = re.compile(r'^[A-Za-z0-9]+$')


def validate_environment_label(label: str) -> str:
    """
    Validate a deployment environment label.

    Labels are alphanumeric, not purely numeric, and never the single
    character ``_``.

    Args:
        label: Environment label to check

    Returns:
        The label, unchanged

    Raises:
        InvalidEnvironmentLabel: If the label is not acceptable
    """
    if label == "_":
        raise InvalidEnvironmentLabel(label, "'_' is reserved")
    if not label or not _LABEL_PATTERN.match(label):
        raise InvalidEnvironmentLabel(label, "only letters and digits are allowed")
    if label.isdigit():
        raise InvalidEnvironmentLabel(label, "label must not be purely numeric")
    return label


def alternate_hostname(hostname: str) -> str:
    """Return the www-prefixed or de-prefixed counterpart of a hostname."""
    if hostname.startswith("www."):
        return hostname[len("www."):]
    return f"www.{hostname}"


def normalize_hostname(hostname: Optional[str]) -> Optional[str]:
    """Lower-case a hostname and drop the trailing root dot."""
    if hostname is None:
        return None
    return hostname.strip().rstrip(".").lower()


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def load_config_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Args:
        file_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() in ['.yaml', '.yml']:
            return yaml.safe_load(f) or {}
        elif file_path.suffix.lower() == '.json':
            return json.load(f)
        else:
            raise ValueError(f"Unsupported configuration file format: {file_path.suffix}")


def sanitize_dict(data: Dict[str, Any], sensitive_keys: Optional[List[str]] = None) -> Dict[str, Any]:
    """
    Sanitize dictionary by masking sensitive values.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: List of keys to mask (default: common sensitive keys)

    Returns:
        Sanitized dictionary
    """
    if sensitive_keys is None:
        sensitive_keys = ['password', 'secret', 'token', 'key', 'credential']

    def _sanitize_value(key: str, value: Any) -> Any:
        if isinstance(value, dict):
            return sanitize_dict(value, sensitive_keys)
        elif any(sensitive_key in key.lower() for sensitive_key in sensitive_keys):
            return "***MASKED***" if value else value
        else:
            return value

    return {key: _sanitize_value(key, value) for key, value in data.items()}
