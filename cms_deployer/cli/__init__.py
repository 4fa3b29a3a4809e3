"""
CLI module for the CMS Deployer.

This module provides command-line interface functionality
using Click and Rich.
"""

from cms_deployer.cli.main import main

__all__ = ["main"]
