"""
Handoff of the staged tree to the external deployment executor.
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from ..core.exceptions import HandoffExecutorError
from ..utils.helpers import normalize_hostname, validate_environment_label

logger = logging.getLogger(__name__)

# Ordered by preference: a CDN domain is the canonical target when present.
_ENDPOINT_PATTERNS = [
    re.compile(r'(?:CloudFrontDomainName|DistributionDomainName)\s*:\s*(?:https?://)?([A-Za-z0-9.-]+)'),
    re.compile(r'ServiceEndpoint\s*:\s*(https?://\S+)'),
    re.compile(r'endpoints?\s*:\s*(?:[A-Z]+\s*-\s*)?(https?://\S+)', re.IGNORECASE),
]


@dataclass
class EndpointDescriptor:
    """The deployed endpoint reported by the executor."""
    target: str
    url: Optional[str] = None
    raw_output: str = ""


def parse_endpoint(output: str) -> Optional[EndpointDescriptor]:
    """
    Extract the canonical endpoint from executor output.

    Args:
        output: Combined executor output

    Returns:
        EndpointDescriptor, or None if no endpoint line was found
    """
    for pattern in _ENDPOINT_PATTERNS:
        match = pattern.search(output)
        if not match:
            continue
        value = match.group(1)
        if value.startswith("http"):
            return EndpointDescriptor(
                target=normalize_hostname(urlparse(value).hostname),
                url=value,
                raw_output=output,
            )
        target = normalize_hostname(value)
        return EndpointDescriptor(target=target, url=f"https://{target}", raw_output=output)
    return None


class DeploymentExecutor(ABC):
    """Interface of the external deployment executor."""

    @abstractmethod
    async def deploy(self, staging_root: Path, environment: str, region: str, verbose: bool = False) -> EndpointDescriptor:
        """Deploy the staged tree and return the resulting endpoint."""
        pass


class CommandExecutor(DeploymentExecutor):
    """Runs a deployment command line (default: ``serverless deploy``)."""

    def __init__(self, command: Optional[List[str]] = None):
        self.command = command or ["serverless", "deploy"]

    def build_command(self, environment: str, region: str, verbose: bool = False) -> List[str]:
        command = [*self.command, "--stage", environment, "--region", region]
        if verbose:
            command.append("--verbose")
        return command

    async def deploy(self, staging_root: Path, environment: str, region: str, verbose: bool = False) -> EndpointDescriptor:
        command = self.build_command(environment, region, verbose)
        logger.info(f"Running {' '.join(command)} in {staging_root}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(staging_root)
            )
        except FileNotFoundError:
            raise HandoffExecutorError(f"Deployment executor not found: {command[0]}")
        except OSError as e:
            raise HandoffExecutorError(f"Cannot run deployment executor {command[0]}: {e}")

        stdout, _ = await process.communicate()
        output = stdout.decode('utf-8', errors='replace')

        if process.returncode != 0:
            raise HandoffExecutorError(
                f"Deployment executor exited with code {process.returncode}",
                returncode=process.returncode,
                output=output,
            )

        endpoint = parse_endpoint(output)
        if endpoint is None:
            raise HandoffExecutorError(
                "Deployment executor did not report an endpoint",
                returncode=process.returncode,
                output=output,
            )
        return endpoint


class DeploymentHandoff:
    """Validates the environment label and invokes the executor."""

    def __init__(self, executor: DeploymentExecutor):
        self.executor = executor

    async def handoff(
        self,
        staging_root: Path,
        environment: str,
        region: str,
        verbose: bool = False
    ) -> EndpointDescriptor:
        """
        Hand the staged tree to the deployment executor.

        Raises:
            InvalidEnvironmentLabel: Before the executor is called
            HandoffExecutorError: If the executor fails; never retried
        """
        validate_environment_label(environment)
        endpoint = await self.executor.deploy(Path(staging_root), environment, region, verbose)
        logger.info(f"Deployment to {environment} ({region}) completed: {endpoint.target}")
        return endpoint
