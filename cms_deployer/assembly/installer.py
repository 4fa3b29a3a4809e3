"""
Composer dependency installation for extended layouts.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..core.exceptions import DependencyInstallError

logger = logging.getLogger(__name__)


class DependencyInstaller:
    """Runs the dependency installer in a project directory."""

    def __init__(self, command: Optional[List[str]] = None, dependency_dir: str = "vendor"):
        self.command = command or ["composer", "install", "--no-dev", "--optimize-autoloader"]
        self.dependency_dir = dependency_dir

    async def install(self, project_root: Path) -> Path:
        """
        Resolve dependencies for ``project_root``.

        Args:
            project_root: Directory holding composer.json and composer.lock

        Returns:
            Path of the resolved dependency directory

        Raises:
            DependencyInstallError: If the installer cannot run or fails
        """
        project_root = Path(project_root)
        logger.info(f"Installing dependencies in {project_root}: {' '.join(self.command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(project_root)
            )
        except FileNotFoundError:
            raise DependencyInstallError(str(project_root), f"{self.command[0]} not found")
        except OSError as e:
            raise DependencyInstallError(str(project_root), f"cannot run {self.command[0]}: {e}")

        stdout, stderr = await process.communicate()

        if process.returncode != 0:
            output = stderr.decode('utf-8', errors='replace') or stdout.decode('utf-8', errors='replace')
            raise DependencyInstallError(
                str(project_root),
                f"exit code {process.returncode}: {output.strip()}"
            )

        resolved = project_root / self.dependency_dir
        if not resolved.is_dir():
            raise DependencyInstallError(str(project_root), f"{resolved} was not created")

        return resolved
