"""
Preparation tasks run against the staged tree before handoff.

Each task writes to its own part of the staged content directory, so the
tasks can run in any interleaving.
"""

import asyncio
import logging
import shutil
import threading
import time
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import httpx

from ..assembly.tree import StagedTree
from .hook import HOOK_FILE_NAME, render_hook

logger = logging.getLogger(__name__)


@dataclass
class TaskResult:
    """Outcome of one preparation task."""
    name: str
    success: bool
    message: Optional[str] = None
    duration: float = 0.0


class PreparationTask(ABC):
    """A unit of independent work on the staged tree."""

    name: str = "task"

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def execute(self, tree: StagedTree) -> str:
        """
        Run the task.

        Args:
            tree: The assembled staging tree

        Returns:
            A short diagnostic message; failures are raised
        """
        pass

    async def run(self, tree: StagedTree) -> TaskResult:
        """Execute the task and capture its outcome instead of raising."""
        start_time = time.monotonic()
        try:
            message = await self.execute(tree)
            success = True
        except Exception as e:
            message = f"{e.__class__.__name__}: {e}"
            success = False

        return TaskResult(
            name=self.name,
            success=success,
            message=message,
            duration=time.monotonic() - start_time,
        )


class PluginInstallTask(PreparationTask):
    """Downloads a plugin archive and extracts it into the staged plugins directory."""

    name = "plugin-install"

    def __init__(
        self,
        archive_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        super().__init__()
        self.archive_url = archive_url
        self.timeout = timeout
        self.transport = transport

    async def execute(self, tree: StagedTree) -> str:
        plugins_dir = tree.plugins_dir
        plugins_dir.mkdir(parents=True, exist_ok=True)
        archive = plugins_dir / f".{self.name}.zip"

        cancelled = threading.Event()
        try:
            await self._download(archive)
            installed = await asyncio.to_thread(self._extract, archive, plugins_dir, cancelled)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        finally:
            archive.unlink(missing_ok=True)

        return f"installed {', '.join(installed)} from {self.archive_url}"

    async def _download(self, archive: Path) -> None:
        self.logger.info(f"Downloading {self.archive_url}")
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=self.transport
        ) as client:
            async with client.stream("GET", self.archive_url) as response:
                response.raise_for_status()
                with open(archive, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)

    @staticmethod
    def _extract(archive: Path, destination: Path, cancelled: Optional[threading.Event] = None) -> List[str]:
        """
        Extract ``archive`` into ``destination``.

        The worker thread outlives a timed-out task, so ``cancelled`` is
        checked between members and extraction stops once it is set.
        """
        destination = destination.resolve()
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                target = (destination / member).resolve()
                if target != destination and destination not in target.parents:
                    raise zipfile.BadZipFile(f"archive member escapes plugins directory: {member}")
            for member in zf.infolist():
                if cancelled is not None and cancelled.is_set():
                    logger.debug(f"Extraction of {archive.name} cancelled")
                    return []
                zf.extract(member, destination)
            top_level = sorted({member.split("/", 1)[0] for member in zf.namelist() if member})
        return top_level


class PluginRemovalTask(PreparationTask):
    """Deletes named plugins from the staged tree if present."""

    name = "plugin-removal"

    def __init__(self, plugin_names: List[str]):
        super().__init__()
        self.plugin_names = list(plugin_names)

    async def execute(self, tree: StagedTree) -> str:
        for plugin_name in self.plugin_names:
            if not plugin_name or "/" in plugin_name or "\\" in plugin_name or plugin_name in (".", ".."):
                raise ValueError(f"Invalid plugin name: {plugin_name!r}")

        removed = []
        for plugin_name in self.plugin_names:
            target = tree.plugins_dir / plugin_name
            if target.is_dir() and not target.is_symlink():
                await asyncio.to_thread(shutil.rmtree, target)
            elif target.exists() or target.is_symlink():
                target.unlink()
            else:
                continue
            removed.append(plugin_name)

        if not removed:
            return "no plugins to remove"
        return f"removed {', '.join(removed)}"


class HookInjectionTask(PreparationTask):
    """Writes the serverless must-use plugin into the staged tree."""

    name = "hook-injection"

    def __init__(self, domain: str, bucket: str, region: str):
        super().__init__()
        self.domain = domain
        self.bucket = bucket
        self.region = region

    async def execute(self, tree: StagedTree) -> str:
        mu_plugins = tree.content_dir / "mu-plugins"
        mu_plugins.mkdir(parents=True, exist_ok=True)
        hook_file = mu_plugins / HOOK_FILE_NAME
        hook_file.write_text(render_hook(self.domain, self.bucket, self.region), encoding='utf-8')
        return f"wrote {hook_file.relative_to(tree.root)}"
