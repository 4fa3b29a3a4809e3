"""
Concurrent execution of the preparation tasks.

All tasks are started together and always awaited to completion; the
report fails if any single task failed or timed out. A timed-out task is
cancelled; work it handed to a worker thread stops at its next check.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from ..assembly.tree import StagedTree
from ..core.exceptions import PreparationTaskError
from ..models.config import DeploymentManifest
from .tasks import HookInjectionTask, PluginInstallTask, PluginRemovalTask, PreparationTask, TaskResult

logger = logging.getLogger(__name__)


@dataclass
class PreparationReport:
    """Joined outcome of all preparation tasks."""
    results: List[TaskResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.results)

    @property
    def failed(self) -> List[TaskResult]:
        return [result for result in self.results if not result.success]

    def raise_for_failures(self) -> None:
        """Raise PreparationTaskError naming every failed task."""
        if self.failed:
            raise PreparationTaskError(
                [result.name for result in self.failed],
                {result.name: result.message or "failed" for result in self.failed}
            )


class PreparationTaskRunner:
    """Runs independent preparation tasks concurrently and joins them."""

    def __init__(self, tasks: List[PreparationTask], timeout: Optional[float] = None):
        self.tasks = tasks
        self.timeout = timeout

    @classmethod
    def from_manifest(
        cls,
        manifest: DeploymentManifest,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "PreparationTaskRunner":
        """Create the runner with the plugin install, removal and hook tasks."""
        return cls(
            tasks=[
                PluginInstallTask(manifest.plugin_archive_url, transport=transport),
                PluginRemovalTask(manifest.remove_plugins),
                HookInjectionTask(manifest.domain, manifest.website_bucket, manifest.region),
            ],
            timeout=timeout,
        )

    async def run(self, tree: StagedTree) -> PreparationReport:
        """
        Run every task against ``tree`` and wait for all of them.

        Returns:
            PreparationReport with one result per task, in task order
        """
        results = await asyncio.gather(*(self._run_task(task, tree) for task in self.tasks))
        report = PreparationReport(results=list(results))

        for result in report.results:
            if result.success:
                logger.info(f"Task {result.name} succeeded in {result.duration:.2f}s: {result.message}")
            else:
                logger.error(f"Task {result.name} failed: {result.message}")

        return report

    async def _run_task(self, task: PreparationTask, tree: StagedTree) -> TaskResult:
        try:
            return await asyncio.wait_for(task.run(tree), timeout=self.timeout)
        except asyncio.TimeoutError:
            return TaskResult(
                name=task.name,
                success=False,
                message=f"timed out after {self.timeout}s",
                duration=self.timeout,
            )
