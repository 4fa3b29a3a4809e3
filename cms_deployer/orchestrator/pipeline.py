"""
Deployment pipeline coordinator.

Runs the stages strictly in order:

    DETECTING -> ASSEMBLING -> PREPARING -> HANDING_OFF -> RECONCILING -> DONE

Artifacts that assembly leaves in the source tree are removed when the run
ends, whatever the outcome. A failure while assembling, preparing or handing
off moves the run to FAILED and, unless asked to keep it, removes the
staging directory. Errors from outside the deployer's own exception
hierarchy are wrapped in StageError so they follow the same path. DNS
reconciliation is advisory: its outcome never fails a run.

Only one run may target a given staging directory at a time. This is not
enforced in-process; each CLI invocation owns its staging directory.
"""

import shutil
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..assembly import ArtifactRegistry, DependencyInstaller, StagedTree, TreeAssembler
from ..core.exceptions import CMSDeployerError, StageError
from ..deployment import CommandExecutor, DeploymentExecutor, DeploymentHandoff, EndpointDescriptor
from ..models.config import DeployConfig, DeploymentManifest
from ..platforms import ConfigRewriter, LayoutDetector, SiteLayout
from ..preparation import PreparationReport, PreparationTaskRunner
from ..reconciliation import DNSReconciler, DNSReport, DNSResolver, DnsPythonResolver
from ..utils.helpers import validate_environment_label
from ..utils.logging import DeployLogger, LogCategory


class PipelineState(str, Enum):
    """Pipeline stages."""
    DETECTING = "detecting"
    ASSEMBLING = "assembling"
    PREPARING = "preparing"
    HANDING_OFF = "handing_off"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""
    run_id: str
    state: PipelineState = PipelineState.DETECTING
    history: List[PipelineState] = field(default_factory=list)
    layout: Optional[SiteLayout] = None
    manifest: Optional[DeploymentManifest] = None
    staged_tree: Optional[StagedTree] = None
    preparation: Optional[PreparationReport] = None
    endpoint: Optional[EndpointDescriptor] = None
    dns_report: Optional[DNSReport] = None
    failed_stage: Optional[PipelineState] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_details: Dict[str, Any] = field(default_factory=dict)
    cleaned_up: List[Path] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.state == PipelineState.DONE


class PipelineCoordinator:
    """Sequences the deployment stages and owns the failure policy."""

    def __init__(
        self,
        config: DeployConfig,
        detector: Optional[LayoutDetector] = None,
        executor: Optional[DeploymentExecutor] = None,
        resolver: Optional[DNSResolver] = None,
        installer: Optional[DependencyInstaller] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        run_id: Optional[str] = None,
        structured_logging: bool = False
    ):
        self.config = config
        self.detector = detector or LayoutDetector()
        self.executor = executor or CommandExecutor(config.deploy_command)
        self.resolver = resolver
        self.installer = installer or DependencyInstaller(config.composer_command)
        self.transport = transport
        self.run_id = run_id or f"deploy_{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"
        self.log = DeployLogger(self.run_id, structured=structured_logging)
        self._stage_started = 0.0

    async def run(self) -> PipelineResult:
        """
        Run the pipeline once.

        Raises:
            InvalidEnvironmentLabel: Before any stage starts
        """
        validate_environment_label(self.config.environment)

        started = time.monotonic()
        result = PipelineResult(run_id=self.run_id)

        self._enter(result, PipelineState.DETECTING)
        result.layout = self.detector.detect(self.config.source_root)
        result.manifest = DeploymentManifest.build(self.config, result.layout)
        self._complete(result)

        artifacts = ArtifactRegistry()
        error: Optional[CMSDeployerError] = None
        try:
            async with artifacts:
                await self._deploy(result, artifacts)
        except CMSDeployerError as e:
            error = e
        except Exception as e:
            error = StageError(result.state.value, e)

        if error is not None:
            self._fail(result, error, artifacts)
            result.duration = time.monotonic() - started
            return result

        result.cleaned_up.extend(artifacts.removed)

        self._enter(result, PipelineState.RECONCILING)
        reconciler = DNSReconciler(self.resolver or DnsPythonResolver(timeout=self.config.dns_timeout))
        result.dns_report = await reconciler.reconcile(result.endpoint.target, result.manifest.hostnames)
        self._complete(result)
        for line in result.dns_report.lines:
            self.log.info(line, category=LogCategory.DNS)

        result.state = PipelineState.DONE
        result.history.append(PipelineState.DONE)
        result.duration = time.monotonic() - started
        self.log.info(f"Deployment {self.run_id} done in {result.duration:.1f}s")
        return result

    async def _deploy(self, result: PipelineResult, artifacts: ArtifactRegistry) -> None:
        manifest = result.manifest

        self._enter(result, PipelineState.ASSEMBLING)
        assembler = TreeAssembler(
            manifest,
            ConfigRewriter(
                require_ssl=self.config.require_ssl,
                require_host=self.config.require_db_host,
            ),
            installer=self.installer,
            artifacts=artifacts,
        )
        result.staged_tree = await assembler.assemble(result.layout)
        self._complete(result)

        self._enter(result, PipelineState.PREPARING)
        runner = PreparationTaskRunner.from_manifest(
            manifest,
            timeout=self.config.task_timeout,
            transport=self.transport,
        )
        result.preparation = await runner.run(result.staged_tree)
        result.preparation.raise_for_failures()
        self._complete(result)

        self._enter(result, PipelineState.HANDING_OFF)
        handoff = DeploymentHandoff(self.executor)
        result.endpoint = await handoff.handoff(
            result.staged_tree.root,
            manifest.environment,
            manifest.region,
            verbose=self.config.verbose,
        )
        self._complete(result)

    def _enter(self, result: PipelineResult, state: PipelineState) -> None:
        result.state = state
        result.history.append(state)
        self._stage_started = time.monotonic()
        self.log.stage_start(state.value)

    def _complete(self, result: PipelineResult) -> None:
        self.log.stage_complete(result.state.value, time.monotonic() - self._stage_started)

    def _fail(self, result: PipelineResult, error: CMSDeployerError, artifacts: ArtifactRegistry) -> None:
        result.failed_stage = result.state
        result.error = error.message
        result.error_code = error.code
        result.error_details = dict(error.details)
        self.log.stage_failed(result.state.value, error.message, error_code=error.code)

        result.cleaned_up.extend(artifacts.removed)
        if not self.config.keep_staging_on_failure:
            self._remove_staging(result)

        result.state = PipelineState.FAILED
        result.history.append(PipelineState.FAILED)

    def _remove_staging(self, result: PipelineResult) -> None:
        staging = self.config.staging_root
        if not staging.exists():
            return
        try:
            shutil.rmtree(staging)
            result.cleaned_up.append(staging)
            self.log.info(f"Removed staging directory {staging}")
        except OSError as e:
            self.log.warning(f"Failed to remove staging directory {staging}: {e}")
