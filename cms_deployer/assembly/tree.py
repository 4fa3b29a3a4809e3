"""
Staging tree assembly.

Copies a WordPress installation into the staging directory following the
rules of its layout, then rewrites the staged wp-config.php so database
settings can be overridden at runtime.
"""

import fnmatch
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from ..core.exceptions import AssemblyIOError, ConfigShapeUnrecognized
from ..models.config import DeploymentManifest, NODEPLOY_MARKER
from ..platforms.layout import (
    CONFIG_FILE_NAME,
    DEPENDENCY_DIR_NAME,
    FRAMEWORK_FILE_NAME,
    LOCK_FILE_NAME,
    SETTINGS_FILE_NAME,
    ExtendedLayout,
    SiteLayout,
)
from ..platforms.wp_config import ConfigRewriter
from .artifacts import ArtifactRegistry
from .installer import DependencyInstaller

logger = logging.getLogger(__name__)

UPLOADS_DIR_NAME = "uploads"
NESTING_SUFFIX = ".nesting"

IgnoreFilter = Callable[[str, List[str]], Set[str]]


@dataclass
class StagedTree:
    """The assembled staging directory."""
    root: Path
    web_root: Path
    config_file: Path
    layout: SiteLayout

    @property
    def content_dir(self) -> Path:
        return self.web_root / self.layout.content_dir_name

    @property
    def plugins_dir(self) -> Path:
        return self.content_dir / "plugins"


class TreeAssembler:
    """Builds the staging directory for one deployment run."""

    def __init__(
        self,
        manifest: DeploymentManifest,
        rewriter: ConfigRewriter,
        installer: Optional[DependencyInstaller] = None,
        artifacts: Optional[ArtifactRegistry] = None
    ):
        self.manifest = manifest
        self.rewriter = rewriter
        self.installer = installer or DependencyInstaller()
        self.artifacts = artifacts if artifacts is not None else ArtifactRegistry()
        self.staging_root = Path(manifest.staging_root).resolve()

    async def assemble(self, layout: SiteLayout) -> StagedTree:
        """
        Populate the staging directory for ``layout``.

        Raises:
            ConfigShapeUnrecognized: If wp-config.php cannot be rewritten
            AssemblyIOError: If copying fails
        """
        self._preflight(layout)

        try:
            self._reset_staging()
            if isinstance(layout, ExtendedLayout):
                tree = await self._assemble_extended(layout)
            else:
                tree = self._assemble_standard(layout)
            self.rewriter.rewrite_file(tree.config_file)
        except OSError as e:
            raise AssemblyIOError("copy", str(getattr(e, 'filename', None) or self.staging_root), str(e))

        logger.info(f"Assembled {layout.kind} layout into {tree.root}")
        return tree

    def _preflight(self, layout: SiteLayout) -> None:
        try:
            content = layout.config_file.read_text(encoding='utf-8', errors='surrogateescape')
        except OSError as e:
            raise AssemblyIOError("read", str(layout.config_file), str(e))

        reason = self.rewriter.check(content)
        if reason:
            raise ConfigShapeUnrecognized(str(layout.config_file), reason)

    def _reset_staging(self) -> None:
        if self.staging_root.exists():
            logger.debug(f"Removing previous staging directory {self.staging_root}")
            shutil.rmtree(self.staging_root)
        self.staging_root.mkdir(parents=True)

    def _assemble_standard(self, layout: SiteLayout) -> StagedTree:
        self._copy_wordpress_root(layout, self.staging_root)
        return StagedTree(
            root=self.staging_root,
            web_root=self.staging_root,
            config_file=self.staging_root / CONFIG_FILE_NAME,
            layout=layout,
        )

    async def _assemble_extended(self, layout: ExtendedLayout) -> StagedTree:
        self._copy_wordpress_root(layout, self.staging_root)
        web_root = self._nest_staging(layout.source_root.name)

        shutil.copy2(layout.framework_file, self.staging_root / FRAMEWORK_FILE_NAME)
        if layout.settings_file is not None:
            shutil.copy2(layout.settings_file, self.staging_root / SETTINGS_FILE_NAME)

        dependency_dir = layout.dependency_dir
        if layout.needs_dependency_install:
            # A failed install can still leave a partial vendor/ behind.
            self.artifacts.register(dependency_dir, "resolved dependency directory")
            dependency_dir = await self.installer.install(layout.project_root)
            if dependency_dir != layout.dependency_dir:
                self.artifacts.register(dependency_dir, "resolved dependency directory")

        if dependency_dir.is_dir():
            shutil.copytree(dependency_dir, self.staging_root / DEPENDENCY_DIR_NAME, symlinks=True)
        else:
            logger.warning(f"No {DEPENDENCY_DIR_NAME} directory in {layout.project_root}")

        shutil.copytree(
            layout.project_root,
            self.staging_root,
            ignore=self._make_filter(
                base=layout.project_root,
                skip_paths=[layout.source_root, dependency_dir, self._nesting_path()],
                reserved_names={FRAMEWORK_FILE_NAME, LOCK_FILE_NAME, SETTINGS_FILE_NAME},
            ),
            symlinks=True,
            dirs_exist_ok=True,
        )

        return StagedTree(
            root=self.staging_root,
            web_root=web_root,
            config_file=web_root / CONFIG_FILE_NAME,
            layout=layout,
        )

    def _copy_wordpress_root(self, layout: SiteLayout, destination: Path) -> None:
        source_root = layout.source_root
        content_name = layout.content_dir_name
        shutil.copy2(layout.config_file, destination / CONFIG_FILE_NAME)

        content_dir = source_root / content_name
        if content_dir.is_dir():
            skip = [] if self.manifest.bundle_uploads else [content_dir / UPLOADS_DIR_NAME]
            shutil.copytree(
                content_dir,
                destination / content_name,
                ignore=self._make_filter(base=content_dir, skip_paths=skip),
                symlinks=True,
                dirs_exist_ok=True,
            )
        else:
            logger.warning(f"No {content_name} directory in {source_root}")

        shutil.copytree(
            source_root,
            destination,
            ignore=self._make_filter(
                base=source_root,
                reserved_names={CONFIG_FILE_NAME},
                reserved_prefixes=(content_name,),
            ),
            symlinks=True,
            dirs_exist_ok=True,
        )

    def _nesting_path(self) -> Path:
        return self.staging_root.with_name(self.staging_root.name + NESTING_SUFFIX)

    def _nest_staging(self, web_root_name: str) -> Path:
        """Move the staged WordPress root to ``staging/<web_root_name>``."""
        temporary = self._nesting_path()
        if temporary.exists():
            shutil.rmtree(temporary)

        self.artifacts.register(temporary, "nesting directory")
        self.staging_root.rename(temporary)
        self.staging_root.mkdir()
        web_root = self.staging_root / web_root_name
        shutil.move(str(temporary), str(web_root))
        self.artifacts.forget(temporary)
        return web_root

    def _make_filter(
        self,
        base: Path,
        skip_paths: Iterable[Path] = (),
        reserved_names: Optional[Set[str]] = None,
        reserved_prefixes: tuple = ()
    ) -> IgnoreFilter:
        base = Path(base).resolve()
        skipped = {Path(p).resolve() for p in skip_paths}
        skipped.add(self.staging_root)
        skipped.add(self._nesting_path())
        reserved_names = reserved_names or set()
        includes = self.manifest.include_globs
        excludes = self.manifest.exclude_globs

        def ignore(directory: str, names: List[str]) -> Set[str]:
            ignored = set()
            for name in names:
                path = Path(directory).resolve() / name
                if path in skipped:
                    ignored.add(name)
                    continue

                relative = path.relative_to(base).as_posix()
                if any(fnmatch.fnmatch(name, pattern) for pattern in includes):
                    continue

                if name == NODEPLOY_MARKER or (path.is_dir() and (path / NODEPLOY_MARKER).exists()):
                    ignored.add(name)
                elif relative in reserved_names:
                    ignored.add(name)
                elif any(relative == p or relative.startswith(p + "/") for p in reserved_prefixes):
                    ignored.add(name)
                elif any(
                    fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(relative, pattern)
                    for pattern in excludes
                ):
                    ignored.add(name)
            return ignored

        return ignore
