"""
Source layout detection for WordPress installations.

A source is either a plain WordPress root or a Composer-managed project
(Bedrock style) where the WordPress web root sits inside a project
directory holding ``composer.json``, ``vendor/`` and an optional ``.env``.
Bedrock keeps themes and plugins in ``<web root>/app`` rather than
``wp-content``; the content directory name is carried on the layout.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..core.exceptions import ClassificationAmbiguous

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "wp-config.php"
EXTENDED_MARKER = "vendor/autoload.php"
FRAMEWORK_FILE_NAME = "composer.json"
SETTINGS_FILE_NAME = ".env"
LOCK_FILE_NAME = "composer.lock"
DEPENDENCY_DIR_NAME = "vendor"
CONTENT_DIR_NAME = "wp-content"
BEDROCK_CONTENT_DIR_NAME = "app"


@dataclass(frozen=True)
class StandardLayout:
    """A single WordPress root."""
    source_root: Path
    config_file: Path
    content_dir_name: str = CONTENT_DIR_NAME

    kind = "standard"


@dataclass(frozen=True)
class ExtendedLayout:
    """A WordPress web root nested in a Composer project."""
    source_root: Path
    config_file: Path
    project_root: Path
    framework_file: Path
    settings_file: Optional[Path]
    lock_file: Optional[Path]
    dependency_dir: Path
    content_dir_name: str = CONTENT_DIR_NAME

    kind = "extended"

    @property
    def needs_dependency_install(self) -> bool:
        """True when a lock file exists but dependencies were never resolved."""
        return self.lock_file is not None and not self.dependency_dir.is_dir()


SiteLayout = Union[StandardLayout, ExtendedLayout]


class LayoutDetector:
    """Classifies a source installation as a standard or extended layout."""

    def detect(self, source_root: Path) -> SiteLayout:
        """
        Detect the layout of the installation at ``source_root``.

        Args:
            source_root: WordPress root directory

        Returns:
            The detected layout; never raises for missing markers
        """
        source_root = Path(source_root).resolve()
        config_file = source_root / CONFIG_FILE_NAME

        try:
            return self._classify(source_root, config_file)
        except ClassificationAmbiguous as e:
            logger.debug(f"{e.message}; using standard layout")
            return StandardLayout(source_root=source_root, config_file=config_file)

    def _classify(self, source_root: Path, config_file: Path) -> SiteLayout:
        if not config_file.is_file():
            raise ClassificationAmbiguous(str(source_root), f"{CONFIG_FILE_NAME} not found")

        try:
            content = config_file.read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            raise ClassificationAmbiguous(str(source_root), f"cannot read {CONFIG_FILE_NAME}: {e}")

        project_root = source_root.parent
        framework_file = project_root / FRAMEWORK_FILE_NAME
        has_marker = EXTENDED_MARKER in content

        if has_marker and framework_file.is_file():
            settings_file = project_root / SETTINGS_FILE_NAME
            lock_file = project_root / LOCK_FILE_NAME
            layout = ExtendedLayout(
                source_root=source_root,
                config_file=config_file,
                project_root=project_root,
                framework_file=framework_file,
                settings_file=settings_file if settings_file.is_file() else None,
                lock_file=lock_file if lock_file.is_file() else None,
                dependency_dir=project_root / DEPENDENCY_DIR_NAME,
                content_dir_name=self._content_dir_name(source_root),
            )
            logger.info(f"Detected extended layout (project root {project_root})")
            return layout

        if has_marker:
            logger.debug(f"{EXTENDED_MARKER} referenced but {framework_file} is missing")

        logger.info(f"Detected standard layout at {source_root}")
        return StandardLayout(source_root=source_root, config_file=config_file)

    @staticmethod
    def _content_dir_name(source_root: Path) -> str:
        if not (source_root / CONTENT_DIR_NAME).is_dir() and (source_root / BEDROCK_CONTENT_DIR_NAME).is_dir():
            return BEDROCK_CONTENT_DIR_NAME
        return CONTENT_DIR_NAME
