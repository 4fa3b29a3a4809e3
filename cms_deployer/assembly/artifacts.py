"""
Tracking of files created in the source tree during assembly.

Extended layouts leave side effects next to the WordPress root (a resolved
``vendor/`` directory, a temporary directory used while nesting the staged
tree). Every such path is registered here and removed, newest first, when
the run ends, whether it succeeded or not.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


@dataclass
class Artifact:
    """A path created as a side effect of assembly."""
    path: Path
    description: str


class ArtifactRegistry:
    """Scope that removes registered artifacts when it exits."""

    def __init__(self):
        self._artifacts: List[Artifact] = []
        self.removed: List[Path] = []

    def __enter__(self) -> "ArtifactRegistry":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.release()
        return False

    async def __aenter__(self) -> "ArtifactRegistry":
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> bool:
        await asyncio.to_thread(self.release)
        return False

    def register(self, path: Path, description: str = "") -> None:
        """Register a path for removal when the scope exits."""
        self._artifacts.append(Artifact(Path(path), description or Path(path).name))
        logger.debug(f"Registered artifact {path}")

    def forget(self, path: Path) -> None:
        """Stop tracking a path that no longer exists or was handed over."""
        path = Path(path)
        self._artifacts = [a for a in self._artifacts if a.path != path]

    @property
    def artifacts(self) -> List[Artifact]:
        return list(self._artifacts)

    def release(self) -> List[Path]:
        """
        Remove all registered artifacts in reverse order of creation.

        Returns:
            Paths that were removed
        """
        removed = []
        while self._artifacts:
            artifact = self._artifacts.pop()
            path = artifact.path
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                elif path.exists() or path.is_symlink():
                    path.unlink()
                else:
                    continue
                removed.append(path)
                self.removed.append(path)
                logger.info(f"Removed {artifact.description}: {path}")
            except OSError as e:
                logger.warning(f"Failed to remove {artifact.description} at {path}: {e}")
        return removed
