"""
Staging tree assembly.
"""

from .artifacts import Artifact, ArtifactRegistry
from .installer import DependencyInstaller
from .tree import StagedTree, TreeAssembler

__all__ = [
    'Artifact',
    'ArtifactRegistry',
    'DependencyInstaller',
    'StagedTree',
    'TreeAssembler',
]
