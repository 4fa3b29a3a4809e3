"""
Pipeline orchestration.
"""

from .pipeline import PipelineCoordinator, PipelineResult, PipelineState

__all__ = [
    'PipelineCoordinator',
    'PipelineResult',
    'PipelineState',
]
