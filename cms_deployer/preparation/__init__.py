"""
Preparation of the staged tree: plugin install and removal, hook injection.
"""

from .hook import HOOK_FILE_NAME, render_hook
from .runner import PreparationReport, PreparationTaskRunner
from .tasks import HookInjectionTask, PluginInstallTask, PluginRemovalTask, PreparationTask, TaskResult

__all__ = [
    'HOOK_FILE_NAME',
    'render_hook',
    'PreparationReport',
    'PreparationTaskRunner',
    'TaskResult',
    'HookInjectionTask',
    'PluginInstallTask',
    'PluginRemovalTask',
    'PreparationTask',
]
