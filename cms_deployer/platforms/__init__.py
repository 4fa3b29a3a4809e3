"""
WordPress source handling: layout detection and configuration rewriting.
"""

from .layout import LayoutDetector, SiteLayout, StandardLayout, ExtendedLayout
from .wp_config import ConfigRewriter, ConfigPatch, PatchRule, RewriteResult, build_patch

__all__ = [
    'LayoutDetector',
    'SiteLayout',
    'StandardLayout',
    'ExtendedLayout',
    'ConfigRewriter',
    'ConfigPatch',
    'PatchRule',
    'RewriteResult',
    'build_patch',
]
