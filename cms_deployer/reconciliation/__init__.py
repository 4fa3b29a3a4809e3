"""
DNS reconciliation of a finished deployment.
"""

from .reconciler import (
    DNSReconciler,
    DNSRecordCheck,
    DNSReport,
    DNSResolver,
    DnsPythonResolver,
    RecordState,
)

__all__ = [
    'DNSReconciler',
    'DNSRecordCheck',
    'DNSReport',
    'DNSResolver',
    'DnsPythonResolver',
    'RecordState',
]
