"""
DNS reconciliation after a deployment.

Every hostname of interest should be a CNAME to the deployed endpoint.
Each hostname is checked on its own; a failed lookup only affects the
line reported for that hostname.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver

from ..core.exceptions import ReconciliationLookupError
from ..utils.helpers import normalize_hostname

logger = logging.getLogger(__name__)


class RecordState(str, Enum):
    """Reconciliation state of one hostname."""
    MATCH = "match"
    MISMATCH = "mismatch"
    WRONG_TYPE = "wrong_type"
    MISSING = "missing"
    UNKNOWN = "unknown"


@dataclass
class DNSRecordCheck:
    """Live DNS state of one hostname compared to the expected target."""
    hostname: str
    expected_target: str
    record_type: Optional[str] = None
    observed_value: Optional[str] = None
    state: RecordState = RecordState.UNKNOWN
    error: Optional[str] = None

    @property
    def required_record(self) -> str:
        return f"CNAME {self.hostname} -> {self.expected_target}"

    @property
    def action_required(self) -> bool:
        return self.state != RecordState.MATCH

    def report_line(self) -> str:
        """Render a human-actionable line for this hostname."""
        if self.state == RecordState.MATCH:
            return f"{self.hostname}: OK ({self.required_record})"
        if self.state == RecordState.MISMATCH:
            return (
                f"{self.hostname}: CNAME points to {self.observed_value}, "
                f"expected {self.expected_target}; update to {self.required_record}"
            )
        if self.state == RecordState.WRONG_TYPE:
            return (
                f"{self.hostname}: A record {self.observed_value} found; "
                f"replace it with {self.required_record}"
            )
        if self.state == RecordState.MISSING:
            return f"{self.hostname}: no record found; create {self.required_record}"
        return f"{self.hostname}: could not determine DNS state ({self.error})"


@dataclass
class DNSReport:
    """Reconciliation result for all hostnames, in request order."""
    expected_target: str
    checks: List[DNSRecordCheck] = field(default_factory=list)

    @property
    def lines(self) -> List[str]:
        return [check.report_line() for check in self.checks]

    @property
    def all_match(self) -> bool:
        return all(check.state == RecordState.MATCH for check in self.checks)


class DNSResolver(ABC):
    """Read-only DNS lookups."""

    @abstractmethod
    async def lookup(self, hostname: str, record_type: str) -> Optional[str]:
        """
        Look up one record.

        Returns:
            The first record value, or None when the name has no such record

        Raises:
            ReconciliationLookupError: If the lookup could not be completed
        """
        pass


class DnsPythonResolver(DNSResolver):
    """Resolver backed by dnspython's asyncio resolver."""

    def __init__(self, timeout: float = 10.0, resolver: Optional[dns.asyncresolver.Resolver] = None):
        self._resolver = resolver or dns.asyncresolver.Resolver()
        self._resolver.lifetime = timeout

    async def lookup(self, hostname: str, record_type: str) -> Optional[str]:
        try:
            answer = await self._resolver.resolve(hostname, record_type)
        except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
            return None
        except dns.exception.DNSException as e:
            raise ReconciliationLookupError(hostname, record_type, str(e) or e.__class__.__name__)

        for rdata in answer:
            if record_type == "CNAME":
                return rdata.target.to_text()
            return rdata.to_text()
        return None


class DNSReconciler:
    """Compares live DNS records with the deployed endpoint."""

    def __init__(self, resolver: Optional[DNSResolver] = None):
        self.resolver = resolver or DnsPythonResolver()

    async def reconcile(self, expected_target: str, hostnames: List[str]) -> DNSReport:
        """
        Check every hostname concurrently.

        Args:
            expected_target: Canonical hostname of the deployed endpoint
            hostnames: Hostnames that should alias the endpoint

        Returns:
            DNSReport with one check per hostname
        """
        expected_target = normalize_hostname(expected_target)
        checks = await asyncio.gather(*(self.check(hostname, expected_target) for hostname in hostnames))
        report = DNSReport(expected_target=expected_target, checks=list(checks))

        for check in report.checks:
            if check.state == RecordState.UNKNOWN:
                logger.warning(check.report_line())
            else:
                logger.info(check.report_line())

        return report

    async def check(self, hostname: str, expected_target: str) -> DNSRecordCheck:
        """Determine the reconciliation state of one hostname."""
        check = DNSRecordCheck(hostname=hostname, expected_target=normalize_hostname(expected_target))

        try:
            cname = await self.resolver.lookup(hostname, "CNAME")
            if cname is not None:
                check.record_type = "CNAME"
                check.observed_value = normalize_hostname(cname)
                if check.observed_value == check.expected_target:
                    check.state = RecordState.MATCH
                else:
                    check.state = RecordState.MISMATCH
                return check

            address = await self.resolver.lookup(hostname, "A")
            if address is not None:
                check.record_type = "A"
                check.observed_value = address
                check.state = RecordState.WRONG_TYPE
            else:
                check.state = RecordState.MISSING
        except (ReconciliationLookupError, OSError) as e:
            check.state = RecordState.UNKNOWN
            check.error = str(e)

        return check
