"""
wp-config.php rewriting.

Database declarations are rewritten so that, at runtime, each value comes
from an environment variable of the same name and falls back to the value
originally written in the file:

    define('DB_NAME', 'wp_prod');
    define('DB_NAME', getenv('DB_NAME') ?: 'wp_prod');

Patterns only match the original declaration forms, so rewriting a file
twice leaves it unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Match, Optional, Pattern

from ..core.exceptions import ConfigShapeUnrecognized

logger = logging.getLogger(__name__)

DB_NAME = "DB_NAME"
OPTIONAL_CONSTANTS = ("DB_USER", "DB_PASSWORD", "DB_HOST")
SSL_DECLARATION = "define('MYSQL_CLIENT_FLAGS', MYSQLI_CLIENT_SSL);"


def _literal_pattern(constant: str) -> Pattern:
    return re.compile(
        r"(define\s*\(\s*)(['\"])(" + constant + r")\2(\s*,\s*)"
        r"(['\"])((?:\\.|(?!\5).)*)\5"
    )


def _derived_pattern(constant: str) -> Pattern:
    # define('DB_NAME', env('DB_NAME')) and similar computed values
    return re.compile(
        r"(define\s*\(\s*)(['\"])(" + constant + r")\2(\s*,\s*)"
        r"(?!getenv\s*\()([A-Za-z_\\][\w\\:]*\s*\()"
    )


def _rewritten_pattern(constant: str) -> Pattern:
    return re.compile(
        r"define\s*\(\s*(['\"])" + constant + r"\1\s*,\s*getenv\s*\("
    )


def _declaration_line_pattern(constant: str) -> Pattern:
    return re.compile(
        r"^([ \t]*)[^\n]*define\s*\(\s*(['\"])" + constant + r"\2",
        re.MULTILINE
    )


def _literal_replacement(match: Match) -> str:
    prefix, quote, constant, separator, value_quote, value = match.groups()
    return (
        f"{prefix}{quote}{constant}{quote}{separator}"
        f"getenv({quote}{constant}{quote}) ?: {value_quote}{value}{value_quote}"
    )


def _derived_replacement(match: Match) -> str:
    prefix, quote, constant, separator, call = match.groups()
    return (
        f"{prefix}{quote}{constant}{quote}{separator}"
        f"getenv({quote}{constant}{quote}) ?: {call}"
    )


@dataclass
class PatchRule:
    """A single text substitution applied to wp-config.php.

    Required rules cover the declaration that must be present in one of its
    known forms; optional rules are skipped when nothing matches.
    """
    name: str
    pattern: Pattern
    replacement: Callable[[Match], str]
    required: bool = False

    def apply(self, content: str) -> tuple:
        """Apply the rule at most once; returns (content, applied)."""
        new_content, count = self.pattern.subn(self.replacement, content, count=1)
        return new_content, count > 0


ConfigPatch = List[PatchRule]


def build_patch() -> ConfigPatch:
    """Return the ordered override/fallback rules for database declarations."""
    rules = [PatchRule(f"{DB_NAME}:literal", _literal_pattern(DB_NAME), _literal_replacement, required=True)]
    for constant in OPTIONAL_CONSTANTS:
        rules.append(PatchRule(f"{constant}:literal", _literal_pattern(constant), _literal_replacement))
    rules.append(PatchRule(f"{DB_NAME}:derived", _derived_pattern(DB_NAME), _derived_replacement, required=True))
    return rules


@dataclass
class RewriteResult:
    """Outcome of a configuration rewrite."""
    content: str
    success: bool
    reason: Optional[str] = None
    applied: List[str] = field(default_factory=list)


class ConfigRewriter:
    """Rewrites database declarations to read runtime overrides."""

    def __init__(self, require_ssl: bool = False, require_host: bool = False):
        self.require_ssl = require_ssl
        self.require_host = require_host
        self.patch = build_patch()

    def check(self, content: str) -> Optional[str]:
        """Return a failure reason for content that cannot be rewritten, else None."""
        has_name = _rewritten_pattern(DB_NAME).search(content) is not None or any(
            rule.pattern.search(content) for rule in self.patch if rule.required
        )
        if not has_name:
            return "no DB_NAME declaration in a known form"

        if self.require_host and not _declaration_line_pattern("DB_HOST").search(content):
            return "DB_HOST declaration is required but missing"

        return None

    def rewrite(self, content: str) -> RewriteResult:
        """
        Rewrite wp-config.php content.

        Args:
            content: Original file content

        Returns:
            RewriteResult with the rewritten content and verdict
        """
        reason = self.check(content)
        if reason:
            return RewriteResult(content=content, success=False, reason=reason)

        applied = []

        if self.require_ssl and "MYSQL_CLIENT_FLAGS" not in content:
            content = self._insert_ssl_flag(content)
            applied.append("MYSQL_CLIENT_FLAGS")

        name_literal_applied = False
        for rule in self.patch:
            if rule.name == f"{DB_NAME}:derived" and name_literal_applied:
                continue
            content, did_apply = rule.apply(content)
            if did_apply:
                applied.append(rule.name)
                if rule.name == f"{DB_NAME}:literal":
                    name_literal_applied = True

        for constant in OPTIONAL_CONSTANTS:
            if f"{constant}:literal" not in applied:
                logger.debug(f"{constant} not rewritten (absent or already rewritten)")

        return RewriteResult(content=content, success=True, applied=applied)

    def rewrite_file(self, path: Path) -> RewriteResult:
        """
        Rewrite a wp-config.php file in place.

        Bytes that are not valid UTF-8 (a latin-1 password, say) are carried
        through unchanged.

        Raises:
            ConfigShapeUnrecognized: If the file cannot be rewritten
        """
        path = Path(path)
        result = self.rewrite(path.read_text(encoding='utf-8', errors='surrogateescape'))
        if not result.success:
            raise ConfigShapeUnrecognized(str(path), result.reason)

        path.write_text(result.content, encoding='utf-8', errors='surrogateescape')
        logger.info(f"Rewrote {path.name}: {', '.join(result.applied) or 'no changes'}")
        return result

    def _insert_ssl_flag(self, content: str) -> str:
        match = _declaration_line_pattern(DB_NAME).search(content)
        indent = match.group(1)
        position = match.start()
        return content[:position] + f"{indent}{SSL_DECLARATION}\n" + content[position:]
