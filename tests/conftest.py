"""
Pytest configuration and fixtures for the CMS Deployer tests.

This module provides on-disk WordPress installations in both layouts,
configuration factories, and in-memory stand-ins for the deployment
executor, the DNS resolver and the plugin download.
"""

import io
import zipfile
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

import httpx
import pytest

from cms_deployer.deployment import DeploymentExecutor, EndpointDescriptor
from cms_deployer.models.config import DeployConfig
from cms_deployer.reconciliation import DNSResolver


STANDARD_WP_CONFIG = """<?php
define('DB_NAME', 'wp_prod');
define('DB_USER', 'wp_user');
define('DB_PASSWORD', 's3cr3t');
define('DB_HOST', 'localhost');

$table_prefix = 'wp_';

if ( ! defined( 'ABSPATH' ) ) {
    define( 'ABSPATH', __DIR__ . '/' );
}
require_once ABSPATH . 'wp-settings.php';
"""

EXTENDED_WP_CONFIG = """<?php
require_once dirname(__DIR__) . '/vendor/autoload.php';

define('DB_NAME', env('DB_NAME'));
define('DB_USER', env('DB_USER'));
define('DB_PASSWORD', env('DB_PASSWORD'));

require_once ABSPATH . 'wp-settings.php';
"""

ENDPOINT_TARGET = "d123.cdn.example"


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Create ``files`` (relative path -> content) under ``root``."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding='utf-8')
    return root


def make_plugin_zip(top_level: str = "amazon-s3-and-cloudfront") -> bytes:
    """Build a small plugin archive in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        zf.writestr(f"{top_level}/{top_level}.php", "<?php /* Plugin Name: Offload */")
        zf.writestr(f"{top_level}/readme.txt", "readme")
    return buffer.getvalue()


@pytest.fixture
def standard_site(tmp_path: Path) -> Path:
    """A plain WordPress root."""
    return write_files(tmp_path / "site", {
        "wp-config.php": STANDARD_WP_CONFIG,
        "index.php": "<?php require __DIR__ . '/wp-blog-header.php';",
        ".invalidations": "/\n/blog/\n",
        "wp-includes/version.php": "<?php $wp_version = '6.4';",
        "wp-content/plugins/akismet/akismet.php": "<?php",
        "wp-content/plugins/hello-dolly/hello.php": "<?php",
        "wp-content/plugins/keep-me/keep-me.php": "<?php",
        "wp-content/themes/site/style.css": "/* Theme Name: Site */",
        "wp-content/uploads/2024/01/photo.jpg": "jpeg",
        "wp-content/debug.log": "noise",
        "drafts/.nodeploy": "",
        "drafts/notes.txt": "private",
    })


@pytest.fixture
def extended_site(tmp_path: Path) -> Path:
    """A Composer-managed project; returns the WordPress web root."""
    project = write_files(tmp_path / "project", {
        "composer.json": '{"name": "example/site"}',
        "composer.lock": '{"packages": []}',
        ".env": "DB_NAME=wp_prod\n",
        "vendor/autoload.php": "<?php",
        "config/application.php": "<?php",
        "web/wp-config.php": EXTENDED_WP_CONFIG,
        "web/index.php": "<?php",
        "web/wp-content/plugins/akismet/akismet.php": "<?php",
        "web/wp-content/themes/site/style.css": "/* Theme Name: Site */",
    })
    return project / "web"


@pytest.fixture
def make_config() -> Callable[..., DeployConfig]:
    """Factory for deployer configurations rooted at a site."""

    def _make(source_root: Path, **overrides) -> DeployConfig:
        values = {
            "source_root": source_root,
            "domain": "site.example",
            "website_bucket": "site.example",
            "environment": "O",
            "region": "us-east-1",
            "task_timeout": 5,
        }
        values.update(overrides)
        return DeployConfig(**values)

    return _make


@pytest.fixture
def plugin_transport() -> httpx.MockTransport:
    """Serves the plugin archive for any request."""
    archive = make_plugin_zip()

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=archive)

    return httpx.MockTransport(handler)


class FakeExecutor(DeploymentExecutor):
    """Records deploy calls and returns a fixed endpoint or raises."""

    def __init__(self, target: str = ENDPOINT_TARGET, error: Optional[Exception] = None):
        self.target = target
        self.error = error
        self.calls: List[Tuple[Path, str, str, bool]] = []

    async def deploy(self, staging_root: Path, environment: str, region: str, verbose: bool = False) -> EndpointDescriptor:
        self.calls.append((staging_root, environment, region, verbose))
        if self.error is not None:
            raise self.error
        return EndpointDescriptor(target=self.target, url=f"https://{self.target}")


class FakeResolver(DNSResolver):
    """Answers lookups from a table keyed by (hostname, record type)."""

    def __init__(self, records: Optional[Dict[Tuple[str, str], Union[str, Exception]]] = None):
        self.records = records or {}
        self.queries: List[Tuple[str, str]] = []

    async def lookup(self, hostname: str, record_type: str) -> Optional[str]:
        self.queries.append((hostname, record_type))
        value = self.records.get((hostname, record_type))
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver({
        ("site.example", "CNAME"): ENDPOINT_TARGET + ".",
    })
