"""
Tests for the preparation tasks and their concurrent runner.
"""

import asyncio
import io
import threading
import zipfile
from pathlib import Path

import httpx
import pytest

from conftest import make_plugin_zip

from cms_deployer.assembly import StagedTree
from cms_deployer.core.exceptions import PreparationTaskError
from cms_deployer.models.config import DeploymentManifest
from cms_deployer.platforms import LayoutDetector
from cms_deployer.preparation import (
    HOOK_FILE_NAME,
    HookInjectionTask,
    PluginInstallTask,
    PluginRemovalTask,
    PreparationTask,
    PreparationTaskRunner,
    render_hook,
)

ARCHIVE_URL = "https://downloads.example/plugin.zip"


@pytest.fixture
def staged_tree(tmp_path: Path) -> StagedTree:
    """A minimal staged tree with two plugins."""
    root = tmp_path / "staging"
    plugins = root / "wp-content" / "plugins"
    (plugins / "akismet").mkdir(parents=True)
    (plugins / "akismet" / "akismet.php").write_text("<?php")
    (plugins / "hello.php").write_text("<?php")
    (plugins / "keep-me").mkdir()
    (root / "wp-config.php").write_text("<?php")
    layout = LayoutDetector().detect(root)
    return StagedTree(root=root, web_root=root, config_file=root / "wp-config.php", layout=layout)


def transport_returning(status: int, content: bytes = b"") -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=content)
    return httpx.MockTransport(handler)


class SlowTask(PreparationTask):
    """Sleeps, then records that it finished."""

    def __init__(self, name: str, delay: float):
        super().__init__()
        self.name = name
        self.delay = delay
        self.finished = False

    async def execute(self, tree: StagedTree) -> str:
        await asyncio.sleep(self.delay)
        self.finished = True
        return f"{self.name} done"


class FailingTask(PreparationTask):
    """Fails immediately."""

    name = "failing"

    async def execute(self, tree: StagedTree) -> str:
        raise RuntimeError("download refused")


class TestPluginInstallTask:
    """Test plugin download and extraction."""

    @pytest.mark.asyncio
    async def test_install(self, staged_tree, plugin_transport):
        task = PluginInstallTask(ARCHIVE_URL, transport=plugin_transport)

        message = await task.execute(staged_tree)

        plugin = staged_tree.plugins_dir / "amazon-s3-and-cloudfront"
        assert (plugin / "amazon-s3-and-cloudfront.php").is_file()
        assert "amazon-s3-and-cloudfront" in message
        assert not (staged_tree.plugins_dir / ".plugin-install.zip").exists()

    @pytest.mark.asyncio
    async def test_http_error_raises_and_cleans_up(self, staged_tree):
        task = PluginInstallTask(ARCHIVE_URL, transport=transport_returning(404))

        with pytest.raises(httpx.HTTPStatusError):
            await task.execute(staged_tree)

        assert not (staged_tree.plugins_dir / ".plugin-install.zip").exists()

    @pytest.mark.asyncio
    async def test_corrupt_archive(self, staged_tree):
        task = PluginInstallTask(ARCHIVE_URL, transport=transport_returning(200, b"not a zip"))

        with pytest.raises(zipfile.BadZipFile):
            await task.execute(staged_tree)

    @pytest.mark.asyncio
    async def test_archive_escaping_plugins_dir_rejected(self, staged_tree):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("../../evil.php", "<?php")
        task = PluginInstallTask(ARCHIVE_URL, transport=transport_returning(200, buffer.getvalue()))

        with pytest.raises(zipfile.BadZipFile):
            await task.execute(staged_tree)

        assert not (staged_tree.root / "evil.php").exists()

    def test_extraction_stops_once_cancelled(self, tmp_path):
        """Test a worker thread left behind by a timed-out task writes nothing more."""
        archive = tmp_path / "plugin.zip"
        archive.write_bytes(make_plugin_zip())
        destination = tmp_path / "plugins"
        destination.mkdir()
        cancelled = threading.Event()
        cancelled.set()

        installed = PluginInstallTask._extract(archive, destination, cancelled)

        assert installed == []
        assert list(destination.iterdir()) == []


class TestPluginRemovalTask:
    """Test plugin removal."""

    @pytest.mark.asyncio
    async def test_removes_present_plugins(self, staged_tree):
        task = PluginRemovalTask(["akismet", "hello.php", "hello-dolly"])

        message = await task.execute(staged_tree)

        assert not (staged_tree.plugins_dir / "akismet").exists()
        assert not (staged_tree.plugins_dir / "hello.php").exists()
        assert (staged_tree.plugins_dir / "keep-me").is_dir()
        assert message == "removed akismet, hello.php"

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, staged_tree):
        assert await PluginRemovalTask(["absent"]).execute(staged_tree) == "no plugins to remove"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["../wp-config.php", "", ".."])
    async def test_invalid_names_rejected(self, staged_tree, name):
        with pytest.raises(ValueError):
            await PluginRemovalTask([name]).execute(staged_tree)

        assert (staged_tree.root / "wp-config.php").exists()


class TestHookInjectionTask:
    """Test the must-use plugin."""

    @pytest.mark.asyncio
    async def test_writes_mu_plugin(self, staged_tree):
        task = HookInjectionTask("site.example", "site.example", "us-east-1")

        await task.execute(staged_tree)

        hook = staged_tree.content_dir / "mu-plugins" / HOOK_FILE_NAME
        assert hook.read_text(encoding='utf-8') == render_hook("site.example", "site.example", "us-east-1")

    def test_render_hook(self):
        content = render_hook("site.example", "bucket.example", "eu-west-1")

        assert content.startswith("<?php")
        assert "return 'https://site.example';" in content
        assert "add_filter('option_home'" in content
        assert "add_filter('option_siteurl'" in content
        assert "remove_filter('template_redirect', 'redirect_canonical');" in content
        assert "add_action('save_post'" in content
        assert "'Bucket' => 'bucket.example'" in content
        assert "'region' => 'eu-west-1'" in content
        assert "/.invalidations'" in content

    def test_hook_prefers_offload_media_sdk(self):
        """Test the SDK bundled with WP Offload Media is tried before a site-wide one."""
        content = render_hook("site.example", "site.example", "us-east-1")

        offload = content.index(r"'DeliciousBrains\WP_Offload_Media\Aws3\Aws\S3\S3Client'")
        sdk = content.index(r"'Aws\S3\S3Client'")
        assert offload < sdk
        assert "new $client_class(" in content
        assert "new \\Aws" not in content


class TestPreparationTaskRunner:
    """Test concurrent execution and the join-before-fail rule."""

    @pytest.mark.asyncio
    async def test_task_run_captures_failure(self, staged_tree):
        result = await FailingTask().run(staged_tree)

        assert result.name == "failing"
        assert not result.success
        assert result.message == "RuntimeError: download refused"
        assert result.duration >= 0

    @pytest.mark.asyncio
    async def test_all_tasks_succeed(self, staged_tree):
        tasks = [SlowTask("a", 0.01), SlowTask("b", 0.02), SlowTask("c", 0)]

        report = await PreparationTaskRunner(tasks).run(staged_tree)

        assert report.success
        assert [result.name for result in report.results] == ["a", "b", "c"]
        assert all(task.finished for task in tasks)
        report.raise_for_failures()

    @pytest.mark.asyncio
    async def test_failure_waits_for_other_tasks(self, staged_tree):
        """Test that one task failing does not cut the others short."""
        slow_b = SlowTask("b", 0.05)
        slow_c = SlowTask("c", 0.1)

        report = await PreparationTaskRunner([FailingTask(), slow_b, slow_c]).run(staged_tree)

        assert slow_b.finished and slow_c.finished
        assert not report.success
        assert [result.name for result in report.failed] == ["failing"]
        assert "download refused" in report.failed[0].message

        with pytest.raises(PreparationTaskError) as exc_info:
            report.raise_for_failures()
        assert exc_info.value.failed_tasks == ["failing"]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failure(self, staged_tree):
        report = await PreparationTaskRunner([SlowTask("slow", 5), SlowTask("fast", 0)], timeout=0.05).run(staged_tree)

        assert [result.name for result in report.failed] == ["slow"]
        assert "timed out" in report.failed[0].message

    @pytest.mark.asyncio
    async def test_from_manifest(self, staged_tree, make_config, standard_site, plugin_transport):
        """Test the standard three tasks against a staged tree."""
        config = make_config(standard_site, remove_plugins=["akismet"])
        manifest = DeploymentManifest.build(config, LayoutDetector().detect(standard_site))
        runner = PreparationTaskRunner.from_manifest(manifest, timeout=5, transport=plugin_transport)

        report = await runner.run(staged_tree)

        assert report.success
        assert [result.name for result in report.results] == ["plugin-install", "plugin-removal", "hook-injection"]
        assert (staged_tree.plugins_dir / "amazon-s3-and-cloudfront").is_dir()
        assert not (staged_tree.plugins_dir / "akismet").exists()
        assert (staged_tree.content_dir / "mu-plugins" / HOOK_FILE_NAME).is_file()
