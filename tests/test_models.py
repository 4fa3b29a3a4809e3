"""
Tests for the deployer configuration and deployment manifest models.
"""

import pytest
from pydantic import ValidationError

from cms_deployer.models.config import (
    EXTENDED_EXCLUDES,
    INVALIDATION_LIST_NAME,
    STANDARD_EXCLUDES,
    DeployConfig,
    DeploymentManifest,
)
from cms_deployer.platforms import LayoutDetector


class TestDeployConfig:
    """Test the DeployConfig model."""

    def test_defaults(self, standard_site):
        """Test default values."""
        config = DeployConfig(source_root=standard_site, domain="site.example", website_bucket="site.example")

        assert config.region == "us-east-1"
        assert config.environment == "prod"
        assert config.logging_bucket == "site.example-logs"
        assert config.remove_plugins == ["akismet", "hello-dolly"]
        assert config.keep_staging_on_failure is False

    def test_explicit_logging_bucket_is_kept(self, standard_site):
        config = DeployConfig(
            source_root=standard_site,
            domain="site.example",
            website_bucket="site.example",
            logging_bucket="logs.example",
        )
        assert config.logging_bucket == "logs.example"

    def test_hostnames_are_normalized(self, standard_site):
        """Test hostnames are stripped, lower-cased and lose the root dot."""
        config = DeployConfig(source_root=standard_site, domain=" Site.Example. ", website_bucket="WWW.Site.Example")

        assert config.domain == "site.example"
        assert config.website_bucket == "www.site.example"

    def test_empty_domain_rejected(self, standard_site):
        with pytest.raises(ValidationError):
            DeployConfig(source_root=standard_site, domain="  ", website_bucket="site.example")

    @pytest.mark.parametrize("label", ["_", "123", "a b", "", "prod-1"])
    def test_invalid_environment_rejected(self, standard_site, label):
        """Test that invalid environment labels fail validation."""
        with pytest.raises(ValidationError):
            DeployConfig(
                source_root=standard_site,
                domain="site.example",
                website_bucket="site.example",
                environment=label,
            )

    @pytest.mark.parametrize("label", ["prod1", "O", "staging"])
    def test_valid_environment_accepted(self, standard_site, label):
        config = DeployConfig(
            source_root=standard_site,
            domain="site.example",
            website_bucket="site.example",
            environment=label,
        )
        assert config.environment == label

    def test_staging_root_relative_to_source(self, make_config, standard_site):
        config = make_config(standard_site)
        assert config.staging_root == standard_site.resolve() / ".serverless-build"

    def test_staging_root_absolute(self, make_config, standard_site, tmp_path):
        staging = tmp_path / "elsewhere"
        config = make_config(standard_site, staging_dir=str(staging))
        assert config.staging_root == staging

    def test_timeout_must_be_positive(self, make_config, standard_site):
        with pytest.raises(ValidationError):
            make_config(standard_site, task_timeout=0)


class TestDeploymentManifest:
    """Test manifest construction from configuration and layout."""

    def test_standard_manifest(self, make_config, standard_site):
        config = make_config(standard_site, exclude_patterns=["*.bak"])
        layout = LayoutDetector().detect(standard_site)

        manifest = DeploymentManifest.build(config, layout)

        assert manifest.environment == "O"
        assert manifest.region == "us-east-1"
        assert manifest.staging_root == config.staging_root
        assert manifest.include_globs == [INVALIDATION_LIST_NAME]
        assert manifest.exclude_globs == STANDARD_EXCLUDES + ["*.bak"]

    def test_extended_manifest_uses_extended_excludes(self, make_config, extended_site):
        config = make_config(extended_site)
        layout = LayoutDetector().detect(extended_site)

        manifest = DeploymentManifest.build(config, layout)

        assert manifest.exclude_globs == EXTENDED_EXCLUDES

    def test_hostnames(self, make_config, standard_site):
        """Test the three reconciled hostnames."""
        config = make_config(standard_site, domain="site.example", website_bucket="www.site.example")
        manifest = DeploymentManifest.build(config, LayoutDetector().detect(standard_site))

        assert manifest.alternate_bucket == "site.example"
        assert manifest.hostnames == ["site.example", "www.site.example", "site.example"]

    def test_manifest_is_frozen(self, make_config, standard_site):
        manifest = DeploymentManifest.build(make_config(standard_site), LayoutDetector().detect(standard_site))

        with pytest.raises(ValidationError):
            manifest.domain = "other.example"
