"""
Configuration models for the CMS Deployer.

This module defines the Pydantic models for the deployer configuration
and the per-run deployment manifest derived from it.
"""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cms_deployer.core.exceptions import InvalidEnvironmentLabel
from cms_deployer.utils.helpers import alternate_hostname, validate_environment_label
from cms_deployer.platforms.layout import ExtendedLayout, SiteLayout


DEFAULT_PLUGIN_ARCHIVE_URL = (
    "https://downloads.wordpress.org/plugin/amazon-s3-and-cloudfront.3.2.7.zip"
)
INVALIDATION_LIST_NAME = ".invalidations"
NODEPLOY_MARKER = ".nodeploy"

STANDARD_EXCLUDES = [".git", ".svn", "node_modules", "*.log", "*.sql", ".DS_Store"]
EXTENDED_EXCLUDES = STANDARD_EXCLUDES + ["composer.phar", "auth.json"]


class DeployConfig(BaseModel):
    """Complete deployer configuration for one run."""
    source_root: Path
    domain: str
    website_bucket: str
    logging_bucket: Optional[str] = Field(default=None, validate_default=True)
    region: str = "us-east-1"
    environment: str = "prod"
    staging_dir: str = ".serverless-build"
    bundle_uploads: bool = False
    require_ssl: bool = False
    require_db_host: bool = False
    plugin_archive_url: str = DEFAULT_PLUGIN_ARCHIVE_URL
    remove_plugins: List[str] = Field(default_factory=lambda: ["akismet", "hello-dolly"])
    exclude_patterns: List[str] = Field(default_factory=list)
    deploy_command: List[str] = Field(default_factory=lambda: ["serverless", "deploy"])
    composer_command: List[str] = Field(
        default_factory=lambda: ["composer", "install", "--no-dev", "--optimize-autoloader"]
    )
    task_timeout: Optional[float] = Field(default=300.0, gt=0)
    dns_timeout: float = Field(default=10.0, gt=0)
    keep_staging_on_failure: bool = False
    verbose: bool = False

    @field_validator('environment')
    @classmethod
    def environment_must_be_valid_label(cls, v):
        try:
            validate_environment_label(v)
        except InvalidEnvironmentLabel as e:
            raise ValueError(e.message)
        return v

    @field_validator('domain', 'website_bucket')
    @classmethod
    def hostname_must_not_be_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Hostname cannot be empty')
        return v.strip().rstrip('.').lower()

    @field_validator('logging_bucket')
    @classmethod
    def default_logging_bucket(cls, v, info):
        if v is None and info.data.get('website_bucket'):
            return f"{info.data['website_bucket']}-logs"
        return v

    @property
    def staging_root(self) -> Path:
        """Absolute staging directory; relative paths live under the source root."""
        staging = Path(self.staging_dir)
        if staging.is_absolute():
            return staging
        return Path(self.source_root).resolve() / staging


class DeploymentManifest(BaseModel):
    """What must end up in the staging directory for one run."""
    domain: str
    website_bucket: str
    logging_bucket: Optional[str] = None
    staging_root: Path
    region: str
    environment: str
    include_globs: List[str] = Field(default_factory=list)
    exclude_globs: List[str] = Field(default_factory=list)
    bundle_uploads: bool = False
    remove_plugins: List[str] = Field(default_factory=list)
    plugin_archive_url: str = DEFAULT_PLUGIN_ARCHIVE_URL

    model_config = ConfigDict(frozen=True)

    @property
    def alternate_bucket(self) -> str:
        """The www-prefixed or de-prefixed counterpart of the website bucket."""
        return alternate_hostname(self.website_bucket)

    @property
    def hostnames(self) -> List[str]:
        """Hostnames checked during DNS reconciliation."""
        return [self.domain, self.website_bucket, self.alternate_bucket]

    @classmethod
    def build(cls, config: DeployConfig, layout: SiteLayout) -> "DeploymentManifest":
        """Build the manifest from configuration and the detected layout."""
        if isinstance(layout, ExtendedLayout):
            excludes = list(EXTENDED_EXCLUDES)
        else:
            excludes = list(STANDARD_EXCLUDES)
        excludes.extend(config.exclude_patterns)

        return cls(
            domain=config.domain,
            website_bucket=config.website_bucket,
            logging_bucket=config.logging_bucket,
            staging_root=config.staging_root,
            region=config.region,
            environment=config.environment,
            include_globs=[INVALIDATION_LIST_NAME],
            exclude_globs=excludes,
            bundle_uploads=config.bundle_uploads,
            remove_plugins=list(config.remove_plugins),
            plugin_archive_url=config.plugin_archive_url,
        )
