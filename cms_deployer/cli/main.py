"""
Main CLI entry point for the CMS Deployer.

This module provides the command-line interface using Click
with Rich formatting.
"""

import asyncio
import sys
from typing import Any, Dict, Optional, Tuple

import click
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cms_deployer import __version__
from cms_deployer.core.exceptions import CMSDeployerError, ConfigurationError, InvalidEnvironmentLabel
from cms_deployer.models.config import DeployConfig
from cms_deployer.orchestrator.pipeline import PipelineCoordinator, PipelineResult
from cms_deployer.platforms import LayoutDetector
from cms_deployer.reconciliation import DNSReconciler, DnsPythonResolver, RecordState
from cms_deployer.utils.helpers import alternate_hostname, format_duration, load_config_file, sanitize_dict
from cms_deployer.utils.logging import setup_logging

console = Console()

_STATE_STYLES = {
    RecordState.MATCH: "green",
    RecordState.MISMATCH: "yellow",
    RecordState.WRONG_TYPE: "yellow",
    RecordState.MISSING: "red",
    RecordState.UNKNOWN: "dim",
}


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write logs to this file')
@click.option('--structured-logs', is_flag=True, help='Write JSON log lines to the log file')
@click.pass_context
def main(ctx: click.Context, version: bool, verbose: bool, log_file: Optional[str], structured_logs: bool):
    """
    CMS Deployer

    Assembles a WordPress site into a serverless deployment tree, deploys it
    and reports the DNS records the site still needs.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['structured_logs'] = structured_logs

    if version:
        console.print(f"CMS Deployer version {__version__}")
        sys.exit(0)

    setup_logging(
        level="DEBUG" if verbose else "INFO",
        log_file=log_file,
        structured_logging=structured_logs,
    )

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _merge_options(config_path: Optional[str], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """File values first; command-line values that were given win."""
    values: Dict[str, Any] = {}
    if config_path:
        try:
            loaded = load_config_file(config_path)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load {config_path}: {e}")
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping")
        values.update(loaded)
    values.update({key: value for key, value in overrides.items() if value is not None})
    return values


def _print_result(result: PipelineResult) -> None:
    table = Table(title="Deployment", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Run", result.run_id)
    table.add_row("State", result.state.value)
    if result.layout is not None:
        table.add_row("Layout", result.layout.kind)
    if result.manifest is not None:
        table.add_row("Environment", f"{result.manifest.environment} ({result.manifest.region})")
    if result.endpoint is not None:
        table.add_row("Endpoint", result.endpoint.target)
    table.add_row("Duration", format_duration(result.duration))
    console.print(table)

    if result.preparation is not None:
        for task in result.preparation.results:
            mark = "[green]✓[/green]" if task.success else "[red]✗[/red]"
            console.print(f"  {mark} {task.name}: {task.message}")

    if result.dns_report is not None:
        console.print("\n[bold]DNS records:[/bold]")
        for check in result.dns_report.checks:
            style = _STATE_STYLES.get(check.state, "white")
            console.print(f"  [{style}]{check.report_line()}[/{style}]")

    if result.failed_stage is not None:
        console.print(Panel(
            f"[red]{result.error}[/red]\n[dim]code: {result.error_code}[/dim]",
            title=f"Failed while {result.failed_stage.value}",
            border_style="red",
        ))
        output = result.error_details.get("output")
        if output:
            console.print(Panel(output.rstrip(), title="Executor output", border_style="dim"))

    if result.cleaned_up:
        console.print("[dim]Removed:[/dim]")
        for path in result.cleaned_up:
            console.print(f"  [dim]{path}[/dim]")


@main.command()
@click.option('--config', '-c', type=click.Path(exists=True), help='Configuration file path (YAML or JSON)')
@click.option('--source-root', '-s', type=click.Path(exists=True, file_okay=False), help='WordPress root directory')
@click.option('--domain', '-d', help='Public domain of the site')
@click.option('--bucket', 'website_bucket', help='Website bucket name')
@click.option('--logging-bucket', help='Access log bucket name')
@click.option('--region', '-r', help='Cloud region')
@click.option('--stage', '-e', 'environment', help='Deployment environment label')
@click.option('--bundle-uploads/--no-bundle-uploads', default=None, help='Include wp-content/uploads in the bundle')
@click.option('--require-ssl/--no-require-ssl', default=None, help='Force TLS for the database connection')
@click.option('--require-db-host/--no-require-db-host', default=None, help='Fail if wp-config.php has no DB_HOST')
@click.option('--keep-staging', 'keep_staging_on_failure', is_flag=True, default=None,
              help='Keep the staging directory when the run fails')
@click.pass_context
def deploy(ctx: click.Context, config: Optional[str], **options):
    """Assemble, prepare and deploy a WordPress site."""
    options['verbose'] = ctx.obj.get('verbose') or None

    try:
        values = _merge_options(config, options)
        deploy_config = DeployConfig(**values)
    except (ValidationError, ConfigurationError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(2)

    if ctx.obj.get('verbose'):
        console.print(sanitize_dict(deploy_config.model_dump(mode='json')))

    coordinator = PipelineCoordinator(deploy_config, structured_logging=ctx.obj.get('structured_logs', False))
    console.print(f"[green]Deploying {deploy_config.domain} to {deploy_config.environment}...[/green]")

    try:
        result = asyncio.run(coordinator.run())
    except InvalidEnvironmentLabel as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(2)
    except CMSDeployerError as e:
        console.print(f"[red]Error during deployment: {e.message}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Deployment cancelled by user[/yellow]")
        sys.exit(130)

    _print_result(result)
    sys.exit(0 if result.success else 1)


@main.command()
@click.argument('source_root', type=click.Path(exists=True, file_okay=False))
def detect(source_root: str):
    """Classify the layout of a WordPress installation."""
    layout = LayoutDetector().detect(source_root)

    table = Table(title=f"Layout: {layout.kind}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Path")
    table.add_row("WordPress root", str(layout.source_root))
    table.add_row("Config file", str(layout.config_file))
    table.add_row("Content directory", str(layout.source_root / layout.content_dir_name))
    if layout.kind == "extended":
        table.add_row("Project root", str(layout.project_root))
        table.add_row("composer.json", str(layout.framework_file))
        table.add_row("composer.lock", str(layout.lock_file) if layout.lock_file else "-")
        table.add_row("Dependencies installed", "no" if layout.needs_dependency_install else "yes")
    console.print(table)


def _hostnames(domain: Optional[str], bucket: Optional[str], extra: Tuple[str, ...]):
    hostnames = []
    if domain:
        hostnames.append(domain)
    if bucket:
        hostnames.extend([bucket, alternate_hostname(bucket)])
    hostnames.extend(extra)

    unique = []
    for hostname in hostnames:
        if hostname not in unique:
            unique.append(hostname)
    return unique


@main.command(name='check-dns')
@click.option('--target', '-t', required=True, help='Endpoint the hostnames should alias')
@click.option('--domain', '-d', help='Public domain of the site')
@click.option('--bucket', help='Website bucket name; its www. alternate is checked too')
@click.option('--timeout', type=float, default=10.0, show_default=True, help='Lookup timeout in seconds')
@click.argument('hostnames', nargs=-1)
def check_dns(target: str, domain: Optional[str], bucket: Optional[str], timeout: float, hostnames: Tuple[str, ...]):
    """Report what DNS changes the given hostnames still need."""
    names = _hostnames(domain, bucket, hostnames)
    if not names:
        console.print("[red]Error: give --domain, --bucket or at least one hostname[/red]")
        sys.exit(2)

    reconciler = DNSReconciler(DnsPythonResolver(timeout=timeout))
    report = asyncio.run(reconciler.reconcile(target, names))

    for check in report.checks:
        style = _STATE_STYLES.get(check.state, "white")
        console.print(f"[{style}]{check.report_line()}[/{style}]")

    if report.all_match:
        console.print("[green]All records are in place[/green]")


if __name__ == '__main__':
    main()
