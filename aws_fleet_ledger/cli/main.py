"""
Main CLI entry point for AWS Fleet Ledger.

Provides the ``aws-fleet-ledger`` command group.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from aws_fleet_ledger import __version__
from aws_fleet_ledger.auth.profiles import AccountProfiles, ClientGenerator
from aws_fleet_ledger.core.config import Config, ConfigManager
from aws_fleet_ledger.core.exceptions import (
    AuthenticationError, ConfigurationError, FleetLedgerError, PricingError
)
from aws_fleet_ledger.services.fetcher import AWSFetcher
from aws_fleet_ledger.services.orchestrator import AggregationOrchestrator
from aws_fleet_ledger.services.pricing import InstancesInfoPricingProvider
from aws_fleet_ledger.state.history import JsonHistoryStore, history_csv
from aws_fleet_ledger.state.snapshot_state import SnapshotView


console = Console()

# Exit codes for different error types
EXIT_SUCCESS = 0
EXIT_GENERAL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_AUTH_ERROR = 3
EXIT_CYCLE_ERROR = 4
EXIT_USER_CANCELLED = 130


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
    # boto debug output drowns everything else
    for noisy in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_orchestrator(config_manager: ConfigManager, config: Config) -> AggregationOrchestrator:
    """Wire profiles, fetchers, pricing and history from the configuration."""
    accounts = AccountProfiles.from_credentials_file(
        config.resolved_credentials_file(), config.regions, only=config.profiles
    )
    clients = ClientGenerator(accounts, max_attempts=config.max_attempts)
    return AggregationOrchestrator(
        fetcher=AWSFetcher(clients),
        pricing_provider=InstancesInfoPricingProvider(Path(config.pricing_file)),
        history_store=JsonHistoryStore(config_manager.history_path(config)),
        max_workers=config.max_workers,
        use_advisor=config.use_advisor,
    )


def summary_table(view: SnapshotView) -> Table:
    table = Table(title=f"Fleet summary - {view.last_refresh_time()}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("%", justify="right", style="dim")

    table.add_row("Instances", str(view.instance_count()), f"{view.instance_pct()}")
    table.add_row("Running", str(view.running_count()), f"{view.running_pct()}")
    table.add_row("In VPC", str(view.vpc_count()), f"{view.vpc_pct()}")
    table.add_row("Reserved (matched)", str(view.reserved_count()), f"{view.reserved_pct()}")
    table.add_row("Reserved (unused)", str(view.unmatched_count()), f"{view.unmatched_pct()}")
    table.add_row(
        "Reserved compute units",
        f"{view.used_reserved_units():g} / {view.total_reserved_units():g}", ""
    )
    table.add_row("Load balancers", str(len(view.load_balancers())), "")
    table.add_row("Databases", str(len(view.databases())), "")
    table.add_row("Domain records", str(len(view.domain_records())), "")
    table.add_row("Volumes", str(len(view.volumes())), "")
    table.add_row("Caches", str(len(view.caches())), "")
    table.add_row("Stacks", str(len(view.stacks())), "")
    table.add_row("Cost per hour", f"${view.formatted_cost()}", "")
    return table


def unused_reservations_table(view: SnapshotView) -> Optional[Table]:
    reservations = view.unmatched_reservations()
    if not reservations:
        return None
    table = Table(title="Reservations with unused capacity")
    table.add_column("Account")
    table.add_column("Region")
    table.add_column("Type")
    table.add_column("Product")
    table.add_column("Unused", justify="right")
    for reservation in reservations:
        table.add_row(
            reservation.location.account,
            reservation.availability_zone or reservation.region,
            reservation.instance_type,
            reservation.product_description,
            f"{reservation.unmatched_count}/{reservation.instance_count}",
        )
    return table


def print_report(view: SnapshotView) -> None:
    view = view.pinned()
    console.print(summary_table(view))
    unused = unused_reservations_table(view)
    if unused is not None:
        console.print(unused)
    advisor_results = view.advisor_results()
    if advisor_results:
        console.print(f"💡 {len(advisor_results)} Trusted Advisor recommendations")


def _load(ctx: click.Context):
    config_manager: ConfigManager = ctx.obj['config_manager']
    return config_manager, config_manager.load_or_default()


def _run_guarded(action) -> None:
    """Run a command body, mapping failures to exit codes."""
    try:
        action()
    except (KeyboardInterrupt, click.Abort):
        console.print("\n⚠️  [yellow]Operation cancelled by user[/yellow]")
        sys.exit(EXIT_USER_CANCELLED)
    except (ConfigurationError, PricingError, ValueError) as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)
    except AuthenticationError as e:
        console.print(f"❌ [red]Authentication error: {e}[/red]")
        sys.exit(EXIT_AUTH_ERROR)
    except FleetLedgerError as e:
        console.print(f"❌ [red]{e}[/red]")
        sys.exit(EXIT_GENERAL_ERROR)


@click.group()
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Configuration directory (defaults to ~/.aws-fleet-ledger)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx: click.Context, config_dir: Optional[Path], verbose: bool) -> None:
    """
    📒 AWS Fleet Ledger

    Inventory, reserved instance matching and hourly cost across AWS accounts.
    """
    configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj['config_manager'] = ConfigManager(config_dir)
    except OSError as e:
        console.print(f"❌ [red]Configuration error: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)


@cli.command()
@click.pass_context
def refresh(ctx: click.Context) -> None:
    """Run one inventory cycle and print the summary."""
    def action():
        config_manager, config = _load(ctx)
        orchestrator = build_orchestrator(config_manager, config)
        try:
            succeeded = orchestrator.run_cycle()
        finally:
            orchestrator.shutdown()

        if not succeeded:
            console.print(f"❌ [red]Inventory update failed: {orchestrator.state.error_message}[/red]")
            sys.exit(EXIT_CYCLE_ERROR)
        print_report(orchestrator.view)

    _run_guarded(action)


@cli.command()
@click.option(
    "--interval",
    type=click.IntRange(min=60),
    default=None,
    help="Seconds between cycles (defaults to the configured update period)",
)
@click.pass_context
def watch(ctx: click.Context, interval: Optional[int]) -> None:
    """Run cycles periodically, printing a summary after each, until interrupted."""
    def action():
        config_manager, config = _load(ctx)
        period = interval or config.update_period_seconds
        orchestrator = build_orchestrator(config_manager, config)
        console.print(f"⏱️  Refreshing every {period}s - press Ctrl+C to stop")

        last_error = None
        last_snapshot = None
        orchestrator.start_periodic(period)
        try:
            while True:
                snapshot = orchestrator.state.snapshot
                if orchestrator.state.in_error and orchestrator.state.error_message != last_error:
                    last_error = orchestrator.state.error_message
                    console.print(f"❌ [red]Inventory update failed: {last_error}[/red]")
                if snapshot is not None and snapshot is not last_snapshot:
                    last_snapshot = snapshot
                    print_report(SnapshotView(orchestrator.state, snapshot))
                time.sleep(1)
        finally:
            orchestrator.shutdown()

    _run_guarded(action)


@cli.command()
@click.pass_context
def history(ctx: click.Context) -> None:
    """Print the persisted cycle history as CSV."""
    def action():
        config_manager, config = _load(ctx)
        store = JsonHistoryStore(config_manager.history_path(config))
        click.echo(history_csv(store.get_history()), nl=False)

    _run_guarded(action)


@cli.command("ssh-config")
@click.option("--account", default=None, help="Only include instances from this profile")
@click.pass_context
def ssh_config(ctx: click.Context, account: Optional[str]) -> None:
    """Refresh and print OpenSSH config entries for running Linux instances."""
    def action():
        config_manager, config = _load(ctx)
        orchestrator = build_orchestrator(config_manager, config)
        try:
            succeeded = orchestrator.run_cycle()
        finally:
            orchestrator.shutdown()

        if not succeeded:
            console.print(f"❌ [red]Inventory update failed: {orchestrator.state.error_message}[/red]")
            sys.exit(EXIT_CYCLE_ERROR)
        click.echo(orchestrator.view.ssh_config(account), nl=False)

    _run_guarded(action)


if __name__ == "__main__":
    cli()
