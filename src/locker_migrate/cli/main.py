"""Main CLI entry point for the Locker Migration Tool."""

import sys
from contextlib import contextmanager
from typing import Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
)
from rich.table import Table

from .. import __version__
from ..config.config import Config
from ..chain.exceptions import BatchWriteError, LockerMigrationError
from ..utils.logging import setup_logging
from ..migration.engine import MigrationEngine
from ..migration.orchestrator import MigrationSummary, ScanResult

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name='locker-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Locker Migration Tool - Move locked positions from a legacy locker into a new one."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    # Setup basic logging first (will be enhanced later with config)
    log_level = 'DEBUG' if verbose else 'INFO'
    setup_logging(log_level)


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]Locker Migration Tool[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your contract addresses[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command()
@click.option(
    '--dry-run',
    is_flag=True,
    help='Scan and plan batches without sending transactions',
)
@click.option(
    '--checkpoint',
    type=click.Path(dir_okay=False),
    help='Checkpoint file to resume from and record progress in',
)
@click.pass_context
def migrate(ctx: click.Context, dry_run: bool, checkpoint: Optional[str]) -> None:
    """Deploy the new locker and migrate every live lock into it."""
    console.print(
        Panel.fit(
            '[bold blue]Locker Migration Tool[/bold blue]\n'
            'Starting migration process...',
            border_style='blue',
        )
    )

    if dry_run:
        console.print(
            '[yellow]Running in dry-run mode - no transactions will be sent[/yellow]'
        )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        if dry_run:
            config.migration.dry_run = True
        if checkpoint:
            config.migration.checkpoint_file = checkpoint

        _run_migration(config)

    except BatchWriteError as e:
        console.print(f'[red]✗[/red] Migration halted: {e}')
        console.print(
            f'[yellow]{e.confirmed_batches} batches were confirmed before batch '
            f'{e.batch_index + 1} failed; rerun with the same checkpoint to resume[/yellow]'
        )
        _print_details(e)
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {e}')
        _print_details(e)
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.option(
    '--show-units',
    is_flag=True,
    help='List every accepted position',
)
@click.pass_context
def scan(ctx: click.Context, show_units: bool) -> None:
    """Read the legacy locker and report what would be migrated."""
    console.print(
        Panel.fit(
            '[bold cyan]Locker Migration Tool[/bold cyan]\nScanning legacy locker...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        engine = MigrationEngine(config)
        with _progress() as (progress, update):
            result = engine.scan(progress_callback=update)

        _display_scan_result(result, config.migration.batch_size, show_units)

    except Exception as e:
        console.print(f'[red]✗[/red] Scan failed: {e}')
        _print_details(e)
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """Validate configuration, connectivity and contract addresses."""
    console.print(
        Panel.fit(
            '[bold cyan]Locker Migration Tool[/bold cyan]\nValidating setup...',
            border_style='cyan',
        )
    )

    try:
        config = _load_config(ctx)

        engine = MigrationEngine(config)
        engine.test_connectivity()

        console.print('[green]✓[/green] Connectivity validation passed')
        console.print('[green]✓[/green] Contract code found at all configured addresses')
        if config.chain.private_key:
            console.print(f'[green]✓[/green] Signing as {engine.client.address}')
        else:
            console.print('[yellow]No private key configured; only dry runs are possible[/yellow]')

    except Exception as e:
        console.print(f'[red]✗[/red] Validation failed: {e}')
        _print_details(e)
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show migration configuration."""
    console.print(
        Panel.fit(
            '[bold magenta]Locker Migration Tool[/bold magenta]\nMigration Status',
            border_style='magenta',
        )
    )

    try:
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)

        table = Table(title='Migration Configuration')
        table.add_column('Setting', style='cyan')
        table.add_column('Value', style='green')

        table.add_row('RPC URL', config.chain.rpc_url)
        table.add_row('Old Locker', config.contracts.old_locker)
        table.add_row('Staking', config.contracts.staking)
        table.add_row('Underlying Token', config.contracts.underlying_token)
        table.add_row('Proxy Admin', config.contracts.proxy_admin)
        table.add_row(
            'Token Ids',
            f'{config.migration.start_id}..{config.migration.total_entities}',
        )
        table.add_row('Batch Size', str(config.migration.batch_size))
        table.add_row('Dry Run', '✓' if config.migration.dry_run else '✗')
        table.add_row('Checkpoint', config.migration.checkpoint_file or '-')
        table.add_row('Private Key', '✓' if config.chain.private_key else '✗')

        console.print(table)

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to load status: {e}')
        if ctx.obj.get('verbose'):
            console.print_exception()
        sys.exit(1)


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)
    else:
        # Try to load from default locations
        default_paths = ['config.yaml', 'config.yml', '.locker-migrate.yaml']
        for path in default_paths:
            if Path(path).exists():
                return Config.from_file(path)

        # Fall back to environment variables
        try:
            return Config.from_env()
        except Exception:
            raise FileNotFoundError(
                'No configuration found. Use --config to specify a file or run "locker-migrate init" to create one.'
            )


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    # Use config logging settings, but allow verbose flag to override level
    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


@contextmanager
def _progress():
    """Rich progress bar plus a callback the orchestrator can drive."""
    with Progress(
        SpinnerColumn(),
        TextColumn('[progress.description]{task.description}'),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task_id = progress.add_task('[blue]Initializing...', total=1)

        def update(current: int, total: int, description: str) -> None:
            progress.update(
                task_id,
                completed=current,
                total=max(total, 1),
                description=f'[blue]{description}',
            )

        yield progress, update


def _run_migration(config: Config) -> None:
    """Run the migration with a progress display."""
    engine = MigrationEngine(config)
    dry_run = config.migration.dry_run

    with _progress() as (progress, update):
        summary = engine.migrate(progress_callback=update)

    if summary.prepared_units == 0:
        console.print('[yellow]No tokens to migrate![/yellow]')
    elif dry_run:
        console.print('[green]✓[/green] Dry run completed successfully')
    else:
        console.print('[green]✓[/green] Migration completed successfully')

    _display_migration_summary(summary)


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Metric', style='cyan')
    table.add_column('Value', style='green')

    table.add_row('Tokens Scanned', str(summary.total_entities))
    table.add_row('Prepared', str(summary.prepared_units))
    table.add_row('Skipped', str(summary.skipped))
    for reason, count in sorted(summary.skipped_by_reason.items()):
        table.add_row(f'  {reason}', str(count))
    table.add_row(
        'Batches Confirmed', f'{summary.batches_confirmed}/{summary.batches_total}'
    )
    table.add_row('New Locker', summary.new_registry or '-')
    table.add_row('Snapshot Timestamp', str(summary.snapshot_timestamp))

    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    if summary.confirmations:
        console.print(f'\n[blue]Transactions ({len(summary.confirmations)}):[/blue]')
        for confirmation in summary.confirmations[:5]:
            console.print(
                f'  • batch {confirmation.batch_index + 1}: {confirmation.tx_hash} '
                f'(block {confirmation.block_number}, {confirmation.size} locks)'
            )
        if len(summary.confirmations) > 5:
            console.print(f'  ... and {len(summary.confirmations) - 5} more')


def _display_scan_result(result: ScanResult, batch_size: int, show_units: bool) -> None:
    """Display what a scan found."""
    table = Table(title='Scan Result')
    table.add_column('Metric', style='cyan')
    table.add_column('Value', style='green')

    batches = -(-len(result.units) // batch_size)
    table.add_row('Snapshot Timestamp', str(result.now))
    table.add_row('Tokens Scanned', str(result.scanned))
    table.add_row('Prepared', str(len(result.units)))
    for reason, count in sorted(result.skip_counts().items()):
        table.add_row(f'  {reason}', str(count))
    table.add_row('Batches', str(batches))
    table.add_row('Total Amount', str(sum(unit.amount for unit in result.units)))

    console.print(table)

    if show_units and result.units:
        units = Table(title='Positions')
        units.add_column('Token', style='cyan')
        units.add_column('Amount', style='green')
        units.add_column('Duration (s)', style='green')
        units.add_column('Owner', style='blue')
        units.add_column('Staked', style='yellow')
        for unit in result.units:
            units.add_row(
                str(unit.entity_id),
                str(unit.amount),
                str(unit.duration),
                unit.owner,
                '✓' if unit.stake_flag else '✗',
            )
        console.print(units)


def _print_details(error: Exception) -> None:
    if isinstance(error, LockerMigrationError) and error.details:
        for key, value in error.details.items():
            console.print(f'  • {key}: {value}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)
    except Exception as e:
        console.print(f'[red]Error: {e}[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
