"""Main CLI entry point."""

import json
import signal
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from natgw_lifecycle.config.parser import Config, ConfigValidationError
from natgw_lifecycle.orchestrator import (
    ChangeType,
    ExecutionResult,
    ExecutionStatus,
    ReconcileExecutor,
    ReconcilePlan,
    ReconcilePlanner,
)
from natgw_lifecycle.provisioners import EC2NatGatewayClient, NatGatewayReconciler
from natgw_lifecycle.state.manager import StateManager
from natgw_lifecycle.state.models import State, TrackedGateway
from natgw_lifecycle.utils.aws_client import AWSClientManager
from natgw_lifecycle.utils.errors import NatGatewayError
from natgw_lifecycle.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

CHANGE_STYLES = {
    ChangeType.CREATE: ("+", "green"),
    ChangeType.REPLACE: ("-/+", "magenta"),
    ChangeType.UPDATE: ("~", "yellow"),
    ChangeType.DELETE: ("-", "red"),
    ChangeType.NO_CHANGE: ("=", "dim"),
}


@click.group()
@click.option('--config', 'config_path', default='natgw.yaml', help='Path to configuration file')
@click.option('--profile', help='AWS profile to use')
@click.option('--region', help='AWS region')
@click.option('--log-level', default='info', type=click.Choice(['debug', 'info', 'warning', 'error']))
@click.option('--log-file/--no-log-file', default=True, help='Write JSON-lines logs under .natgw/logs')
@click.pass_context
def cli(ctx, config_path, profile, region, log_level, log_file):
    """NAT gateway lifecycle manager."""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    ctx.obj['profile'] = profile
    ctx.obj['region'] = region

    setup_logging(log_level, log_dir='.natgw/logs' if log_file else None)


def load_config(config_path: str) -> Config:
    """Load and validate configuration file."""
    try:
        return Config(config_path).load()
    except FileNotFoundError:
        console.print(f"[red]Error:[/red] Configuration file not found: {config_path}")
        sys.exit(1)
    except ConfigValidationError as e:
        console.print("[red]Configuration validation failed:[/red]\n")
        console.print(str(e), markup=False)
        sys.exit(1)


def get_state_path(project_name: str) -> Path:
    """Get state file path for a project."""
    return Path.cwd() / ".natgw" / "state" / f"{project_name}.json"


def build_reconciler(
    config: Config,
    profile: Optional[str] = None,
    region: Optional[str] = None
) -> NatGatewayReconciler:
    """Create a reconciler backed by a boto3 EC2 client."""
    client_manager = AWSClientManager(
        profile=profile or config.project.profile,
        region=region or config.project.region,
    )
    return NatGatewayReconciler(
        client=EC2NatGatewayClient(client_manager.get_client('ec2')),
        tag_manager=config.tags.tag_manager(),
        create_policy=config.waiter.create_policy(),
        delete_policy=config.waiter.delete_policy(),
    )


def display_plan(plan: ReconcilePlan) -> None:
    """Render a plan as a table followed by a summary line."""
    table = Table(title="NAT Gateway Plan")
    table.add_column("", no_wrap=True)
    table.add_column("Gateway", style="cyan")
    table.add_column("NAT Gateway ID")
    table.add_column("Reason")

    for name in sorted(plan.changes):
        change = plan.changes[name]
        symbol, style = CHANGE_STYLES[change.change_type]
        reason = change.reason or ""
        if change.tag_diff is not None and not change.tag_diff.is_empty():
            details = []
            if change.tag_diff.to_set:
                details.append(f"set {', '.join(sorted(change.tag_diff.to_set))}")
            if change.tag_diff.to_remove:
                details.append(f"remove {', '.join(sorted(change.tag_diff.to_remove))}")
            reason = f"{reason} ({'; '.join(details)})"
        table.add_row(f"[{style}]{symbol}[/{style}]", name, change.nat_gateway_id or "-", reason)

    console.print(table)

    summary = plan.get_summary()
    console.print(
        f"\nPlan: [green]{summary['create']} to create[/green], "
        f"[magenta]{summary['replace']} to replace[/magenta], "
        f"[yellow]{summary['update']} to update[/yellow], "
        f"[red]{summary['delete']} to delete[/red], "
        f"{summary['no_change']} unchanged."
    )


def display_result(result: ExecutionResult, title: str) -> None:
    """Render an execution result and its failures."""
    failed = result.get_failed()
    if result.is_success():
        console.print(Panel.fit(
            f"[green]✓ {title} complete[/green]\n\n"
            f"Gateways: {len(result.results)}\n"
            f"Duration: {result.duration:.2f}s",
            title=title,
            border_style="green"
        ))
        return

    console.print(Panel.fit(
        f"[red]✗ {title} failed[/red]\n\n"
        f"Gateways: {len(result.results)}\n"
        f"Failed: {len(failed)}\n"
        f"Duration: {result.duration:.2f}s",
        title=title,
        border_style="red"
    ))
    console.print("\n[bold]Failed Gateways:[/bold]")
    for name, gateway_result in sorted(failed.items()):
        console.print(f"  [red]✗[/red] {name} ({gateway_result.status.value})")
        if gateway_result.error is not None:
            console.print(gateway_result.error.to_user_message(), markup=False)


def run_plan(
    executor: ReconcileExecutor,
    plan: ReconcilePlan,
    title: str,
    parallel: bool = True
) -> ExecutionResult:
    """Execute a plan with a progress display; Ctrl-C cancels in-flight waits."""
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: executor.cancel())
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console
        ) as progress:
            task_id = progress.add_task(f"[cyan]{title}...", total=len(plan.pending_changes()))

            def on_progress(name: str, status: ExecutionStatus, message: Optional[str]) -> None:
                if status == ExecutionStatus.IN_PROGRESS:
                    progress.update(task_id, description=f"[cyan]Reconciling:[/cyan] {name}")
                    return
                marker = "[green]✓[/green]" if status == ExecutionStatus.SUCCESS else "[red]✗[/red]"
                progress.update(task_id, advance=1, description=f"{marker} {name}")

            return executor.execute(plan, parallel=parallel, progress_callback=on_progress)
    finally:
        signal.signal(signal.SIGINT, previous_handler)


@cli.command()
@click.option('--gateway', 'gateways', multiple=True, help='Restrict to the named gateway (repeatable)')
@click.pass_context
def plan(ctx, gateways):
    """Show the changes apply would make."""
    cfg = load_config(ctx.obj['config_path'])
    region = ctx.obj['region'] or cfg.project.region

    try:
        desired = {name: g.to_descriptor() for name, g in cfg.get_gateways(list(gateways)).items()}
        state_manager = StateManager(str(get_state_path(cfg.project.name)))
        state = state_manager.load() if state_manager.exists() else State(project_name=cfg.project.name, region=region)
        if gateways:
            state = state.model_copy(update={'gateways': {n: g for n, g in state.gateways.items() if n in gateways}})

        reconciler = build_reconciler(cfg, ctx.obj['profile'], region)
        display_plan(ReconcilePlanner(reconciler).create_plan(desired, state))
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)


@cli.command()
@click.option('--gateway', 'gateways', multiple=True, help='Restrict to the named gateway (repeatable)')
@click.option('--parallel/--sequential', default=True, help='Reconcile gateways concurrently or one by one')
@click.pass_context
def apply(ctx, gateways, parallel):
    """Create, update, or replace gateways to match the configuration."""
    cfg = load_config(ctx.obj['config_path'])
    region = ctx.obj['region'] or cfg.project.region

    try:
        desired = {name: g.to_descriptor() for name, g in cfg.get_gateways(list(gateways)).items()}
        reconciler = build_reconciler(cfg, ctx.obj['profile'], region)

        with StateManager(str(get_state_path(cfg.project.name))) as state_manager:
            state = state_manager.load_or_initialize(cfg.project.name, region)
            if gateways:
                state = state.model_copy(update={'gateways': {n: g for n, g in state.gateways.items() if n in gateways}})

            reconcile_plan = ReconcilePlanner(reconciler).create_plan(desired, state)
            display_plan(reconcile_plan)
            if not reconcile_plan.has_changes():
                console.print("\n[green]No changes. Gateways match the configuration.[/green]")
                return

            executor = ReconcileExecutor(reconciler, state_manager, max_workers=cfg.max_workers)
            result = run_plan(executor, reconcile_plan, "Apply", parallel=parallel)
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)

    console.print()
    display_result(result, "Apply")
    if not result.is_success():
        sys.exit(1)


@cli.command()
@click.option('--gateway', 'gateways', multiple=True, help='Restrict to the named gateway (repeatable)')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.pass_context
def destroy(ctx, gateways, yes):
    """Delete tracked gateways."""
    cfg = load_config(ctx.obj['config_path'])
    region = ctx.obj['region'] or cfg.project.region
    state_path = get_state_path(cfg.project.name)

    if not state_path.exists():
        console.print(f"[yellow]No state found for project:[/yellow] {cfg.project.name}")
        return

    try:
        reconciler = build_reconciler(cfg, ctx.obj['profile'], region)

        with StateManager(str(state_path)) as state_manager:
            destruction_plan = ReconcilePlanner(reconciler).create_destruction_plan(
                state_manager.get_state(), list(gateways)
            )
            if not destruction_plan.has_changes():
                console.print("[yellow]No tracked gateways to destroy.[/yellow]")
                return

            display_plan(destruction_plan)
            if not yes and not click.confirm("\nDestroy these NAT gateways?"):
                console.print("Destroy cancelled.")
                return

            executor = ReconcileExecutor(reconciler, state_manager, max_workers=cfg.max_workers)
            result = run_plan(executor, destruction_plan, "Destroy")
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)

    console.print()
    display_result(result, "Destroy")
    if not result.is_success():
        sys.exit(1)


@cli.command()
@click.pass_context
def show(ctx):
    """Show tracked gateways from the state file."""
    cfg = load_config(ctx.obj['config_path'])
    state_manager = StateManager(str(get_state_path(cfg.project.name)))

    if not state_manager.exists():
        console.print(f"[yellow]No state found for project:[/yellow] {cfg.project.name}")
        return

    try:
        state = state_manager.load()
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)

    table = Table(title=f"{state.project_name} ({state.region})")
    table.add_column("Gateway", style="cyan")
    table.add_column("NAT Gateway ID")
    table.add_column("Status")
    table.add_column("Subnet")
    table.add_column("Public IP")
    table.add_column("Private IP")

    for name in sorted(state.gateways):
        gateway = state.gateways[name]
        status_style = "green" if gateway.status.value == "created" else "red"
        table.add_row(
            name,
            gateway.nat_gateway_id,
            f"[{status_style}]{gateway.status.value}[/{status_style}]",
            gateway.subnet_id or "-",
            gateway.public_ip or "-",
            gateway.private_ip or "-",
        )

    console.print(table)
    console.print(f"\nLast updated: {state.timestamp.isoformat()}")


@cli.command()
@click.argument('nat_gateway_id')
@click.pass_context
def read(ctx, nat_gateway_id):
    """Read the live state of one NAT gateway."""
    cfg = load_config(ctx.obj['config_path'])

    try:
        reconciler = build_reconciler(cfg, ctx.obj['profile'], ctx.obj['region'])
        state = reconciler.read(nat_gateway_id)
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)

    if state is None:
        console.print(f"[yellow]NAT gateway {nat_gateway_id} does not exist or is being deleted[/yellow]")
        sys.exit(1)

    click.echo(json.dumps(state.to_dict(), indent=2, sort_keys=True))


@cli.command('import')
@click.argument('name')
@click.argument('nat_gateway_id')
@click.pass_context
def import_gateway(ctx, name, nat_gateway_id):
    """Start tracking an existing NAT gateway under NAME."""
    cfg = load_config(ctx.obj['config_path'])
    region = ctx.obj['region'] or cfg.project.region

    try:
        reconciler = build_reconciler(cfg, ctx.obj['profile'], region)

        with StateManager(str(get_state_path(cfg.project.name))) as state_manager:
            state = state_manager.load_or_initialize(cfg.project.name, region)

            tracked = state.get_gateway(name)
            if tracked is not None:
                console.print(
                    f"[red]Error:[/red] {escape(name)} already tracks {tracked.nat_gateway_id}"
                )
                sys.exit(1)
            for other in state.gateways.values():
                if other.nat_gateway_id == nat_gateway_id:
                    console.print(
                        f"[red]Error:[/red] {nat_gateway_id} is already tracked as {escape(other.name)}"
                    )
                    sys.exit(1)

            reconciled = reconciler.read(nat_gateway_id)
            if reconciled is None:
                console.print(
                    f"[red]Error:[/red] NAT gateway {nat_gateway_id} does not exist or is being deleted"
                )
                sys.exit(1)

            state_manager.put_gateway(TrackedGateway.from_reconciled(name, reconciled))
    except NatGatewayError as e:
        console.print(e.to_user_message(), markup=False)
        sys.exit(1)

    console.print(f"[green]Imported {nat_gateway_id} as {escape(name)}[/green]")
    if name not in cfg.gateways:
        console.print(
            f"[yellow]{escape(name)} is not declared in {ctx.obj['config_path']}; "
            f"the next apply will delete it[/yellow]"
        )


if __name__ == '__main__':
    cli()
