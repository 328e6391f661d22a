"""ddd-sync CLI — inspect and resolve drift between flow specs and code."""

from __future__ import annotations

import asyncio
import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ddd_sync import __version__
from ddd_sync.models.mapping import SyncScore, SyncState
from ddd_sync.sync.engine import SyncEngine

console = Console()

STATE_STYLES = {
    SyncState.SYNCED: "[green]synced[/]",
    SyncState.SPEC_AHEAD: "[yellow]spec ahead[/]",
    SyncState.CODE_AHEAD: "[blue]code ahead[/]",
    SyncState.DIVERGED: "[red]diverged[/]",
}


def _configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _engine(root: str) -> SyncEngine:
    def show_command(text: str) -> None:
        console.print(f"  Run in your coding agent: [bold cyan]{text}[/]")

    return SyncEngine(root, clipboard=show_command)


async def _loaded(root: str) -> SyncEngine:
    engine = _engine(root)
    await engine.load()
    return engine


def _print_score(score: SyncScore | None) -> None:
    if score is None:
        return
    console.print(Panel(
        f"Score: [bold]{score.score}%[/]  "
        f"implemented {score.implemented} / {score.total}, "
        f"stale {score.stale}, pending {score.pending}, annotated {score.annotated}",
        title="Sync Score",
    ))


root_option = click.option(
    "--root", "-r", default=".", type=click.Path(file_okay=False), help="Project root"
)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """ddd-sync — keep flow specs and their implementations in sync.

    Compares content hashes of spec and code files against the baselines
    recorded in .ddd/mapping.yaml and reports which flows have drifted.
    """
    _configure_logging(verbose)


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@root_option
def status(root: str):
    """Show the sync state of every implemented flow."""
    engine = asyncio.run(_loaded(root))

    if not engine.mappings:
        console.print("[yellow]No implemented flows (no mapping.yaml entries).[/]")
        return

    table = Table(title=f"Flows ({len(engine.mappings)} implemented)")
    table.add_column("Flow", style="cyan")
    table.add_column("State")
    table.add_column("Spec")
    table.add_column("Files", justify="right")
    table.add_column("Annotations", justify="right")

    for key, mapping in sorted(engine.mappings.items()):
        state = STATE_STYLES.get(mapping.sync_state, "[dim]untracked[/]")
        if key in engine.ignored:
            state += " [dim](ignored)[/]"
        table.add_row(
            key,
            state,
            mapping.spec_path,
            str(len(mapping.code_files)),
            str(mapping.annotation_count or ""),
        )

    console.print(table)
    _print_score(engine.sync_score)


# ── Drift ────────────────────────────────────────────────────────────


@main.command()
@root_option
def drift(root: str):
    """List active drift items."""
    engine = asyncio.run(_loaded(root))

    if not engine.drift_items:
        console.print("[green]No drift detected.[/]")
        _print_score(engine.sync_score)
        return

    for item in engine.drift_items:
        kind = item.drift_type.value if item.drift_type else item.direction.value
        console.print(f"  [red]DRIFT[/] {item.flow_key} ({item.flow_name}) [dim]{kind}[/]")
        console.print(f"    {item.previous_hash[:12]} -> {item.current_hash[:12]}")
        for path in item.changed_files:
            console.print(f"    - changed: {path}")
    _print_score(engine.sync_score)


# ── Resolve ──────────────────────────────────────────────────────────


@main.command()
@click.argument("flow_key")
@click.option(
    "--action", "-a", required=True, type=click.Choice(["accept", "reimpl", "ignore"])
)
@root_option
def resolve(flow_key: str, action: str, root: str):
    """Resolve the drift on one flow (FLOW_KEY is domain/flow)."""

    async def run():
        engine = await _loaded(root)
        if engine.session.find_drift(flow_key) is None:
            return engine, None, False
        return engine, await engine.resolve_flow(flow_key, action), True

    engine, report, had_drift = asyncio.run(run())
    if not had_drift:
        console.print(f"[yellow]No active drift for {flow_key}.[/]")
        return
    if report is not None:
        console.print(f"  [green]v[/] {flow_key}: {action}")
        console.print(f"  Score {report.sync_score_before}% -> {report.sync_score_after}%")


@main.command(name="resolve-all")
@click.option("--action", "-a", required=True, type=click.Choice(["accept", "ignore"]))
@root_option
def resolve_all(action: str, root: str):
    """Accept or ignore every active drift item."""

    async def run():
        engine = await _loaded(root)
        return await engine.resolve_all(action)

    report = asyncio.run(run())
    if report is None:
        console.print("[green]No drift to resolve.[/]")
        return
    for entry in report.entries:
        console.print(f"  [green]v[/] {entry.flow_key}: {entry.action.value}")
    console.print(f"  Score {report.sync_score_before}% -> {report.sync_score_after}%")


@main.command()
@root_option
def reports(root: str):
    """List reconciliation reports."""
    engine = _engine(root)
    found = asyncio.run(engine.report_store.list_reports())

    if not found:
        console.print("[yellow]No reconciliation reports.[/]")
        return

    table = Table(title=f"Reconciliations ({len(found)})")
    table.add_column("Timestamp")
    table.add_column("Entries", justify="right")
    table.add_column("Actions")
    table.add_column("Score", justify="right")
    for report in found:
        actions = ", ".join(sorted({e.action.value for e in report.entries}))
        table.add_row(
            report.timestamp,
            str(len(report.entries)),
            actions,
            f"{report.sync_score_before}% -> {report.sync_score_after}%",
        )
    console.print(table)


# ── Change history ───────────────────────────────────────────────────


@main.command()
@click.option("--pending", is_flag=True, help="Only entries awaiting implementation")
@root_option
def history(pending: bool, root: str):
    """List recorded spec saves."""
    engine = _engine(root)
    asyncio.run(engine.ledger.load())
    entries = engine.ledger.pending() if pending else engine.ledger.entries

    if not entries:
        console.print("[yellow]No recorded changes.[/]")
        return

    table = Table(title=f"Change History ({len(entries)})")
    table.add_column("ID", style="dim")
    table.add_column("Timestamp")
    table.add_column("Spec File", style="cyan")
    table.add_column("Scope")
    table.add_column("Status")

    for entry in entries:
        scope = "/".join(
            part for part in (entry.scope.level, entry.scope.domain, entry.scope.flow) if part
        )
        status_text = "[yellow]pending[/]" if entry.is_pending else "[green]implemented[/]"
        if entry.action:
            status_text += f" ({entry.action})"
        table.add_row(entry.id, entry.timestamp, entry.spec_file, scope, status_text)

    console.print(table)


@main.command()
@click.argument("spec_file")
@click.option("--level", default="L3", type=click.Choice(["L1", "L2", "L3"]))
@click.option("--domain", default=None, help="Domain id")
@click.option("--flow", default=None, help="Flow id")
@click.option(
    "--pillar",
    default=None,
    type=click.Choice(["logic", "data", "interface", "infrastructure"]),
)
@click.option("--deleted", is_flag=True, help="Record the file as deleted")
@root_option
def record(
    spec_file: str,
    level: str,
    domain: str | None,
    flow: str | None,
    pillar: str | None,
    deleted: bool,
    root: str,
):
    """Record a save of SPEC_FILE (relative to the project root)."""
    from ddd_sync.errors import FileMissingError
    from ddd_sync.models.change_history import ChangeScope

    async def run():
        engine = _engine(root)
        await engine.ledger.load()
        contents = ""
        if not deleted:
            contents = await engine.files.read_text(spec_file)
        scope = ChangeScope(level=level, domain=domain, flow=flow, pillar=pillar)
        return await engine.record_save(
            spec_file, contents, scope, action="deleted" if deleted else None
        )

    try:
        entry = asyncio.run(run())
    except FileMissingError as e:
        raise click.ClickException(str(e))

    if entry is None:
        console.print(f"[dim]{spec_file} unchanged since last recorded save.[/]")
    else:
        console.print(f"  [green]v[/] {entry.id} {spec_file} ({entry.spec_checksum})")


@main.command()
@click.argument("change_id")
@click.option("--file", "-f", "code_files", multiple=True, help="Implemented code file")
@root_option
def implemented(change_id: str, code_files: tuple, root: str):
    """Mark a recorded change as implemented."""

    async def run():
        engine = _engine(root)
        await engine.ledger.load()
        return await engine.ledger.mark_implemented(change_id, list(code_files))

    try:
        entry = asyncio.run(run())
    except KeyError:
        raise click.ClickException(f"No change with id {change_id}")
    console.print(f"  [green]v[/] {entry.id} implemented ({len(entry.code_files)} files)")


if __name__ == "__main__":
    main()
