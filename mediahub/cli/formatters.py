"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any
from uuid import UUID

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from mediahub.core.orchestrator import OutcomeStatus, RequestOutcome, StorageInfo
from mediahub.models.config import AppConfig
from mediahub.models.instance import (
    ConnectionTestResult,
    InstanceGroup,
    ServiceInstance,
)
from mediahub.models.overseerr import SearchResult
from mediahub.models.qbittorrent import Torrent
from mediahub.utils.formatting import format_eta, format_size, format_speed

HIDDEN_CONFIG_KEYS = {"secret_key"}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your config.ini.",
            "• Run `mediahub validate` to see the effective settings.",
        ],
        "CredentialStoreError": [
            "• The credential file could not be written.",
            "• Check the permissions of the configuration directory.",
        ],
        "FetchSupersededError": [
            "• A newer request replaced this one. Try again.",
        ],
    }

    recovery = getattr(error, "recovery_suggestion", None)
    if recovery:
        suggestions = [
            line if line.startswith("•") else f"• {line}"
            for line in recovery.strip().splitlines()
        ]
    else:
        suggestions = suggestions_map.get(
            error_type, ["• Run the command with -vv for detailed logs."]
        )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config: AppConfig):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    for key in sorted(AppConfig.get_ini_keys()):
        value = getattr(config, key)
        if key in HIDDEN_CONFIG_KEYS:
            value = "[hidden]" if value else "[dim]not set[/dim]"
        elif value == "":
            value = "[dim]not set[/dim]"
        table.add_row(f"{key}:", str(value))

    console.print(
        Panel(
            table,
            title=f"[bold green]✓ Validated Settings[/bold green] ([dim]{config_path}[/dim])",
            border_style="green",
        )
    )


def print_instances_table(
    instances: list[ServiceInstance], groups: list[InstanceGroup]
):
    """Displays the configured instances, grouped by their group."""
    console = Console()
    if not instances:
        console.print(
            "[yellow]No instances configured.[/yellow] "
            "Add one with [cyan]mediahub instance add[/cyan]."
        )
        return

    group_names = {g.id: g.name for g in groups}
    table = Table(title="Configured Instances", box=box.ROUNDED)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("URL")
    table.add_column("Group", style="magenta")
    table.add_column("Enabled", justify="center")

    for instance in instances:
        table.add_row(
            str(instance.id)[:8],
            instance.name,
            instance.service_type.display_name,
            instance.display_url,
            group_names.get(instance.group_id, "-") if instance.group_id else "-",
            "[green]✓[/green]" if instance.is_enabled else "[red]✗[/red]",
        )
    console.print(table)


def print_groups_table(groups: list[InstanceGroup], counts: dict[UUID, int]):
    console = Console()
    if not groups:
        console.print("[yellow]No groups defined.[/yellow]")
        return
    table = Table(title="Instance Groups", box=box.ROUNDED)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Color")
    table.add_column("Instances", justify="right", style="green")
    for group in groups:
        table.add_row(
            str(group.order),
            group.name,
            f"[{group.color}]{group.color}[/{group.color}]",
            str(counts.get(group.id, 0)),
        )
    console.print(table)


def connection_result_line(
    instance: ServiceInstance, result: ConnectionTestResult
) -> Text:
    """One line of the streamed connection test output."""
    line = Text()
    if result.success:
        line.append("✓ ", style="bold green")
    else:
        line.append("✗ ", style="bold red")
    line.append(f"{instance.name} ", style="bold")
    line.append(f"({instance.service_type.display_name}) ", style="cyan")
    line.append(result.message)
    if result.response_time is not None:
        line.append(f"  {result.response_time * 1000:.0f} ms", style="dim")
    if not result.success and result.recovery_suggestion:
        line.append(f"\n    {result.recovery_suggestion.strip()}", style="yellow")
    return line


def print_search_results(results: list[SearchResult]):
    console = Console()
    if not results:
        console.print("[yellow]No results.[/yellow]")
        return
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("TMDB ID", style="dim", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Year")
    table.add_column("Type", style="cyan")
    table.add_column("Status")
    for result in results:
        status = "-"
        if result.media_info is not None:
            status = result.media_info.status.name.replace("_", " ").lower()
        table.add_row(
            str(result.id),
            result.display_title,
            result.display_year or "-",
            result.resolved_media_type.value,
            status,
        )
    console.print(table)


def print_request_outcome(outcome: RequestOutcome):
    console = Console()
    styles = {
        OutcomeStatus.CREATED: "green",
        OutcomeStatus.ALREADY_AVAILABLE: "cyan",
        OutcomeStatus.ALREADY_REQUESTED: "yellow",
        OutcomeStatus.NOT_FOUND: "yellow",
        OutcomeStatus.NOT_CONFIGURED: "red",
    }
    style = styles[outcome.status]
    console.print(Panel(Text(outcome.message), border_style=style, expand=False))


def print_torrents_table(torrents: dict[str, list[Torrent]]):
    """Displays torrents of every qBittorrent instance, keyed by instance name."""
    console = Console()
    for instance_name, items in torrents.items():
        table = Table(title=instance_name, box=box.ROUNDED)
        table.add_column("Hash", style="dim", no_wrap=True)
        table.add_column("Name", overflow="fold")
        table.add_column("Progress", justify="right")
        table.add_column("State")
        table.add_column("↓", justify="right", style="green")
        table.add_column("↑", justify="right", style="magenta")
        table.add_column("ETA", justify="right")
        table.add_column("Size", justify="right")
        for torrent in items:
            state_style = "red" if torrent.has_error else "yellow" if torrent.is_paused else ""
            table.add_row(
                torrent.hash[:10],
                torrent.name,
                f"{torrent.progress * 100:.1f}%",
                Text(torrent.state, style=state_style),
                format_speed(torrent.dlspeed),
                format_speed(torrent.upspeed),
                format_eta(torrent.eta),
                format_size(torrent.size),
            )
        if not items:
            table.add_row("-", "[dim]No torrents[/dim]", "", "", "", "", "", "")
        console.print(table)


def print_storage_table(storage: list[StorageInfo]):
    console = Console()
    table = Table(title="Free Space", box=box.ROUNDED)
    table.add_column("Instance", style="bold")
    table.add_column("Type", style="cyan")
    table.add_column("Path")
    table.add_column("Free", justify="right", style="green")
    table.add_column("Total", justify="right")
    for info in storage:
        name = info.instance.name
        kind = info.instance.service_type.display_name
        if info.error:
            table.add_row(name, kind, f"[red]{info.error}[/red]", "-", "-")
            continue
        for disk in info.disks:
            table.add_row(
                name,
                kind,
                disk.path or "[dim]default[/dim]",
                format_size(disk.free_space),
                format_size(disk.total_space) if disk.total_space else "-",
            )
    console.print(table)


def summarize_results(results: dict[Any, ConnectionTestResult]) -> Text:
    succeeded = sum(1 for r in results.values() if r.success)
    failed = len(results) - succeeded
    text = Text()
    text.append(f"{succeeded} connected", style="bold green")
    if failed:
        text.append(", ")
        text.append(f"{failed} failed", style="bold red")
    return text
