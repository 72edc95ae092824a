"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from mediahub import __version__
from mediahub.api.qbittorrent import QBittorrentClient
from mediahub.core.hub import MediaHub
from mediahub.exceptions import CredentialMissingError, MediaHubError
from mediahub.models.instance import (
    GROUP_COLORS,
    InstanceGroup,
    ServiceInstance,
    ServiceType,
)
from mediahub.models.overseerr import MediaType
from mediahub.models.qbittorrent import TorrentFilter
from mediahub.storage.config_manager import CONFIG_FILE_NAME, ConfigManager, get_config_dir

from .formatters import (
    connection_result_line,
    print_config,
    print_groups_table,
    print_instances_table,
    print_request_outcome,
    print_search_results,
    print_storage_table,
    print_torrents_table,
    summarize_results,
)

T = TypeVar("T")

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("mediahub")

app = typer.Typer(
    name="mediahub",
    help=(
        "Manage Overseerr, Radarr, Sonarr and qBittorrent instances from one place."
        " Use 'mediahub <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)
instance_app = typer.Typer(help="Add, list and remove service instances.")
group_app = typer.Typer(help="Organize instances into ordered groups.")
app.add_typer(instance_app, name="instance")
app.add_typer(group_app, name="group")

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / CONFIG_FILE_NAME


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """MediaHub CLI"""
    if version:
        console.print(f"[bold]mediahub[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose == 1:
        log_level = "INFO"
    elif verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("mediahub").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


def _run(action: Callable[[MediaHub], Awaitable[T]]) -> T:
    """Builds the hub, runs ``action`` inside it and tears everything down."""

    async def _runner() -> T:
        async with MediaHub.from_config_dir(CONFIG_DIR) as hub:
            return await action(hub)

    return asyncio.run(_runner())


def _find_instance(hub: MediaHub, ref: str) -> ServiceInstance:
    """Resolves an instance by full id, id prefix or case-insensitive name."""
    ref_lower = ref.strip().lower()
    instances = hub.registry.instances
    for instance in instances:
        if str(instance.id) == ref_lower or instance.name.lower() == ref_lower:
            return instance
    matches = [i for i in instances if str(i.id).startswith(ref_lower)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        console.print(f"[red]✗ '{ref}' matches several instances, be more specific.[/red]")
    else:
        console.print(f"[red]✗ No instance matches '{ref}'.[/red]")
    raise typer.Exit(code=1)


def _find_group(hub: MediaHub, ref: str) -> InstanceGroup:
    ref_lower = ref.strip().lower()
    for group in hub.registry.groups:
        if group.name.lower() == ref_lower or str(group.id).startswith(ref_lower):
            return group
    console.print(f"[red]✗ No group matches '{ref}'.[/red]")
    raise typer.Exit(code=1)


# --- Instances ---


@instance_app.command("add")
def instance_add(
    name: str = typer.Argument(..., help="Display name of the instance."),
    url: str = typer.Argument(..., help="Base URL, e.g. http://nas.local:7878"),
    service_type: ServiceType = typer.Option(
        ..., "--type", "-t", help="Kind of service.", case_sensitive=False
    ),
    api_key: str | None = typer.Option(
        None, "--api-key", help="API key (Overseerr, Radarr, Sonarr)."
    ),
    username: str | None = typer.Option(None, "--username", help="qBittorrent user."),
    password: str | None = typer.Option(
        None, "--password", help="qBittorrent password."
    ),
    group: str | None = typer.Option(None, "--group", "-g", help="Group name."),
    disabled: bool = typer.Option(False, "--disabled", help="Add it disabled."),
    test: bool = typer.Option(
        True, "--test/--no-test", help="Test the connection after adding."
    ),
):
    """Add a service instance and store its credentials."""
    if service_type.uses_api_key:
        api_key = api_key or typer.prompt("API key", hide_input=True)
        username = password = None
    else:
        username = username if username is not None else typer.prompt("Username")
        password = (
            password
            if password is not None
            else typer.prompt("Password", hide_input=True)
        )
        api_key = None

    async def _add(hub: MediaHub) -> None:
        instance = ServiceInstance(
            name=name,
            base_url=url,
            service_type=service_type,
            is_enabled=not disabled,
            group_id=_find_group(hub, group).id if group else None,
        )
        await hub.orchestrator.add_instance(instance, api_key, username, password)
        console.print(
            f"[green]✓ Added {service_type.display_name} instance "
            f"'{instance.name}'[/green] [dim]({instance.id})[/dim]"
        )
        if test:
            result = await hub.orchestrator.test_connection(instance)
            console.print(connection_result_line(instance, result))

    _run(_add)


@instance_app.command("update")
def instance_update(
    ref: str = typer.Argument(..., help="Instance id, id prefix or name."),
    name: str | None = typer.Option(None, "--name", help="New display name."),
    url: str | None = typer.Option(None, "--url", help="New base URL."),
    api_key: str | None = typer.Option(None, "--api-key", help="New API key."),
    username: str | None = typer.Option(None, "--username"),
    password: str | None = typer.Option(None, "--password"),
    group: str | None = typer.Option(
        None, "--group", "-g", help="Group name, or '-' to ungroup."
    ),
    enabled: bool | None = typer.Option(None, "--enable/--disable"),
):
    """Edit an instance. Credentials are replaced only when given."""

    async def _update(hub: MediaHub) -> None:
        instance = _find_instance(hub, ref)
        changes: dict = {}
        if name is not None:
            changes["name"] = name
        if url is not None:
            changes["base_url"] = url
        if enabled is not None:
            changes["is_enabled"] = enabled
        if group is not None:
            changes["group_id"] = None if group == "-" else _find_group(hub, group).id
        updated = ServiceInstance.model_validate(
            {**instance.model_dump(), **changes}
        )
        await hub.orchestrator.update_instance(updated, api_key, username, password)
        console.print(f"[green]✓ Updated '{updated.name}'.[/green]")

    _run(_update)


@instance_app.command("list")
def instance_list():
    """List configured instances."""

    async def _list(hub: MediaHub) -> None:
        print_instances_table(hub.registry.instances, hub.registry.groups)

    _run(_list)


@instance_app.command("remove")
def instance_remove(
    ref: str = typer.Argument(..., help="Instance id, id prefix or name."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Bypass the confirmation prompt."
    ),
):
    """Remove an instance and delete its stored credentials."""

    async def _remove(hub: MediaHub) -> None:
        instance = _find_instance(hub, ref)
        if not force and not typer.confirm(
            f"Remove '{instance.name}' and its stored credentials?"
        ):
            console.print("[yellow]Operation cancelled.[/yellow]")
            raise typer.Abort()
        await hub.orchestrator.delete_instance(instance)
        console.print(f"[green]✓ Removed '{instance.name}'.[/green]")

    _run(_remove)


# --- Groups ---


@group_app.command("add")
def group_add(
    name: str = typer.Argument(..., help="Group name."),
    color: str = typer.Option(
        "blue", "--color", help=f"One of: {', '.join(GROUP_COLORS)}."
    ),
    icon: str = typer.Option("server.rack", "--icon"),
):
    """Create a group at the end of the list."""

    async def _add(hub: MediaHub) -> None:
        group = await hub.registry.add_group(
            InstanceGroup(name=name, color=color, icon=icon)
        )
        console.print(f"[green]✓ Created group '{group.name}' at #{group.order}.[/green]")

    _run(_add)


@group_app.command("list")
def group_list():
    """List groups in their display order."""

    async def _list(hub: MediaHub) -> None:
        groups = hub.registry.groups
        counts = {g.id: len(hub.registry.instances_in(g)) for g in groups}
        print_groups_table(groups, counts)

    _run(_list)


@group_app.command("move")
def group_move(
    from_index: int = typer.Argument(..., help="Current position."),
    to_index: int = typer.Argument(..., help="New position."),
):
    """Move a group to another position."""

    async def _move(hub: MediaHub) -> None:
        try:
            await hub.registry.move_group(from_index, to_index)
        except IndexError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1) from e
        groups = hub.registry.groups
        counts = {g.id: len(hub.registry.instances_in(g)) for g in groups}
        print_groups_table(groups, counts)

    _run(_move)


@group_app.command("remove")
def group_remove(ref: str = typer.Argument(..., help="Group name or id prefix.")):
    """Delete a group. Its instances are kept and become ungrouped."""

    async def _remove(hub: MediaHub) -> None:
        group = _find_group(hub, ref)
        members = len(hub.registry.instances_in(group))
        await hub.registry.delete_group(group)
        console.print(
            f"[green]✓ Removed group '{group.name}'[/green] "
            f"[dim]({members} instance(s) ungrouped)[/dim]"
        )

    _run(_remove)


# --- Connection tests ---


@app.command(name="test")
def test_command(
    ref: str | None = typer.Argument(
        None, help="Instance to test. Tests every enabled instance when omitted."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", help="Per-instance timeout in seconds."
    ),
):
    """Test connections, printing each result as it arrives."""

    async def _test(hub: MediaHub) -> bool:
        targets = [_find_instance(hub, ref)] if ref else None
        if targets is None and not hub.registry.instances:
            console.print("[yellow]No instances configured.[/yellow]")
            return True
        results = {}
        async for instance, result in hub.orchestrator.iter_connection_tests(
            targets, timeout
        ):
            results[instance.id] = result
            console.print(connection_result_line(instance, result))
        console.print(summarize_results(results))
        return all(r.success for r in results.values())

    if not _run(_test):
        raise typer.Exit(code=1)


# --- Search & requests ---


@app.command()
def search(
    query: str = typer.Argument(..., help="Title to search for."),
    page: int = typer.Option(1, "--page", "-p", min=1),
):
    """Search movies and series through the primary Overseerr instance."""

    async def _search(hub: MediaHub) -> None:
        results = await hub.orchestrator.search(query, page)
        print_search_results(results.results)
        console.print(
            f"[dim]Page {results.page}/{max(results.total_pages, 1)} "
            f"({results.total_results} results)[/dim]"
        )

    _run(_search)


@app.command()
def request(
    title: str = typer.Argument(..., help="Title of the movie or series."),
    media_type: MediaType | None = typer.Option(
        None, "--type", "-t", help="movie or tv.", case_sensitive=False
    ),
):
    """Search a title and request the best match unless it is already there."""

    async def _request(hub: MediaHub) -> None:
        outcome = await hub.orchestrator.search_and_request(title, media_type)
        print_request_outcome(outcome)

    _run(_request)


# --- Torrents ---


async def _torrent_client(hub: MediaHub, ref: str | None) -> QBittorrentClient:
    if ref:
        instance = _find_instance(hub, ref)
    else:
        instances = hub.registry.instances_of_type(ServiceType.QBITTORRENT)
        if len(instances) != 1:
            console.print(
                "[red]✗ Use --instance to pick one of "
                f"{len(instances)} qBittorrent instances.[/red]"
            )
            raise typer.Exit(code=1)
        instance = instances[0]
    client = await hub.orchestrator.qbittorrent_client(instance)
    if client is None:
        raise CredentialMissingError(
            f"'{instance.name}' is not a qBittorrent instance with credentials."
        )
    return client


@app.command()
def torrents(
    filter: TorrentFilter = typer.Option(
        TorrentFilter.ALL, "--filter", "-f", case_sensitive=False
    ),
):
    """List torrents of every qBittorrent instance."""

    async def _list(hub: MediaHub) -> None:
        if filter is TorrentFilter.ALL:
            by_id = await hub.orchestrator.all_torrents()
        else:
            by_id = {}
            for instance in hub.registry.instances_of_type(ServiceType.QBITTORRENT):
                client = await hub.orchestrator.require_client(instance)
                by_id[instance.id] = await client.list_torrents(filter)
        names = {i.id: i.name for i in hub.registry.instances}
        print_torrents_table({names[k]: v for k, v in by_id.items()})

    _run(_list)


@app.command()
def pause(
    hashes: list[str] = typer.Argument(..., help="Torrent hashes, or 'all'."),  # noqa: B008
    instance: str | None = typer.Option(None, "--instance", "-i"),
):
    """Pause torrents."""

    async def _pause(hub: MediaHub) -> None:
        client = await _torrent_client(hub, instance)
        await client.pause(hashes)
        console.print(f"[green]✓ Paused {len(hashes)} torrent(s).[/green]")

    _run(_pause)


@app.command()
def resume(
    hashes: list[str] = typer.Argument(..., help="Torrent hashes, or 'all'."),  # noqa: B008
    instance: str | None = typer.Option(None, "--instance", "-i"),
):
    """Resume torrents."""

    async def _resume(hub: MediaHub) -> None:
        client = await _torrent_client(hub, instance)
        await client.resume(hashes)
        console.print(f"[green]✓ Resumed {len(hashes)} torrent(s).[/green]")

    _run(_resume)


@app.command()
def delete(
    hashes: list[str] = typer.Argument(..., help="Torrent hashes."),  # noqa: B008
    instance: str | None = typer.Option(None, "--instance", "-i"),
    delete_files: bool = typer.Option(
        False, "--delete-files", help="Also delete downloaded data."
    ),
    force: bool = typer.Option(False, "--force", "-f"),
):
    """Delete torrents."""
    if delete_files and not force and not typer.confirm(
        "Delete the downloaded files as well? This cannot be undone."
    ):
        raise typer.Abort()

    async def _delete(hub: MediaHub) -> None:
        client = await _torrent_client(hub, instance)
        await client.delete(hashes, delete_files)
        console.print(f"[green]✓ Deleted {len(hashes)} torrent(s).[/green]")

    _run(_delete)


# --- Storage, TMDB & config ---


@app.command()
def storage():
    """Show free disk space reported by every library manager and torrent client."""

    async def _storage(hub: MediaHub) -> None:
        infos = await hub.orchestrator.storage_info_all()
        if not infos:
            console.print("[yellow]No Radarr, Sonarr or qBittorrent instance.[/yellow]")
            return
        print_storage_table(list(infos.values()))

    _run(_storage)


@app.command(name="tmdb-key")
def tmdb_key(
    api_key: str | None = typer.Argument(None, help="TMDB v3 API key."),
    clear: bool = typer.Option(False, "--clear", help="Remove the stored key."),
    test: bool = typer.Option(True, "--test/--no-test"),
):
    """Store, remove or test the global TMDB API key."""

    async def _tmdb(hub: MediaHub) -> bool:
        if clear:
            await hub.orchestrator.save_tmdb_api_key("")
            console.print("[green]✓ TMDB API key removed.[/green]")
            return True
        if api_key is not None:
            await hub.orchestrator.save_tmdb_api_key(api_key)
            console.print("[green]✓ TMDB API key saved.[/green]")
        if not test:
            return True
        result = await hub.orchestrator.test_tmdb_connection()
        style = "green" if result.success else "red"
        console.print(f"[{style}]{result.message}[/{style}]")
        if result.recovery_suggestion and not result.success:
            console.print(f"[yellow]{result.recovery_suggestion}[/yellow]")
        return result.success

    if not _run(_tmdb):
        raise typer.Exit(code=1)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_config(CONFIG_FILE, config)
    except MediaHubError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
