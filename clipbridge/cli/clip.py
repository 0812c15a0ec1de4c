#!/usr/bin/env python3
"""
CLI for clipbridge - send web captures into a local workspace.

Usage:
    clip init                       - Create an empty workspace with a Journal
    clip ping                       - Check the host plugin answers
    clip capture URL [options]      - Capture a link, selection or page
    clip search "query"             - Find destination pages
    clip tags "query"               - Suggest hashtags
    clip show PAGE_GUID             - Print a page's outline
"""

import asyncio
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from clipbridge.bridge.config import Config
from clipbridge.bridge.messages import CaptureMode, DestinationRef, DestinationType, PageData
from clipbridge.host.model import NodeKind, SegmentKind
from clipbridge.host.workspace import Workspace, WorkspaceRecord, WorkspaceUI
from clipbridge.session import BridgeSession, setup_logging

console = Console()


class ConsoleNotifier:
    def notify(self, title: str, message: str) -> None:
        console.print(f"[bold]{title}[/bold] {message}")


async def open_workspace(path: Path) -> Workspace:
    if path.exists():
        return await Workspace.load(path)
    workspace = Workspace()
    workspace.add_collection("Journal")
    return workspace


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Config YAML")
@click.option("--workspace", "workspace_path", type=click.Path(path_type=Path), help="Workspace JSON")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path: Optional[Path], workspace_path: Optional[Path], verbose: bool):
    """clipbridge - web capture bridge CLI."""
    try:
        config = Config.load(config_path)
    except FileNotFoundError as e:
        raise click.ClickException(str(e))
    if workspace_path:
        config.workspace_path = workspace_path
    setup_logging(config, level="DEBUG" if verbose else "WARNING")
    ctx.obj = config


@cli.command()
@click.pass_obj
def init(config: Config):
    """Create an empty workspace with a Journal collection."""
    path = config.workspace_path
    if path.exists():
        console.print(f"[yellow]Workspace already exists:[/yellow] {path}")
        return

    async def run():
        workspace = await open_workspace(path)
        await workspace.save(path)

    asyncio.run(run())
    console.print(f"[green]✓[/green] Created workspace {path}")


@cli.command()
@click.pass_obj
def ping(config: Config):
    """Check that the host plugin answers."""
    async def run():
        workspace = await open_workspace(config.workspace_path)
        async with BridgeSession(workspace, WorkspaceUI(), config) as session:
            await session.client.check_connection()
            return session.client.status_text, session.client.connected

    status, connected = asyncio.run(run())
    color = "green" if connected else "red"
    console.print(f"[{color}]{status}[/{color}]")


@cli.command()
@click.argument("url")
@click.option("--title", "-t", help="Title (defaults to the URL)")
@click.option("--text", "content", default="", help="Selected text")
@click.option("--file", "content_file", type=click.File("r"), help="Read selected text from file")
@click.option("--image", "-i", "images", multiple=True, help="Image URL (repeatable)")
@click.option("--tag", "tags", multiple=True, help="Hashtag (repeatable)")
@click.option("--page", "page_guid", help="Destination page guid (default: today's journal)")
@click.option("--mode", type=click.Choice([m.value for m in CaptureMode]), help="Capture mode")
@click.option("--active", "active_guid", help="Guid of the record open in the host")
@click.pass_obj
def capture(
    config: Config,
    url: str,
    title: Optional[str],
    content: str,
    content_file,
    images: Tuple[str, ...],
    tags: Tuple[str, ...],
    page_guid: Optional[str],
    mode: Optional[str],
    active_guid: Optional[str],
):
    """Capture a web page excerpt."""
    if content_file is not None:
        content = content_file.read()
    page = PageData(url=url, title=title or url, content=content, images=list(images))
    if page_guid:
        destination = DestinationRef(type=DestinationType.PAGE, page_guid=page_guid)
    else:
        destination = DestinationRef(type=config.capture.default_destination)

    async def run():
        workspace = await open_workspace(config.workspace_path)
        ui = WorkspaceUI(workspace.records.get(active_guid) if active_guid else None)
        async with BridgeSession(workspace, ui, config, notifier=ConsoleNotifier()) as session:
            outcome = await session.client.capture(
                page,
                tags=list(tags) if tags else None,
                destination=destination,
                mode=CaptureMode(mode) if mode else None,
            )
        if outcome.success:
            await workspace.save(config.workspace_path)
        return outcome

    outcome = asyncio.run(run())
    if outcome.success:
        console.print(f"[green]✓[/green] {outcome.message}")
    else:
        console.print(f"[red]{outcome.message}[/red]")
        raise SystemExit(1)


@cli.command()
@click.argument("query")
@click.pass_obj
def search(config: Config, query: str):
    """Search for destination pages."""
    async def run():
        workspace = await open_workspace(config.workspace_path)
        async with BridgeSession(workspace, WorkspaceUI(), config) as session:
            return await session.client.search_pages(query)

    results = asyncio.run(run())
    if not results:
        console.print("[yellow]No pages found[/yellow]")
        return

    table = Table(title=f"Pages matching {query!r}")
    table.add_column("Name", style="cyan")
    table.add_column("Guid", style="dim")
    for r in results:
        table.add_row(r.get("name", ""), r.get("guid", ""))
    console.print(table)


@cli.command()
@click.argument("query")
@click.pass_obj
def tags(config: Config, query: str):
    """Suggest hashtags already used in the workspace."""
    async def run():
        workspace = await open_workspace(config.workspace_path)
        async with BridgeSession(workspace, WorkspaceUI(), config) as session:
            return await session.client.suggest_tags(query)

    suggestions = asyncio.run(run())
    if not suggestions:
        console.print("[yellow]No tags found[/yellow]")
        return
    for tag in suggestions:
        console.print(f"  • {tag}")


@cli.command()
@click.argument("page_guid")
@click.pass_obj
def show(config: Config, page_guid: str):
    """Print a page's outline."""
    workspace = asyncio.run(open_workspace(config.workspace_path))
    record = workspace.records.get(page_guid)
    if record is None:
        raise click.ClickException(f"Page not found: {page_guid}")
    console.print(render_record(record))


def render_record(record: WorkspaceRecord) -> Tree:
    tree = Tree(f"[bold]{escape(record.name)}[/bold]")
    _render_children(record, record.guid, tree)
    return tree


def _render_children(record: WorkspaceRecord, parent_guid: str, branch: Tree) -> None:
    for item in record.children_of(parent_guid):
        child = branch.add(_render_line(item.kind, item.segments))
        _render_children(record, item.guid, child)


def _render_line(kind: NodeKind, segments: List) -> str:
    parts = []
    for s in segments:
        if s.kind == SegmentKind.BOLD:
            parts.append(f"[bold]{escape(s.text)}[/bold]")
        elif s.kind == SegmentKind.HASHTAG:
            parts.append(f"[magenta]{escape(s.text)}[/magenta]")
        elif s.kind in (SegmentKind.LINK, SegmentKind.LINKOBJ):
            parts.append(f"[blue underline]{escape(s.text)}[/blue underline]")
        else:
            parts.append(escape(s.text))
    line = "".join(parts)
    return f"[dim]>[/dim] {line}" if kind == NodeKind.QUOTE else line


def main():
    cli()


if __name__ == "__main__":
    main()
