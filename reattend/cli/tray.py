#!/usr/bin/env python3
"""
Command line for Reattend.

Usage:
    reattend capture "text"     - Save a memory
    reattend search "query"     - Search memories
    reattend ask "question"     - Ask about your memories
    reattend snooze 30          - Pause ambient suggestions
    reattend clean [FILE]       - Show what survives OCR cleaning
    reattend configure          - Set API URL and token
    reattend daemon start       - Run the passive capture daemon
    reattend daemon stop        - Stop the daemon
    reattend daemon status      - Check daemon status
"""

import asyncio
from pathlib import Path
from typing import Optional

import click
import httpx
from loguru import logger
from rich.console import Console
from rich.table import Table

from ..daemon.api import ReattendClient
from ..daemon.config import Config
from ..daemon.errors import NotConfiguredError, ReattendError
from ..daemon.models import SOURCE_KINDS
from ..daemon.normalizer import clean_ocr_text
from ..daemon.state import MAX_SNOOZE_MINUTES

console = Console()


def load_config(config_path: Optional[str]) -> Config:
    return Config.load(Path(config_path) if config_path else None)


def control_url(config: Config) -> str:
    return f"http://{config.control.host}:{config.control.port}"


@click.group()
@click.option("--config", "-c", "config_path", type=click.Path(exists=True), help="Config file path")
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """Reattend - passive memory capture."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


def _client(ctx) -> ReattendClient:
    return ReattendClient.from_config(load_config(ctx.obj["config_path"]))


def _report_api_error(e: ReattendError) -> None:
    if isinstance(e, NotConfiguredError):
        console.print("[red]Not connected.[/red] Set your token with: [cyan]reattend configure --token ...[/cyan]")
    else:
        console.print(f"[red]Error:[/red] {e}")


@cli.command()
@click.argument("text")
@click.option("--source", "-s", type=click.Choice(SOURCE_KINDS), default="tray-manual", help="Capture source label")
@click.pass_context
def capture(ctx, text: str, source: str):
    """Capture a thought, decision or note."""
    asyncio.run(capture_text(_client(ctx), text, source))


async def capture_text(client: ReattendClient, text: str, source: str):
    try:
        memory_id = await client.capture(text.strip(), source)
    except ReattendError as e:
        _report_api_error(e)
        return
    console.print(f"[green]✓[/green] Captured: {memory_id or 'ok'}")


@cli.command()
@click.argument("query")
@click.option("--limit", "-l", default=5, help="Max results")
@click.pass_context
def search(ctx, query: str, limit: int):
    """Search memories."""
    asyncio.run(search_memories(_client(ctx), query, limit))


async def search_memories(client: ReattendClient, query: str, limit: int):
    try:
        data = await client.search(query, limit=limit)
    except ReattendError as e:
        _report_api_error(e)
        return
    display_search_results(data)


def display_search_results(data: dict):
    results = data.get("results", []) if isinstance(data, dict) else []

    if not results:
        console.print("[yellow]No results found[/yellow]")
        return

    table = Table(title="Memories")
    table.add_column("Title", style="cyan", no_wrap=False)
    table.add_column("Type", style="magenta")
    table.add_column("Score", justify="right")
    table.add_column("Summary", no_wrap=False)

    for r in results:
        summary = r.get("summary") or ""
        table.add_row(
            r.get("title", "Untitled"),
            r.get("type", "note"),
            f"{r.get('similarity', r.get('score', 0)):.2f}",
            summary[:100]
        )

    console.print(table)


@cli.command()
@click.argument("question")
@click.pass_context
def ask(ctx, question: str):
    """Ask a question about your memories."""
    asyncio.run(ask_question(_client(ctx), question))


async def ask_question(client: ReattendClient, question: str):
    try:
        answer = await client.ask(question)
    except ReattendError as e:
        _report_api_error(e)
        return
    console.print(answer)


@cli.command()
@click.option("--url", help="Reattend API URL")
@click.option("--token", help="API token")
@click.option("--path", type=click.Path(), help="Where to write the config")
@click.pass_context
def configure(ctx, url: Optional[str], token: Optional[str], path: Optional[str]):
    """Save API URL and token."""
    config = load_config(ctx.obj["config_path"])
    if url:
        config.api_url = url.rstrip("/")
    if token is not None:
        config.api_token = token

    target = Path(path) if path else (
        Path(ctx.obj["config_path"]) if ctx.obj["config_path"] else Config.default_paths()[1]
    )
    config.save(target)
    console.print(f"[green]✓[/green] Saved config to {target}")


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
def clean(source):
    """Print the content blocks kept from raw OCR text."""
    cleaned = clean_ocr_text(source.read())
    if not cleaned:
        console.print("[yellow]Nothing substantive found[/yellow]")
        return
    for block in cleaned.split("\n"):
        click.echo(block)


@cli.command()
@click.argument("minutes", type=click.IntRange(min=0, max=MAX_SNOOZE_MINUTES))
@click.pass_context
def snooze(ctx, minutes: int):
    """Pause ambient suggestions for MINUTES."""
    asyncio.run(post_control(ctx, "/snooze", {"minutes": minutes}))


async def post_control(ctx, path: str, payload: Optional[dict] = None):
    config = load_config(ctx.obj["config_path"])
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{control_url(config)}{path}",
                json=payload or {},
                timeout=5.0
            )
    except httpx.ConnectError:
        console.print("[red]Cannot connect to daemon. Is it running?[/red]")
        console.print("Start with: [cyan]reattend daemon start[/cyan]")
        return None

    try:
        data = response.json()
    except ValueError:
        console.print(f"[red]Daemon error {response.status_code}:[/red] {response.text}")
        return None

    if response.status_code == 200 and data.get("ok", True):
        console.print(f"[green]✓[/green] {data.get('body', 'ok')}")
    else:
        message = data.get("body") or data.get("error", {}).get("message") or response.text
        console.print(f"[red]Failed:[/red] {message}")
    return data


@cli.group()
def daemon():
    """Manage the Reattend daemon."""
    pass


@daemon.command()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def start(ctx, verbose: bool):
    """Run the passive capture daemon in the foreground."""
    console.print("[cyan]Starting Reattend daemon...[/cyan]")

    from ..daemon.main import main as daemon_main

    try:
        asyncio.run(daemon_main(ctx.obj["config_path"], verbose=verbose))
    except KeyboardInterrupt:
        console.print("\n[yellow]Daemon stopped by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Daemon error:[/red] {e}")
        logger.exception("Daemon crashed")


@daemon.command()
@click.pass_context
def stop(ctx):
    """Ask the running daemon to quit."""
    asyncio.run(post_control(ctx, "/quit"))


@daemon.command()
@click.pass_context
def status(ctx):
    """Check daemon status."""
    asyncio.run(check_status(ctx))


async def check_status(ctx):
    config = load_config(ctx.obj["config_path"])
    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(f"{control_url(config)}/status", timeout=2.0)
    except httpx.ConnectError:
        console.print("[red]✗ Daemon is not running[/red]")
        console.print("Start with: [cyan]reattend daemon start[/cyan]")
        return

    if response.status_code != 200:
        console.print("[red]Daemon error[/red]")
        return

    data = response.json()
    scheduler = data.get("scheduler", {})
    stats = scheduler.get("stats", {})
    snooze_state = scheduler.get("snooze", {})

    console.print("[green]✓ Daemon is running[/green]")
    if not data.get("configured"):
        console.print("[yellow]No API token configured; capture is idle[/yellow]")
    console.print(f"\nUptime: {scheduler.get('uptime', 'unknown')}")
    console.print(f"Current app: {scheduler.get('current_app') or 'unknown'}")
    console.print(f"Screen captures: {stats.get('screen_captures', 0)}")
    console.print(f"Clipboard captures: {stats.get('clipboard_captures', 0)}")
    console.print(f"Suggestions shown: {stats.get('suggestions_surfaced', 0)}")
    if snooze_state.get("snoozed"):
        console.print(f"Snoozed until: {snooze_state.get('until')}")
    errors = scheduler.get("errors", {})
    if errors.get("total"):
        console.print(f"[yellow]Errors: {errors['counts']}[/yellow]")


def main():
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
