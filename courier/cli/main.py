"""
Courier CLI entry point.

Commands:
    courier version      — Show version
    courier probe        — Show platform capabilities
    courier subscribe    — Enable push notifications for the configured user
    courier unsubscribe  — Disable them again
    courier run          — Run the pipeline until interrupted
    courier demo         — Schedule sample notifications and watch them fire
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from courier.core.config import CourierConfig
from courier.core.errors import ConfigError

app = typer.Typer(
    name="courier",
    help="Courier — delivery reminders and live updates for SustainConnect.",
    add_completion=False,
)

console = Console()


def _load_config(config_path: Path | None, poll: float | None = None) -> CourierConfig:
    overrides = {"scheduler": {"poll_interval": poll}} if poll is not None else None
    try:
        return CourierConfig.load(overrides=overrides, project_path=config_path)
    except ConfigError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)


def _setup_logging(config: CourierConfig, verbose: bool) -> None:
    from courier.middleware.logging import setup_logging

    setup_logging(config.logging, verbose=verbose)


def _require_user(config: CourierConfig) -> None:
    if not config.user.id:
        console.print(
            "[yellow]No user configured.[/yellow]\n"
            "[dim]Set [bold]user.id[/bold] in courier.toml or COURIER_USER_ID.[/dim]"
        )
        raise typer.Exit(1)


ConfigOption = typer.Option(None, "--config", "-c", help="Path to a courier.toml")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Show debug output")


@app.command()
def version() -> None:
    """Show Courier version."""
    from courier import __version__

    console.print(f"Courier v{__version__}")


@app.command()
def probe(config_path: Path = ConfigOption) -> None:
    """Show which delivery channels this host supports."""
    from courier.notifications.capabilities import CapabilityProber
    from courier.platform.headless import HeadlessPlatform

    config = _load_config(config_path)
    caps = CapabilityProber(HeadlessPlatform.from_config(config)).probe()

    table = Table(title="Capabilities", show_header=True)
    table.add_column("Capability")
    table.add_column("Value")
    table.add_row("Push", _yes_no(caps.has_push))
    table.add_row("Realtime socket", _yes_no(caps.has_realtime_socket_support))
    table.add_row("Notification permission", caps.notification_permission.value)
    table.add_row("Realtime URL", config.realtime_url())
    console.print(table)


@app.command()
def subscribe(config_path: Path = ConfigOption, verbose: bool = VerboseOption) -> None:
    """Register for push notifications and store the subscription."""
    config = _load_config(config_path)
    _require_user(config)
    _setup_logging(config, verbose)
    ok = asyncio.run(_push_action(config, "subscribe"))
    raise typer.Exit(0 if ok else 1)


@app.command()
def unsubscribe(config_path: Path = ConfigOption, verbose: bool = VerboseOption) -> None:
    """Drop the push subscription locally and remotely."""
    config = _load_config(config_path)
    _require_user(config)
    _setup_logging(config, verbose)
    ok = asyncio.run(_push_action(config, "unsubscribe"))
    raise typer.Exit(0 if ok else 1)


@app.command()
def run(
    config_path: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Run the notification pipeline until Ctrl-C."""
    config = _load_config(config_path)
    _require_user(config)
    _setup_logging(config, verbose)
    try:
        asyncio.run(_run(config, seconds=None))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")


@app.command()
def demo(
    seconds: float = typer.Option(90.0, "--seconds", "-s", help="How long to keep running"),
    poll: float = typer.Option(5.0, "--poll", help="Scheduler poll interval in seconds"),
    config_path: Path = ConfigOption,
    verbose: bool = VerboseOption,
) -> None:
    """Schedule one of each reminder kind and watch them fire."""
    config = _load_config(config_path, poll=poll)
    _setup_logging(config, verbose)
    asyncio.run(_run(config, seconds=seconds, with_demo=True))


# ── Async bodies ──────────────────────────────────────────────────────────────


async def _push_action(config: CourierConfig, action: str) -> bool:
    from courier.pipeline import NotificationPipeline

    pipeline = NotificationPipeline.from_config(config, console=console)
    try:
        await pipeline.push.refresh()
        if action == "subscribe":
            return await pipeline.push.subscribe()
        return await pipeline.push.unsubscribe()
    finally:
        await pipeline.backend.close()
        await pipeline.store.close()


async def _run(config: CourierConfig, seconds: float | None, with_demo: bool = False) -> None:
    from courier.pipeline import NotificationPipeline

    pipeline = NotificationPipeline.from_config(config, console=console, log_events=True)
    async with pipeline:
        caps = pipeline.capabilities()
        console.print(
            f"[bold]Courier running[/bold] "
            f"[dim](push={_yes_no(pipeline.push.is_subscribed)}, "
            f"realtime={_yes_no(caps.has_realtime_socket_support and not caps.has_push)})[/dim]"
        )
        if with_demo:
            scheduler = pipeline.scheduler
            scheduler.schedule_delivery_reminder(
                "demo-delivery-123",
                datetime.now() + timedelta(seconds=30),
                "123 Main St, Downtown",
            )
            scheduler.schedule_pickup_reminder("demo-donation-456", "789 Food Bank Ave")
            scheduler.schedule_status_update("demo-delivery-789", "picked_up")
            for item in scheduler.pending:
                due = datetime.fromtimestamp(item.fire_at).strftime("%H:%M:%S")
                console.print(f"[dim]  scheduled {item.kind.value} for {due}[/dim]")

        if seconds is None:
            while True:
                await asyncio.sleep(3600)
        else:
            await asyncio.sleep(seconds)


def _yes_no(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


if __name__ == "__main__":
    app()
