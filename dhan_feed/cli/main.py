"""
dhan-feed CLI.

Commands:
- stream: Connect, subscribe, and print decoded messages
- decode: Decode one hex-encoded frame
- packet: Build a subscription packet and print it as hex
- init-config: Write a default config file
- version: Print version
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional
from enum import Enum

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..codec.packets import (
    Instrument,
    SubscriptionMode,
    SubscriptionPacket,
    build_subscription_packet,
)
from ..config import load_config, generate_default_config
from ..core.errors import DhanFeedError
from ..decoder.decoder import MessageDecoder
from ..decoder.messages import DecodedMessage
from ..logging_setup import configure_logging
from ..session.client import FeedSession
from ..session.events import DisconnectEvent, SessionListener


app = typer.Typer(
    name="dhanfeed",
    help="Binary market feed client",
    add_completion=False,
)
console = Console()


class OutputFormat(str, Enum):
    json = "json"
    table = "table"


def _message_table(message: DecodedMessage) -> Table:
    """Render one decoded message as a two-column table."""
    table = Table(title=message.kind.replace('_', ' ').title())
    table.add_column("Field")
    table.add_column("Value", justify="right")
    for name, value in message.to_dict(formatted=True).items():
        if name in ('kind', 'error'):
            continue
        table.add_row(name, str(value))
    return table


def _parse_instruments(values: List[str]) -> List[Instrument]:
    try:
        return [Instrument.parse(v) for v in values]
    except DhanFeedError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(2)


class _ConsoleListener(SessionListener):
    """Prints messages and stops the stream after `limit` of them."""

    def __init__(self, output: OutputFormat, limit: Optional[int], done: asyncio.Event):
        self.output = output
        self.limit = limit
        self.done = done
        self.count = 0

    def on_message(self, message: DecodedMessage) -> None:
        if self.output == OutputFormat.json:
            console.print_json(json.dumps(message.to_dict(formatted=True)))
        else:
            console.print(_message_table(message))
        self.count += 1
        if self.limit is not None and self.count >= self.limit:
            self.done.set()

    def on_disconnected(self, event: DisconnectEvent) -> None:
        console.print(f"[yellow]Disconnected ({event.source}):[/] {event.reason}")
        self.done.set()


async def _run_stream(session: FeedSession, instruments: List[Instrument],
                      output: OutputFormat, count: Optional[int]) -> dict:
    done = asyncio.Event()
    session.add_listener(_ConsoleListener(output, count, done))
    try:
        await session.connect()
        await session.subscribe(instruments)
        await done.wait()
    finally:
        await session.close()
    return session.stats()


@app.command()
def stream(
    instruments: List[str] = typer.Option(
        ..., "-i", "--instrument", help="SEGMENT:SECURITY_ID, repeatable"),
    config_path: Optional[Path] = typer.Option(None, "-c", "--config"),
    format: OutputFormat = typer.Option(OutputFormat.table, "-f", "--format"),
    count: Optional[int] = typer.Option(None, "-n", "--count", help="Stop after N messages"),
    log_level: Optional[str] = typer.Option(None, "--log-level"),
):
    """Connect, subscribe to instruments, and print decoded messages."""
    cfg = load_config(config_path)
    configure_logging(log_level or cfg.logging.level)

    errors = cfg.validate()
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/] {error}")
        raise typer.Exit(2)

    parsed = _parse_instruments(instruments)
    session = FeedSession.from_config(cfg)

    try:
        stats = asyncio.run(_run_stream(session, parsed, format, count))
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/]")
        raise typer.Exit(130)
    except DhanFeedError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    console.print(f"Frames received: {stats['frames_received']:,}")


@app.command()
def decode(
    frame_hex: str = typer.Argument(..., help="Frame bytes as hex"),
    format: OutputFormat = typer.Option(OutputFormat.table, "-f", "--format"),
):
    """Decode a single frame."""
    try:
        frame = bytes.fromhex(frame_hex.replace(' ', ''))
    except ValueError as e:
        console.print(f"[red]Error:[/] invalid hex: {e}")
        raise typer.Exit(2)

    message = MessageDecoder().decode(frame)

    if format == OutputFormat.json:
        typer.echo(json.dumps(message.to_dict(formatted=True)))
    else:
        console.print(_message_table(message))

    if message.kind == 'malformed':
        raise typer.Exit(1)


@app.command()
def packet(
    instruments: List[str] = typer.Option(
        [], "-i", "--instrument", help="SEGMENT:SECURITY_ID, repeatable"),
    client_id: str = typer.Option("", "--client-id"),
    unsubscribe: bool = typer.Option(False, "--unsubscribe"),
):
    """Build a subscription packet and print it as hex."""
    mode = SubscriptionMode.UNSUBSCRIBE if unsubscribe else SubscriptionMode.SUBSCRIBE
    try:
        data = build_subscription_packet(client_id, _parse_instruments(instruments), mode)
    except DhanFeedError as e:
        console.print(f"[red]Error:[/] {e}")
        raise typer.Exit(2)

    decoded = SubscriptionPacket.decode(data)
    console.print(
        f"{mode.name} request_code={decoded.header.request_code} "
        f"length={decoded.header.message_length} "
        f"instruments={len(decoded.instruments)}",
        highlight=False,
    )
    typer.echo(data.hex())


@app.command("init-config")
def init_config(
    output: Path = typer.Option(Path("dhanfeed.yml"), "-o", "--output"),
    force: bool = typer.Option(False, "--force"),
):
    """Write a default configuration file."""
    if output.exists() and not force:
        console.print(f"[red]Error:[/] {output} exists (use --force)")
        raise typer.Exit(1)
    output.write_text(generate_default_config())
    console.print(f"[green]Written to:[/] {output}")


@app.command()
def version():
    """Print version."""
    typer.echo(f"dhan-feed {__version__}")


def main():
    app()


if __name__ == "__main__":
    main()
