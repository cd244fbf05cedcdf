"""CLI: chatsync watch, send, history, clear"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from chatsync.cli.render import ConsoleRenderer, format_message
from chatsync.client import PUSH_NONE, PUSH_SOCKETIO, PUSH_SSE
from chatsync.errors import ChatSyncError

console = Console()


def _get_client(**kwargs):
    from chatsync.cli.main import _get_client
    return _get_client(**kwargs)


def _run(coro):
    from chatsync.cli.main import _run
    return _run(coro)


@click.command("watch")
@click.option("--push", type=click.Choice([PUSH_SSE, PUSH_SOCKETIO, PUSH_NONE]), default=PUSH_SSE,
              help="Push channel; `none` polls only")
@click.option("--mobile", is_flag=True, help="Use the constrained-network profile")
def watch_cmd(push: str, mobile: bool):
    """Follow the message log live (Ctrl+C to exit)."""

    async def _watch():
        client = _get_client(push=push, mobile=mobile)
        controller = client.session(ConsoleRenderer(console, own_device=client.device_id), device_name="CLI")
        await controller.start(client.device_id)
        console.print(f"[dim]Watching as {client.device_id} (push: {push})[/dim]")
        try:
            while True:
                await asyncio.sleep(3600)
        finally:
            await controller.stop()
            await client.close()

    try:
        _run(_watch())
    except KeyboardInterrupt:
        pass


@click.command("send")
@click.argument("message")
@click.option("--json-output", "--json", is_flag=True)
def send_cmd(message: str, json_output: bool):
    """Send a text message."""

    async def _send():
        client = _get_client()
        try:
            result = await client.messages.send_text(message, client.device_id)
        except ChatSyncError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps({"id": result.id}))
        else:
            console.print(f"[green]Sent (id {result.id}).[/green]")

    _run(_send())


@click.command("history")
@click.option("--limit", default=20, type=int)
@click.option("--before", "before_id", default=None, type=int, help="Only messages older than this id")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(limit: int, before_id: Optional[int], json_output: bool):
    """Print the latest messages, or a page of older ones."""

    async def _history():
        client = _get_client()
        try:
            if before_id is not None:
                messages = await client.messages.fetch_older(before_id, limit)
            else:
                messages = (await client.messages.fetch_latest(limit))[-limit:]
        except ChatSyncError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([m.model_dump(mode="json") for m in messages], indent=2))
            return
        table = Table(title=f"Messages ({len(messages)})")
        table.add_column("ID", style="bold")
        table.add_column("Message")
        for m in messages:
            table.add_row(str(m.id), format_message(m, client.device_id))
        console.print(table)

    _run(_history())


@click.command("clear")
@click.option("--code", prompt="Confirmation code", hide_input=True)
@click.confirmation_option(prompt="This permanently deletes every message and file. Continue?")
def clear_cmd(code: str):
    """Delete all messages and files on the server."""

    async def _clear():
        client = _get_client()
        try:
            with console.status("Clearing..."):
                result = await client.messages.clear_all(code)
        except ChatSyncError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        console.print(
            f"[green]Cleared {result.deleted_messages} messages and {result.deleted_files} files.[/green]"
        )

    _run(_clear())
