"""
chatsync CLI — `chatsync` command.

Commands:
  chatsync auth login      Password login, token saved locally
  chatsync watch           Live-synced message view
  chatsync send <message>  Send a text message
  chatsync history         Print the latest or older messages
  chatsync clear           Delete all server-side data
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install chatsync[cli]")

from chatsync.client import AsyncChatSync, PUSH_SSE
from chatsync.config import SyncConfig
from chatsync.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".chatsync" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client(push: str = PUSH_SSE, mobile: bool = False) -> AsyncChatSync:
    cfg = _load_config()
    if not cfg.get("access_token"):
        console.print("[red]Not logged in. Run `chatsync auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncChatSync(
        access_token=cfg["access_token"],
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
        config=SyncConfig.for_mobile() if mobile else SyncConfig(),
        push=push,
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Log sync activity")
def main(verbose: bool):
    """chatsync — live message sync for the file-transfer chat."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


# Register subcommands from separate modules
from chatsync.cli.auth import auth
from chatsync.cli.chat import clear_cmd, history_cmd, send_cmd, watch_cmd

main.add_command(auth)
main.add_command(watch_cmd)
main.add_command(send_cmd)
main.add_command(history_cmd)
main.add_command(clear_cmd)


if __name__ == "__main__":
    main()
