"""CLI: chatsync auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from chatsync.client import AsyncChatSync
from chatsync.errors import AuthError
from chatsync.transport.http import DEFAULT_BASE_URL

console = Console()


def _load_config() -> dict:
    from chatsync.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from chatsync.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from chatsync.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="API base URL")
def auth_login(base_url: Optional[str]):
    """Log in with the access password."""

    async def _login():
        cfg = _load_config()
        url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
        client = AsyncChatSync(base_url=url)
        password = click.prompt("Password", hide_input=True)
        try:
            with console.status("Logging in..."):
                result = await client.auth.login(password)
        except AuthError as e:
            console.print(f"[red]{e}[/red]")
            raise SystemExit(1)
        finally:
            await client.close()
        _save_config({**cfg, "access_token": result["token"], "base_url": url})
        console.print("[green]Logged in.[/green] [dim]Token saved to ~/.chatsync/config.json[/dim]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if not cfg.get("access_token"):
        console.print("[yellow]Not logged in. Run `chatsync auth login`.[/yellow]")
        return

    async def _verify():
        client = AsyncChatSync(access_token=cfg["access_token"], base_url=cfg.get("base_url", DEFAULT_BASE_URL))
        try:
            return await client.auth.verify()
        finally:
            await client.close()

    if _run(_verify()):
        console.print(f"[green]Logged in[/green] at {cfg.get('base_url', DEFAULT_BASE_URL)}")
    else:
        console.print("[yellow]Saved token was rejected. Run `chatsync auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    if cfg.get("access_token"):
        async def _logout():
            client = AsyncChatSync(access_token=cfg["access_token"], base_url=cfg.get("base_url", DEFAULT_BASE_URL))
            try:
                await client.auth.logout()
            except AuthError as e:
                console.print(f"[dim]Server logout skipped: {e}[/dim]")
            finally:
                await client.close()

        _run(_logout())
    _save_config({k: v for k, v in cfg.items() if k != "access_token"})
    console.print("[green]Logged out.[/green]")
