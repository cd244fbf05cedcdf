"""Terminal renderer: prints the synced window as an append-only log."""

from typing import Callable, Optional, Sequence

from rich.console import Console
from rich.markup import escape

from chatsync.models.message import Message, MessageKind
from chatsync.models.window import Window
from chatsync.renderer import ScrollListener, ScrollMetrics


def _size(num_bytes: int) -> str:
    size = float(num_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def format_message(message: Message, own_device: Optional[str] = None) -> str:
    when = message.created_at.strftime("%m-%d %H:%M")
    who = "me" if own_device and message.device_origin == own_device else message.device_origin or "?"
    if message.kind == MessageKind.FILE and message.file is not None:
        body = f"[cyan]{escape(message.file.original_name)}[/cyan] [dim]({_size(message.file.file_size)})[/dim]"
    else:
        body = escape(message.body)
    return f"[dim]{when}[/dim] [bold]{escape(who)}[/bold]: {body}"


class ConsoleRenderer:
    """A terminal has no scrollback to manage, so it is always "at the bottom"."""

    def __init__(self, console: Console, own_device: Optional[str] = None):
        self._console = console
        self._own_device = own_device
        self._last_printed = 0
        self._lines = 0
        self._empty_shown = False
        self._listeners: list[ScrollListener] = []

    def render_window(self, window: Window, scroll_to_bottom: bool) -> None:
        if len(window):
            self._empty_shown = False
        for message in window.items:
            if message.id > self._last_printed:
                self._print(message)
                self._last_printed = message.id

    def prepend_older(self, messages: Sequence[Message]) -> None:
        self._console.rule("[dim]older[/dim]")
        for message in messages:
            self._print(message)

    def restore_scroll_anchor(self, delta: float) -> None:
        pass

    def show_empty(self) -> None:
        if self._empty_shown:
            return
        self._empty_shown = True
        self._console.print("[dim]No messages yet.[/dim]")

    def is_at_bottom(self) -> bool:
        return True

    def scroll_metrics(self) -> ScrollMetrics:
        return ScrollMetrics(scroll_top=0.0, scroll_height=float(self._lines))

    def add_scroll_listener(self, listener: ScrollListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return remove

    def _print(self, message: Message) -> None:
        self._console.print(format_message(message, self._own_device))
        self._lines += 1
