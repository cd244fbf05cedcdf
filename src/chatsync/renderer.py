"""
Renderer contract — the view the SyncController drives.

A renderer owns the scroll container. The controller never touches the view
except through these calls.
"""

from dataclasses import dataclass
from typing import Callable, Protocol, Sequence

from chatsync.models.message import Message
from chatsync.models.window import Window

ScrollListener = Callable[[float], None]


@dataclass(frozen=True)
class ScrollMetrics:
    scroll_top: float
    scroll_height: float


class Renderer(Protocol):
    def render_window(self, window: Window, scroll_to_bottom: bool) -> None: ...

    def prepend_older(self, messages: Sequence[Message]) -> None: ...

    def restore_scroll_anchor(self, delta: float) -> None:
        """Shift scroll_top by ``delta`` so the previously visible message stays put."""

    def show_empty(self) -> None: ...

    def is_at_bottom(self) -> bool: ...

    def scroll_metrics(self) -> ScrollMetrics: ...

    def add_scroll_listener(self, listener: ScrollListener) -> Callable[[], None]:
        """Register ``listener(scroll_top)``; returns a function that detaches it."""
