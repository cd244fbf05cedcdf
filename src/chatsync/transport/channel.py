"""
Push channel contract.

A push channel only signals that new data exists; it never carries messages.
Callbacks run on the event loop. ``close()`` is synchronous and idempotent so
the transport can tear a channel down before starting the next one.
"""

from dataclasses import dataclass
from typing import Any, Callable, Protocol


@dataclass
class PushHandlers:
    on_open: Callable[[], None]
    on_data: Callable[[Any], None]
    on_error: Callable[[Exception], None]


class PushChannel(Protocol):
    @property
    def is_open(self) -> bool: ...

    def close(self) -> None: ...


PushChannelFactory = Callable[[str, PushHandlers], PushChannel]
