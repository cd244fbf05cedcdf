"""Shared fakes: an in-memory message log, a scrollable renderer and a scripted push channel."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

import pytest

from chatsync.config import SyncConfig
from chatsync.errors import FetchError, SendError
from chatsync.models.message import ClearResult, Message, PollResult, SendResult
from chatsync.models.window import Window
from chatsync.renderer import ScrollListener, ScrollMetrics
from chatsync.transport.channel import PushHandlers

BASE_TIME = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
ROW_HEIGHT = 40.0


def make_message(message_id: int, body: Optional[str] = None, device: str = "web-a") -> Message:
    return Message(
        id=message_id,
        body=body if body is not None else f"message {message_id}",
        device_origin=device,
        created_at=BASE_TIME + timedelta(seconds=message_id),
    )


def make_log(count: int) -> list[Message]:
    return [make_message(i) for i in range(1, count + 1)]


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


class FakeMessages:
    """Server message log. ``fetch_latest`` returns newest-first like a DESC query."""

    def __init__(self, log: Optional[list[Message]] = None):
        self.log: list[Message] = list(log or [])
        self.latest_calls = 0
        self.older_calls: list[tuple[int, int]] = []
        self.poll_calls = 0
        self.probe_calls = 0
        self.sent: list[str] = []
        self.fail_latest: Optional[Exception] = None
        self.fail_older: Optional[Exception] = None
        self.fail_send = False
        self.has_new = False
        self.latest_gate: Optional[asyncio.Event] = None
        self.older_gate: Optional[asyncio.Event] = None

    def append(self, body: str, device: str = "web-b") -> Message:
        next_id = (self.log[-1].id if self.log else 0) + 1
        message = make_message(next_id, body=body, device=device)
        self.log.append(message)
        return message

    async def fetch_latest(self, limit: int) -> list[Message]:
        self.latest_calls += 1
        if self.latest_gate is not None:
            await self.latest_gate.wait()
        if self.fail_latest is not None:
            raise self.fail_latest
        return list(reversed(self.log[-limit:]))

    async def fetch_older(self, before_id: int, limit: int) -> list[Message]:
        self.older_calls.append((before_id, limit))
        if self.older_gate is not None:
            await self.older_gate.wait()
        if self.fail_older is not None:
            raise self.fail_older
        older = [m for m in self.log if m.id < before_id]
        return older[-limit:]

    async def probe(self, timeout: Optional[float] = None) -> None:
        self.probe_calls += 1

    async def poll(self, device_id: str, last_message_id: int, wait: int = 1,
                   timeout: Optional[float] = None) -> PollResult:
        self.poll_calls += 1
        return PollResult(hasNewMessages=self.has_new)

    async def send_text(self, content: str, device_id: str) -> SendResult:
        if self.fail_send:
            raise SendError("Failed to send message: boom")
        self.sent.append(content)
        return SendResult(id=self.append(content, device=device_id).id)

    async def sync_device(self, device_id: str, device_name: str) -> bool:
        return True

    async def clear_all(self, confirm_code: str) -> ClearResult:
        count = len(self.log)
        self.log = []
        return ClearResult(deletedMessages=count)


class FakeRenderer:
    """A scroll container where every message row is ROW_HEIGHT tall."""

    def __init__(self) -> None:
        self.renders: list[tuple[tuple[int, ...], bool]] = []
        self.prepends: list[tuple[int, ...]] = []
        self.anchors: list[float] = []
        self.empties = 0
        self.at_bottom = True
        self.scroll_top = 0.0
        self.rows = 0
        self.listeners: list[ScrollListener] = []

    @property
    def scroll_height(self) -> float:
        return self.rows * ROW_HEIGHT

    def render_window(self, window: Window, scroll_to_bottom: bool) -> None:
        self.renders.append((tuple(m.id for m in window.items), scroll_to_bottom))
        self.rows = len(window)
        if scroll_to_bottom:
            self.scroll_top = self.scroll_height

    def prepend_older(self, messages: Sequence[Message]) -> None:
        self.prepends.append(tuple(m.id for m in messages))
        self.rows += len(messages)

    def restore_scroll_anchor(self, delta: float) -> None:
        self.anchors.append(delta)
        self.scroll_top += delta

    def show_empty(self) -> None:
        self.empties += 1

    def is_at_bottom(self) -> bool:
        return self.at_bottom

    def scroll_metrics(self) -> ScrollMetrics:
        return ScrollMetrics(scroll_top=self.scroll_top, scroll_height=self.scroll_height)

    def add_scroll_listener(self, listener: ScrollListener) -> Callable[[], None]:
        self.listeners.append(listener)

        def remove() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)
        return remove

    def scroll_to(self, scroll_top: float) -> None:
        self.scroll_top = scroll_top
        for listener in list(self.listeners):
            listener(scroll_top)


class FakeChannel:
    def __init__(self, device_id: str, handlers: PushHandlers):
        self.device_id = device_id
        self.handlers = handlers
        self.opened = False
        self.closed = False

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed

    def open(self) -> None:
        self.opened = True
        self.handlers.on_open()

    def data(self, count: Any = 1) -> None:
        self.handlers.on_data(count)

    def fail(self, exc: Optional[Exception] = None) -> None:
        self.opened = False
        self.handlers.on_error(exc or ConnectionResetError("stream reset"))

    def close(self) -> None:
        self.closed = True


class FakeChannelFactory:
    def __init__(self, auto_open: bool = False):
        self.auto_open = auto_open
        self.channels: list[FakeChannel] = []

    def __call__(self, device_id: str, handlers: PushHandlers) -> FakeChannel:
        channel = FakeChannel(device_id, handlers)
        self.channels.append(channel)
        if self.auto_open:
            asyncio.get_running_loop().call_soon(channel.open)
        return channel

    @property
    def current(self) -> FakeChannel:
        return self.channels[-1]


@pytest.fixture
def fast_config() -> SyncConfig:
    return SyncConfig(
        latest_limit=10,
        page_size=5,
        scroll_debounce=0.01,
        fallback_poll_interval=0.02,
        fallback_grace=10.0,
        poll_interval=0.02,
        reconnect_base_delay=0.01,
        reconnect_max_delay=0.05,
        max_reconnect_attempts=5,
        probe_interval=10.0,
        probe_timeout=0.05,
        status_debounce=0.02,
        recovery_probe_delays=(0.01, 0.02),
        send_followup_delays=(0.01, 0.02, 0.03),
    )


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def channels() -> FakeChannelFactory:
    return FakeChannelFactory()


def fetch_failure() -> FetchError:
    return FetchError("GET /messages failed: connection refused", code="network_error")
