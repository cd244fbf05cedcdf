"""
Sync controller — the single owner of the message Window.

Wiring:
- transport DATA_AVAILABLE / CONNECTED  -> refresh(force_scroll=True)
- transport DISCONNECTED                -> fallback refresh interval
- renderer scroll near the top          -> pager -> _accept_older_page()
- local send                            -> refresh(True) + delayed follow-ups

Background failures are logged and the previous Window stays on screen; only
``send_text`` and ``clear_all`` raise to the caller.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from chatsync.config import SyncConfig
from chatsync.errors import ChatSyncError
from chatsync.events import TransportEvent
from chatsync.messages import MessagesAPI
from chatsync.models.message import ClearResult, Message, SendResult
from chatsync.models.state import ConnectionState
from chatsync.models.window import Window
from chatsync.monitor import QualityMonitor
from chatsync.pager import Pager
from chatsync.reconciler import has_changed, normalize, should_auto_scroll
from chatsync.renderer import Renderer
from chatsync.transport.channel import PushChannelFactory
from chatsync.transport.manager import TransportManager

logger = logging.getLogger(__name__)


class SyncController:
    def __init__(
        self,
        messages: MessagesAPI,
        renderer: Renderer,
        push_factory: Optional[PushChannelFactory] = None,
        config: Optional[SyncConfig] = None,
        monitor: Optional[QualityMonitor] = None,
        transport: Optional[TransportManager] = None,
        device_name: str = "chatsync",
    ):
        self._messages = messages
        self._renderer = renderer
        self._config = config or SyncConfig()
        self._device_name = device_name
        self._window = Window()

        self.monitor = monitor or QualityMonitor(messages.probe, self._config)
        self.transport = transport or TransportManager(
            push_factory, self._check_for_new_data, monitor=self.monitor, config=self._config,
        )
        self.pager = Pager(messages.fetch_older, self._accept_older_page, self._window, renderer, self._config)

        self._device_id: Optional[str] = None
        self._live = False
        self._loaded = False
        self._visible = True
        self._refreshing = False
        self._pending_force: Optional[bool] = None
        self._fallback_task: Optional[asyncio.Task[None]] = None
        self._followups: list[asyncio.TimerHandle] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._grace: Optional[asyncio.TimerHandle] = None
        self._unsubscribe: list[Callable[[], None]] = []

    # -- read-only views --

    @property
    def window(self) -> Window:
        return self._window

    @property
    def is_live(self) -> bool:
        return self._live

    @property
    def fallback_polling(self) -> bool:
        return self._fallback_task is not None

    @property
    def connection_state(self) -> ConnectionState:
        return ConnectionState(
            is_online=self.monitor.is_online,
            quality=self.monitor.quality,
            transport=self.transport.state,
            reconnect_attempt=self.transport.reconnect_attempt,
        )

    # -- lifecycle --

    async def start(self, device_id: str) -> None:
        if self._live:
            return
        self._live = True
        self._device_id = device_id
        self._unsubscribe = [
            self.transport.on(TransportEvent.DATA_AVAILABLE, lambda _data: self._spawn_refresh(True)),
            self.transport.on(TransportEvent.CONNECTED, self._on_connected),
            self.transport.on(TransportEvent.DISCONNECTED, lambda _data: self._start_fallback()),
        ]
        self._spawn(self._messages.sync_device(device_id, self._device_name))
        try:
            await self.refresh(True)
        except Exception:
            await self.stop()
            raise
        if not self._live:
            return
        self.monitor.start()
        self.transport.start(device_id)
        self._grace = asyncio.get_running_loop().call_later(self._config.fallback_grace, self._ensure_fallback)

    async def stop(self) -> None:
        """Release every timer, task and channel. Safe to call more than once."""
        if not self._live:
            return
        self._live = False
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self.transport.stop()
        self.monitor.stop()
        self.pager.close()
        self._stop_fallback()
        if self._grace is not None:
            self._grace.cancel()
            self._grace = None
        for handle in self._followups:
            handle.cancel()
        self._followups = []
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    # -- refresh / reconciliation --

    async def refresh(self, force_scroll: bool = False) -> bool:
        """Fetch the latest window and redraw if it changed. Returns True if the renderer was invoked."""
        if not self._live:
            return False
        if self._refreshing:
            # collapse into one trailing refresh
            self._pending_force = bool(self._pending_force) or force_scroll
            return False
        self._refreshing = True
        try:
            rendered = await self._refresh_once(force_scroll)
            while self._pending_force is not None and self._live:
                force, self._pending_force = self._pending_force, None
                rendered = await self._refresh_once(force) or rendered
            return rendered
        finally:
            self._refreshing = False
            self._pending_force = None

    async def _refresh_once(self, force_scroll: bool) -> bool:
        limit = self._config.latest_limit
        try:
            fetched = await self._messages.fetch_latest(limit)
        except ChatSyncError as e:
            logger.warning(f"Refresh failed: {e}")
            if self._live and not self._loaded:
                self._renderer.show_empty()
            return False
        if not self._live:
            return False

        snapshot = normalize(fetched)
        has_more_older = len(snapshot) >= limit
        snapshot = snapshot[-limit:]
        is_first_load = not self._loaded
        # older pages loaded by scrolling stay; only the newest range is compared
        extended = not is_first_load and self._window.overlaps(snapshot)
        current = self._window.items[-len(snapshot):] if extended else self._window.items
        changed = has_changed(current, snapshot)
        if not (changed or force_scroll or is_first_load):
            return False

        scroll = should_auto_scroll(force_scroll, changed, self._renderer.is_at_bottom(), is_first_load)
        if extended:
            if changed:
                self._window.replace_tail(snapshot)
            self._renderer.render_window(self._window, scroll)
            return True
        self._window.replace(snapshot, has_more_older)
        self._loaded = True
        self.pager.reset(exhausted=not has_more_older)
        if not snapshot:
            self._renderer.show_empty()
        else:
            self._renderer.render_window(self._window, scroll)
        return True

    def _accept_older_page(self, generation: int, page: list[Message]) -> Optional[list[Message]]:
        if not self._live or generation != self._window.generation:
            return None
        added = self._window.prepend(page)
        self._window.has_more_older = len(page) >= self.pager.cursor.page_size
        if added:
            self._renderer.prepend_older(added)
        return added

    async def load_older(self) -> int:
        """Explicitly load one older page (same path as scrolling to the top)."""
        return await self.pager.load_more()

    def on_scroll(self, scroll_top: float) -> None:
        if self.pager.attached:
            self.pager.handle_scroll(scroll_top)

    async def _check_for_new_data(self) -> bool:
        result = await self._messages.poll(
            self._device_id or "", self._window.last_id,
            wait=self._config.poll_wait, timeout=self._config.request_timeout,
        )
        return result.has_new_messages

    # -- transport / environment signals --

    def _on_connected(self, _data: Any = None) -> None:
        self._stop_fallback()
        self._spawn_refresh(True)

    def _ensure_fallback(self) -> None:
        self._grace = None
        if not self.transport.is_channel_alive():
            self._start_fallback()

    def _start_fallback(self) -> None:
        if self._fallback_task is not None or not self._live or not self._visible:
            return
        logger.debug("Starting fallback refresh")
        self._fallback_task = asyncio.get_running_loop().create_task(self._fallback_loop())

    def _stop_fallback(self) -> None:
        if self._fallback_task is not None:
            self._fallback_task.cancel()
            self._fallback_task = None

    async def _fallback_loop(self) -> None:
        while self._live:
            await asyncio.sleep(self._config.fallback_poll_interval)
            try:
                await self.refresh(False)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Fallback refresh failed: {e}")

    def set_visible(self, visible: bool) -> None:
        """Page visibility changed. Hidden clients stop polling; visible ones catch up without jumping."""
        self._visible = visible
        if not self._live:
            return
        self.monitor.set_visible(visible)
        self.transport.set_visible(visible)
        if not visible:
            self._stop_fallback()
            return
        if not self.transport.is_channel_alive():
            self._start_fallback()
        self._spawn_refresh(False)

    def set_online(self, online: bool) -> None:
        """Raw network signal; debounced by the monitor."""
        if self._live:
            self.monitor.notify_network_change(online)

    # -- interactive actions --

    async def send_text(self, content: str) -> SendResult:
        """Send a text message. Raises SendError; the sync loop keeps running either way."""
        if not self._device_id:
            raise ChatSyncError("not_started", "Controller not started")
        result = await self._messages.send_text(content, self._device_id)
        if self._live:
            await self.refresh(True)
            self._schedule_followups()
        return result

    def _schedule_followups(self) -> None:
        loop = asyncio.get_running_loop()
        self._followups = [h for h in self._followups if not h.cancelled()]
        for delay in self._config.send_followup_delays:
            self._followups.append(loop.call_later(delay, self._spawn_refresh, False))

    async def clear_all(self, confirm_code: str) -> ClearResult:
        result = await self._messages.clear_all(confirm_code)
        self.clear_window()
        return result

    def clear_window(self) -> None:
        """Drop everything held locally (data clear or logout)."""
        self._window.clear()
        self._loaded = False
        self.pager.clear_cache()
        self.pager.reset(exhausted=True)
        self._renderer.show_empty()

    # -- helpers --

    def _spawn_refresh(self, force_scroll: bool) -> None:
        if self._live:
            self._spawn(self.refresh(force_scroll))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
