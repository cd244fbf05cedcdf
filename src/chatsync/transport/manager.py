"""
Transport manager — keeps at most one "new data available" channel alive.

States:
  CONNECTING      push channel requested, waiting for it to open
  PUSH_ACTIVE     push channel open
  RECONNECTING    push failed; backoff timer armed before the next attempt
  POLLING_ACTIVE  push given up; a fixed-interval check runs instead
  DISCONNECTED    push failed while offline; waits for the network to return

Each state is entered through exactly one ``_enter_*`` method, and each of
those tears down whatever channel or timer was running first.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from chatsync.config import SyncConfig
from chatsync.events import EventEmitter, MonitorEvent, TransportEvent
from chatsync.models.state import ConnectionQuality, TransportState
from chatsync.monitor import QualityMonitor
from chatsync.transport.channel import PushChannel, PushChannelFactory, PushHandlers

logger = logging.getLogger(__name__)

PollCheck = Callable[[], Awaitable[bool]]


class TransportManager:
    def __init__(
        self,
        push_factory: Optional[PushChannelFactory],
        poll_check: PollCheck,
        monitor: Optional[QualityMonitor] = None,
        config: Optional[SyncConfig] = None,
    ):
        self._push_factory = push_factory
        self._poll_check = poll_check
        self._monitor = monitor
        self._config = config or SyncConfig()
        self.events: EventEmitter[TransportEvent] = EventEmitter()

        self._state = TransportState.DISCONNECTED
        self._device_id: Optional[str] = None
        self._running = False
        self._visible = True
        self._alive = False
        self._attempts = 0
        self._channel: Optional[PushChannel] = None
        self._generation = 0
        self._reconnect: Optional[asyncio.TimerHandle] = None
        self._poll_task: Optional[asyncio.Task[None]] = None
        self._unsubscribe: list[Callable[[], None]] = []
        self.delays: list[float] = []

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        return self._attempts

    @property
    def push_open(self) -> bool:
        return self._channel is not None

    @property
    def polling_armed(self) -> bool:
        return self._poll_task is not None

    def is_channel_alive(self) -> bool:
        if self._state == TransportState.PUSH_ACTIVE:
            return self._channel is not None
        if self._state == TransportState.POLLING_ACTIVE:
            return self._alive
        return False

    def on(self, event: TransportEvent, handler: Callable[[Any], None]) -> Callable[[], None]:
        return self.events.on(event, handler)

    # -- lifecycle --

    def start(self, device_id: str) -> None:
        if self._running:
            return
        self._running = True
        self._device_id = device_id
        if self._monitor is not None:
            self._unsubscribe = [
                self._monitor.on(MonitorEvent.STATUS_CHANGE, self._on_status_change),
                self._monitor.on(MonitorEvent.QUALITY_CHANGE, self._on_quality_change),
                self._monitor.on(MonitorEvent.RECOVERY_READY, lambda _data: self._reconnect_if_dead()),
            ]
        self._enter_connecting()

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
        self._teardown()
        self._set_alive(False)
        self._state = TransportState.DISCONNECTED

    def force_reconnect(self) -> None:
        """Drop whatever is running and try push again with a fresh backoff budget."""
        if not self._running:
            return
        self._attempts = 0
        self.delays = []
        self._enter_connecting()

    def set_visible(self, visible: bool) -> None:
        """Hidden clients keep their state but stop polling until visible again."""
        self._visible = visible
        if not visible:
            if self._poll_task is not None:
                self._poll_task.cancel()
                self._poll_task = None
            return
        self._reconnect_if_dead()
        if self._running and self._state == TransportState.POLLING_ACTIVE and self._poll_task is None:
            self._arm_polling()

    # -- transitions --

    def _teardown(self) -> None:
        self._generation += 1
        if self._channel is not None:
            channel, self._channel = self._channel, None
            channel.close()
        if self._reconnect is not None:
            self._reconnect.cancel()
            self._reconnect = None
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    def _enter_connecting(self) -> None:
        self._teardown()
        self._state = TransportState.CONNECTING
        if self._push_factory is None:
            logger.info("Push channel unsupported, polling instead")
            self._enter_polling()
            return
        generation = self._generation
        handlers = PushHandlers(
            on_open=lambda: self._on_push_open(generation),
            on_data=lambda data: self._on_push_data(generation, data),
            on_error=lambda exc: self._on_push_error(generation, exc),
        )
        try:
            channel = self._push_factory(self._device_id or "", handlers)
        except Exception as e:
            logger.warning(f"Push channel could not be opened: {e}")
            self._enter_polling()
            return
        if generation == self._generation:
            self._channel = channel
        else:
            # the factory already reported a failure and the state moved on
            channel.close()

    def _enter_push_active(self) -> None:
        self._state = TransportState.PUSH_ACTIVE
        self._attempts = 0
        self.delays = []
        self._set_alive(True)

    def _enter_reconnecting(self) -> None:
        self._teardown()
        self._state = TransportState.RECONNECTING
        self._attempts += 1
        delay = self._config.reconnect_delay(self._attempts)
        self.delays.append(delay)
        logger.info(f"Push reconnect {self._attempts}/{self._config.max_reconnect_attempts} in {delay:.1f}s")
        self._reconnect = asyncio.get_running_loop().call_later(delay, self._on_reconnect_timer)

    def _enter_polling(self) -> None:
        self._teardown()
        self._state = TransportState.POLLING_ACTIVE
        if self._visible:
            self._arm_polling()

    def _arm_polling(self) -> None:
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop(self._generation))

    def _enter_disconnected(self) -> None:
        self._teardown()
        self._state = TransportState.DISCONNECTED
        self._set_alive(False)

    # -- channel callbacks --

    def _on_push_open(self, generation: int) -> None:
        if generation != self._generation or not self._running:
            return
        logger.info("Push channel open")
        self._enter_push_active()

    def _on_push_data(self, generation: int, data: Any) -> None:
        if generation != self._generation or not self._running:
            return
        self.events.emit(TransportEvent.DATA_AVAILABLE, data)

    def _on_push_error(self, generation: int, exc: Exception) -> None:
        if generation != self._generation or not self._running:
            return
        logger.warning(f"Push channel error: {exc}")
        self._set_alive(False)
        if self._offline():
            self._enter_disconnected()
        elif self._attempts >= self._config.max_reconnect_attempts:
            logger.info("Push reconnect attempts exhausted, falling back to polling")
            self._enter_polling()
        else:
            self._enter_reconnecting()

    def _on_reconnect_timer(self) -> None:
        self._reconnect = None
        if self._running and self._state == TransportState.RECONNECTING:
            self._enter_connecting()

    async def _poll_loop(self, generation: int) -> None:
        while generation == self._generation:
            try:
                has_new = await self._poll_check()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Poll check failed: {e}")
                self._set_alive(False)
            else:
                if generation != self._generation:
                    return
                self._set_alive(True)
                if has_new:
                    self.events.emit(TransportEvent.DATA_AVAILABLE, True)
            await asyncio.sleep(self._config.poll_interval)

    # -- monitor signals --

    def _offline(self) -> bool:
        if self._monitor is None:
            return False
        return not self._monitor.is_online or self._monitor.quality == ConnectionQuality.OFFLINE

    def _on_status_change(self, data: dict[str, Any]) -> None:
        if data.get("is_online"):
            self._reconnect_if_dead()

    def _on_quality_change(self, data: dict[str, Any]) -> None:
        recovered = data.get("previous") == ConnectionQuality.OFFLINE and data.get("quality") in (
            ConnectionQuality.GOOD, ConnectionQuality.POOR,
        )
        if recovered:
            self._reconnect_if_dead()

    def _reconnect_if_dead(self) -> None:
        if not self._running or self._push_factory is None:
            return
        if self._state not in (TransportState.POLLING_ACTIVE, TransportState.DISCONNECTED):
            return
        logger.info(f"Connectivity restored while {self._state.value}, retrying push")
        self.force_reconnect()

    def _set_alive(self, alive: bool) -> None:
        if alive == self._alive:
            return
        self._alive = alive
        self.events.emit(TransportEvent.CONNECTED if alive else TransportEvent.DISCONNECTED)
