"""
Network quality monitor.

Periodically probes the API and classifies the link as good, poor or offline.
Raw online/offline signals arrive in bursts during network handoffs, so they
are debounced before subscribers hear about them. Probing is suspended while
the client is hidden and resumes with an immediate probe when it is visible
again.
"""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from chatsync.config import SyncConfig
from chatsync.errors import FetchError
from chatsync.events import EventEmitter, MonitorEvent
from chatsync.models.state import ConnectionQuality

logger = logging.getLogger(__name__)

MAX_HISTORY = 10

ProbeFn = Callable[[float], Awaitable[None]]


class QualityMonitor:
    def __init__(self, probe: ProbeFn, config: Optional[SyncConfig] = None):
        self._probe_fn = probe
        self._config = config or SyncConfig()
        self.events: EventEmitter[MonitorEvent] = EventEmitter()

        self._running = False
        self._visible = True
        self._is_online = True
        self._quality = ConnectionQuality.UNKNOWN
        self._last_latency_ms: Optional[float] = None
        self._last_online_time = time.time()
        self._last_offline_time: Optional[float] = None
        self._history: deque[dict[str, Any]] = deque(maxlen=MAX_HISTORY)

        self._loop_task: Optional[asyncio.Task[None]] = None
        self._probe_tasks: set[asyncio.Task[Any]] = set()
        self._probing = False
        self._debounce: Optional[asyncio.TimerHandle] = None
        self._recovery: list[asyncio.TimerHandle] = []
        self._awaiting_recovery = False

    @property
    def is_online(self) -> bool:
        return self._is_online

    @property
    def quality(self) -> ConnectionQuality:
        return self._quality

    def on(self, event: MonitorEvent, handler: Callable[[Any], None]) -> Callable[[], None]:
        return self.events.on(event, handler)

    # -- lifecycle --

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._resume()
        self._spawn_probe()

    def stop(self) -> None:
        self._running = False
        self._suspend()
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        self._cancel_recovery()
        for task in list(self._probe_tasks):
            task.cancel()
        self._probe_tasks.clear()

    def _resume(self) -> None:
        if self._loop_task is None and self._running and self._visible:
            self._loop_task = asyncio.get_running_loop().create_task(self._probe_loop())

    def _suspend(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None

    async def _probe_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.probe_interval)
            if self._is_online:
                await self.probe()

    def _spawn_probe(self) -> None:
        task = asyncio.get_running_loop().create_task(self.probe())
        self._probe_tasks.add(task)
        task.add_done_callback(self._probe_tasks.discard)

    # -- probing --

    def classify(self, latency_ms: Optional[float], ok: bool = True) -> ConnectionQuality:
        """None latency means the probe never got a response."""
        if latency_ms is None:
            return ConnectionQuality.OFFLINE
        if ok and latency_ms < self._config.good_latency_ms:
            return ConnectionQuality.GOOD
        return ConnectionQuality.POOR

    async def probe(self) -> ConnectionQuality:
        if not self._is_online:
            self._set_quality(ConnectionQuality.OFFLINE)
            return self._quality
        if self._probing:
            return self._quality
        self._probing = True
        started = time.monotonic()
        try:
            await asyncio.wait_for(self._probe_fn(self._config.probe_timeout), timeout=self._config.probe_timeout)
            latency_ms: Optional[float] = (time.monotonic() - started) * 1000
            ok = True
        except asyncio.TimeoutError:
            logger.warning("Quality probe timed out")
            latency_ms, ok = None, False
        except FetchError as e:
            if e.code == "http_error":
                # reachable, but unhappy
                latency_ms, ok = (time.monotonic() - started) * 1000, False
            else:
                latency_ms, ok = None, False
            logger.warning(f"Quality probe failed: {e}")
        finally:
            self._probing = False
        self._last_latency_ms = latency_ms
        quality = self.classify(latency_ms, ok)
        logger.debug(f"Quality probe: {quality.value} (latency: {latency_ms}ms)")
        self._set_quality(quality)
        return quality

    def _set_quality(self, quality: ConnectionQuality) -> None:
        previous = self._quality
        self._quality = quality
        if self._awaiting_recovery and quality == ConnectionQuality.GOOD:
            self._awaiting_recovery = False
            self.events.emit(MonitorEvent.RECOVERY_READY, {"quality": quality})
        if quality != previous:
            self.events.emit(MonitorEvent.QUALITY_CHANGE, {
                "quality": quality,
                "previous": previous,
                "timestamp": time.time(),
                "is_mobile": self._config.mobile,
            })

    # -- raw signals --

    def notify_network_change(self, online: bool) -> None:
        """Feed a raw online/offline signal. Only the last one in a burst is applied."""
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = asyncio.get_running_loop().call_later(
            self._config.status_debounce, self._apply_network_change, online,
        )

    def _apply_network_change(self, online: bool) -> None:
        self._debounce = None
        previous = self._is_online
        self._is_online = online
        self._history.append({"online": online, "timestamp": time.time(), "quality": self._quality})

        if online:
            self._last_online_time = time.time()
            logger.info("Network online")
            if self._running:
                self._spawn_probe()
                if self._config.mobile and not previous:
                    self._schedule_recovery()
        else:
            self._last_offline_time = time.time()
            logger.info("Network offline")
            self._cancel_recovery()
            self._set_quality(ConnectionQuality.OFFLINE)

        self.events.emit(MonitorEvent.STATUS_CHANGE, {
            "is_online": online,
            "quality": self._quality,
            "previous": previous,
            "timestamp": time.time(),
        })

    def _schedule_recovery(self) -> None:
        """Staged probes after a mobile client comes back; first GOOD result emits RECOVERY_READY."""
        self._cancel_recovery()
        self._awaiting_recovery = True
        loop = asyncio.get_running_loop()
        self._recovery = [loop.call_later(d, self._spawn_probe) for d in self._config.recovery_probe_delays]

    def _cancel_recovery(self) -> None:
        for handle in self._recovery:
            handle.cancel()
        self._recovery = []
        self._awaiting_recovery = False

    def set_visible(self, visible: bool) -> None:
        self._visible = visible
        if not visible:
            self._suspend()
            return
        if self._running:
            self._resume()
            self._spawn_probe()

    # -- inspection --

    def status(self) -> dict[str, Any]:
        return {
            "is_online": self._is_online,
            "quality": self._quality,
            "is_mobile": self._config.mobile,
            "latency_ms": self._last_latency_ms,
            "last_online_time": self._last_online_time,
            "last_offline_time": self._last_offline_time,
            "history": list(self._history)[-5:],
        }

    async def force_check(self) -> dict[str, Any]:
        await self.probe()
        return self.status()
