"""
Tunables for the synchronization engine.

Desktop defaults; ``SyncConfig.for_mobile()`` returns the profile for
constrained clients (longer timeouts, laxer latency thresholds, more frequent
probes).
"""

from pydantic import BaseModel, Field


class SyncConfig(BaseModel):
    # Window / pagination
    latest_limit: int = Field(50, gt=0)
    page_size: int = Field(30, gt=0)
    scroll_threshold: float = 80.0
    scroll_debounce: float = 0.1
    page_cache_size: int = 64
    page_cache_ttl: float = 60.0

    # Fallback refresh and polling transport
    fallback_poll_interval: float = 1.0
    fallback_grace: float = 2.0
    poll_interval: float = 1.0
    poll_wait: int = 1
    request_timeout: float = 5.0

    # Push reconnection
    reconnect_base_delay: float = 1.0
    reconnect_max_delay: float = 30.0
    max_reconnect_attempts: int = 5

    # Quality monitor
    probe_interval: float = 15.0
    probe_timeout: float = 5.0
    good_latency_ms: float = 1000.0
    status_debounce: float = 0.5
    mobile: bool = False
    recovery_probe_delays: tuple[float, ...] = (0.5, 2.0, 5.0)

    # Redundant refreshes after a local send
    send_followup_delays: tuple[float, ...] = (0.2, 0.8, 1.5)

    @classmethod
    def for_mobile(cls, **overrides: object) -> "SyncConfig":
        values: dict[str, object] = {
            "mobile": True,
            "probe_interval": 10.0,
            "probe_timeout": 8.0,
            "request_timeout": 8.0,
            "good_latency_ms": 2000.0,
        }
        values.update(overrides)
        return cls(**values)

    def reconnect_delay(self, attempt: int) -> float:
        """Backoff delay before reconnect ``attempt`` (1-based), capped at the ceiling."""
        delay = self.reconnect_base_delay * (2 ** max(attempt - 1, 0))
        return min(delay, self.reconnect_max_delay)
