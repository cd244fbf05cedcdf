"""
Backward pagination (infinite scroll towards older messages).

The pager never writes the Window itself: it fetches a page and hands it to
the controller, then restores the scroll anchor by the height the prepend
added. Pages are immutable server-side, so they are cached with a TTL.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from chatsync.cache import TTLCache
from chatsync.config import SyncConfig
from chatsync.models.message import Message
from chatsync.models.state import PaginationCursor
from chatsync.models.window import Window
from chatsync.renderer import Renderer

logger = logging.getLogger(__name__)

FetchOlder = Callable[[int, int], Awaitable[list[Message]]]
# (window generation, page) -> messages actually added, or None if the window moved on
Prepend = Callable[[int, list[Message]], Optional[list[Message]]]


class Pager:
    def __init__(
        self,
        fetch_older: FetchOlder,
        prepend: Prepend,
        window: Window,
        renderer: Renderer,
        config: Optional[SyncConfig] = None,
    ):
        self._fetch_older = fetch_older
        self._prepend = prepend
        self._window = window
        self._renderer = renderer
        self._config = config or SyncConfig()
        self.cursor = PaginationCursor(page_size=self._config.page_size)
        self._cache: TTLCache[tuple[int, int], list[Message]] = TTLCache(
            self._config.page_cache_size, self._config.page_cache_ttl,
        )
        self._in_flight = False
        self._detach: Optional[Callable[[], None]] = None
        self._debounce: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def attached(self) -> bool:
        return self._detach is not None

    @property
    def loading(self) -> bool:
        return self._in_flight

    def attach(self) -> None:
        if self._detach is None and not self.cursor.exhausted:
            self._detach = self._renderer.add_scroll_listener(self.handle_scroll)

    def detach(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None
        if self._detach is not None:
            detach, self._detach = self._detach, None
            detach()

    def reset(self, exhausted: bool = False) -> None:
        """The window was replaced wholesale: start paging from its new head."""
        self.cursor.reset(exhausted)
        if exhausted:
            self.detach()
        else:
            self.attach()

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        self.detach()
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def handle_scroll(self, scroll_top: float) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = asyncio.get_running_loop().call_later(
            self._config.scroll_debounce, self._on_scroll_settled, scroll_top,
        )

    def _on_scroll_settled(self, scroll_top: float) -> None:
        self._debounce = None
        if scroll_top > self._config.scroll_threshold:
            return
        if self._in_flight or self.cursor.exhausted:
            return
        task = asyncio.get_running_loop().create_task(self.load_more())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_page(self, before_id: int, limit: int) -> list[Message]:
        key = (before_id, limit)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        page = await self._fetch_older(before_id, limit)
        self._cache.set(key, page)
        return page

    async def load_more(self) -> int:
        """Fetch and prepend one page. Returns how many messages were added."""
        before_id = self._window.oldest_loaded_id
        if self._in_flight or self.cursor.exhausted or before_id is None:
            return 0
        self._in_flight = True
        generation = self._window.generation
        page_size = self.cursor.page_size
        try:
            before = self._renderer.scroll_metrics()
            page = await self._fetch_page(before_id, page_size)
            added = self._prepend(generation, page)
            if added is None:
                logger.debug("Window replaced during page fetch, page dropped")
                return 0
            self.cursor.offset += len(added)
            if len(page) < page_size:
                self.cursor.exhausted = True
            if added:
                after = self._renderer.scroll_metrics()
                self._renderer.restore_scroll_anchor(after.scroll_height - before.scroll_height)
            if self.cursor.exhausted:
                logger.debug(f"Reached the start of history after {self.cursor.offset} older messages")
                self.detach()
            return len(added)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Loading older messages failed: {e}")
            return 0
        finally:
            self._in_flight = False
