"""
Window — the contiguous slice of the message log held in memory.

Only ``SyncController`` mutates a Window. Items are kept ascending by
``(created_at, id)`` and ids are unique.
"""

from typing import Iterable, Optional

from chatsync.models.message import Message


class Window:
    def __init__(self) -> None:
        self._items: list[Message] = []
        self._ids: set[int] = set()
        self.has_more_older = False
        self.generation = 0

    @property
    def items(self) -> tuple[Message, ...]:
        return tuple(self._items)

    @property
    def oldest_loaded_id(self) -> Optional[int]:
        return self._items[0].id if self._items else None

    @property
    def last_id(self) -> int:
        return self._items[-1].id if self._items else 0

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._ids

    def replace(self, messages: Iterable[Message], has_more_older: bool) -> None:
        """Swap in a freshly fetched latest window. ``messages`` must be normalized."""
        self._items = list(messages)
        self._ids = {m.id for m in self._items}
        self.has_more_older = has_more_older
        self.generation += 1

    def replace_tail(self, latest: list[Message]) -> None:
        """Swap the newest range for ``latest`` and keep the older pages in front of it.

        ``latest`` must be normalized and overlap the held items. The generation is
        left alone so in-flight older pages still apply at the head.
        """
        if not latest:
            return
        ids = {m.id for m in latest}
        head = [m for m in self._items if m.sort_key < latest[0].sort_key and m.id not in ids]
        self._items = head + list(latest)
        self._ids = {m.id for m in self._items}

    def overlaps(self, latest: list[Message]) -> bool:
        """True if ``latest`` starts inside the held range and older pages sit in front of it."""
        return bool(latest) and len(self._items) > len(latest) and latest[0].id in self._ids

    def prepend(self, older: Iterable[Message]) -> list[Message]:
        """Add older messages at the head, skipping ids already held. Returns what was added."""
        head = []
        for message in older:
            if message.id in self._ids:
                continue
            self._ids.add(message.id)
            head.append(message)
        head.sort(key=lambda m: m.sort_key)
        self._items = head + self._items
        return head

    def clear(self) -> None:
        self._items = []
        self._ids = set()
        self.has_more_older = False
        self.generation += 1
