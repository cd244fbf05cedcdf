"""
Reconciliation — pure decisions about a freshly fetched snapshot.

Message bodies are immutable once an id exists, so (id, created_at) equality
is enough to call two snapshots equal.
"""

from typing import Iterable, Sequence

from chatsync.models.message import Message


def normalize(messages: Iterable[Message]) -> list[Message]:
    """Oldest-first by (created_at, id), first occurrence of each id kept."""
    seen: set[int] = set()
    unique = []
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        unique.append(message)
    unique.sort(key=lambda m: m.sort_key)
    return unique


def has_changed(old: Sequence[Message], new: Sequence[Message]) -> bool:
    if len(old) != len(new):
        return True
    for before, after in zip(old, new):
        if before.id != after.id or before.created_at != after.created_at:
            return True
    return False


def should_auto_scroll(forced: bool, changed: bool, user_at_bottom: bool, is_first_load: bool) -> bool:
    """Never pull a reader away from history unless they asked for it or nothing was shown yet."""
    return forced or is_first_load or (changed and user_at_bottom)
