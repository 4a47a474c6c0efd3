from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field, replace

from tagmark.services.list_engine import arrange_for_ordering, order_changed, reorder


@dataclass(frozen=True)
class ListState:
    """Bookmark list held by a client between a local edit and server truth.

    ``apply_optimistic`` shows rank updates immediately and remembers them as
    pending; ``reconcile`` replaces everything with what the store returned.
    """

    items: tuple = ()
    pending: tuple = ()

    @classmethod
    def of(cls, items) -> "ListState":
        return cls(items=tuple(items))

    def apply_optimistic(self, updates) -> "ListState":
        ranks = dict(updates)
        items = tuple(
            {**item, "customOrder": ranks[item["id"]]} if item["id"] in ranks else item
            for item in self.items
        )
        return replace(self, items=items, pending=self.pending + tuple(updates))

    def reconcile(self, server_items) -> "ListState":
        return ListState(items=tuple(server_items), pending=())


@dataclass
class OrderingSession:
    user_id: int
    original: list
    items: list
    search_query: str = ""
    selected_tags: list = field(default_factory=list)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def changed(self) -> bool:
        return order_changed(self.original, self.items)

    def as_dict(self):
        return {
            "active": True,
            "changed": self.changed,
            "search_query": self.search_query,
            "selected_tags": list(self.selected_tags),
            "order": [item["id"] for item in self.items],
        }


_RUNTIME_LOCK = threading.Lock()
_SESSIONS: dict[int, OrderingSession] = {}

# Sessions left open longer than this are dropped when another one starts.
SESSION_MAX_AGE_SECONDS = 6 * 60 * 60


def _drop_stale_sessions(now: float) -> None:
    stale = [
        user_id
        for user_id, session in _SESSIONS.items()
        if now - session.started_at > SESSION_MAX_AGE_SECONDS
    ]
    for user_id in stale:
        del _SESSIONS[user_id]


def _resync(items, fresh: dict, bookmarks) -> list:
    known = {item["id"] for item in items}
    kept = [fresh[item["id"]] for item in items if item["id"] in fresh]
    return kept + [b for b in bookmarks if b["id"] not in known]


def start_ordering(
    user_id: int,
    bookmarks,
    search_query: str = "",
    selected_tags=(),
    sort_key: str = "accessCount",
    sort_order: str = "desc",
) -> OrderingSession:
    items = list(bookmarks)
    session = OrderingSession(
        user_id=user_id,
        original=items,
        items=arrange_for_ordering(
            items, search_query, selected_tags, sort_key, sort_order
        ),
        search_query=search_query,
        selected_tags=list(selected_tags),
    )
    with _RUNTIME_LOCK:
        _drop_stale_sessions(session.started_at)
        _SESSIONS[user_id] = session
    return session


def get_ordering(user_id: int) -> OrderingSession | None:
    with _RUNTIME_LOCK:
        return _SESSIONS.get(user_id)


def move_in_ordering(
    user_id: int,
    old_index: int,
    new_index: int,
    is_pinned_section: bool,
    search_query: str | None = None,
    selected_tags=None,
) -> OrderingSession | None:
    with _RUNTIME_LOCK:
        session = _SESSIONS.get(user_id)
        if session is None:
            return None
        if search_query is not None:
            session.search_query = search_query
        if selected_tags is not None:
            session.selected_tags = list(selected_tags)
        session.items = reorder(
            session.items,
            old_index,
            new_index,
            is_pinned_section,
            session.search_query,
            session.selected_tags,
        )
        return session


def refresh_ordering(user_id: int, bookmarks) -> OrderingSession | None:
    """Bring an open session in line with the stored bookmarks.

    Deleted bookmarks leave the working order, edited ones are replaced by
    their stored version in place and new ones are appended.
    """
    bookmarks = list(bookmarks)
    fresh = {item["id"]: item for item in bookmarks}
    with _RUNTIME_LOCK:
        session = _SESSIONS.get(user_id)
        if session is None:
            return None
        session.items = _resync(session.items, fresh, bookmarks)
        session.original = _resync(session.original, fresh, bookmarks)
        return session


def cancel_ordering(user_id: int) -> OrderingSession | None:
    with _RUNTIME_LOCK:
        return _SESSIONS.pop(user_id, None)


def clear_ordering_runtime() -> None:
    with _RUNTIME_LOCK:
        _SESSIONS.clear()
