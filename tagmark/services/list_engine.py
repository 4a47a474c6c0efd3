from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from tagmark.services.common import parse_timestamp


SORT_ACCESS_COUNT = "accessCount"
SORT_TITLE = "title"
SORT_CREATED_AT = "createdAt"
SORT_CUSTOM = "custom"
SORT_OPTIONS = (SORT_ACCESS_COUNT, SORT_TITLE, SORT_CREATED_AT, SORT_CUSTOM)

ORDER_ASC = "asc"
ORDER_DESC = "desc"
SORT_ORDERS = (ORDER_ASC, ORDER_DESC)

# Pinned ranks are 0..N-1 and unpinned ranks start here, so every pinned rank
# sorts ahead of every unpinned one under the custom key. The store refuses to
# pin more than UNPINNED_RANK_OFFSET bookmarks.
UNPINNED_RANK_OFFSET = 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class ListView:
    pinned: list = field(default_factory=list)
    unpinned: list = field(default_factory=list)

    def as_dict(self):
        return {"pinned": self.pinned, "unpinned": self.unpinned}


def matches_filters(bookmark: dict, search_query: str, selected_tags) -> bool:
    query = (search_query or "").lower()
    if query and query not in (bookmark.get("title") or "").lower():
        return False
    if not selected_tags:
        return True
    tags = set(bookmark.get("tags") or [])
    return any(tag in tags for tag in selected_tags)


def filter_bookmarks(bookmarks, search_query: str = "", selected_tags=()) -> list:
    return [b for b in bookmarks if matches_filters(b, search_query, selected_tags)]


def _title_key(bookmark: dict):
    title = bookmark.get("title") or ""
    return (title.casefold(), title)


def _created_key(bookmark: dict):
    try:
        return parse_timestamp(bookmark.get("createdAt")) or _EPOCH
    except (OverflowError, ValueError):
        return _EPOCH


def sort_bookmarks(bookmarks, sort_key: str, sort_order: str = ORDER_DESC) -> list:
    if sort_key == SORT_CUSTOM:
        return sorted(bookmarks, key=lambda b: b.get("customOrder") or 0)

    if sort_key == SORT_ACCESS_COUNT:
        key = lambda b: b.get("accessCount") or 0  # noqa: E731
    elif sort_key == SORT_TITLE:
        key = _title_key
    elif sort_key == SORT_CREATED_AT:
        key = _created_key
    else:
        raise ValueError(f"unknown sort key: {sort_key}")
    return sorted(bookmarks, key=key, reverse=sort_order == ORDER_DESC)


def partition(bookmarks) -> ListView:
    return ListView(
        pinned=[b for b in bookmarks if b.get("isPinned")],
        unpinned=[b for b in bookmarks if not b.get("isPinned")],
    )


def present(
    bookmarks,
    search_query: str = "",
    selected_tags=(),
    sort_key: str = SORT_ACCESS_COUNT,
    sort_order: str = ORDER_DESC,
    ordering_mode_active: bool = False,
) -> ListView:
    filtered = filter_bookmarks(bookmarks, search_query, selected_tags)
    if ordering_mode_active and sort_key == SORT_CUSTOM:
        ordered = filtered
    else:
        ordered = sort_bookmarks(filtered, sort_key, sort_order)
    return partition(ordered)


def arrange_for_ordering(
    bookmarks,
    search_query: str = "",
    selected_tags=(),
    sort_key: str = SORT_ACCESS_COUNT,
    sort_order: str = ORDER_DESC,
) -> list:
    """Array used when ordering mode starts.

    Matching bookmarks come first in the order currently on screen, the rest
    follow in their existing relative order.
    """
    view = present(bookmarks, search_query, selected_tags, sort_key, sort_order)
    rest = [b for b in bookmarks if not matches_filters(b, search_query, selected_tags)]
    return view.pinned + view.unpinned + rest


def reorder(
    bookmarks,
    old_index: int,
    new_index: int,
    is_pinned_section: bool,
    search_query: str = "",
    selected_tags=(),
) -> list:
    """Move one bookmark inside its on-screen section.

    Indexes address the filtered pinned or unpinned section. Matching bookmarks
    are written back into the slots matching bookmarks held in the full array,
    so bookmarks hidden by the filter keep their positions.
    """
    slots = [
        i
        for i, bookmark in enumerate(bookmarks)
        if matches_filters(bookmark, search_query, selected_tags)
    ]
    view = partition([bookmarks[i] for i in slots])
    section = list(view.pinned if is_pinned_section else view.unpinned)
    if not 0 <= old_index < len(section):
        raise ValueError(f"old_index {old_index} out of range")
    if not 0 <= new_index < len(section):
        raise ValueError(f"new_index {new_index} out of range")

    moved = section.pop(old_index)
    section.insert(new_index, moved)
    if is_pinned_section:
        rearranged = section + view.unpinned
    else:
        rearranged = view.pinned + section

    result = list(bookmarks)
    for slot, bookmark in zip(slots, rearranged):
        result[slot] = bookmark
    return result


def rank_assignments(bookmarks) -> list[tuple]:
    pinned = [b for b in bookmarks if b.get("isPinned")]
    unpinned = [b for b in bookmarks if not b.get("isPinned")]
    ranks = [(b["id"], index) for index, b in enumerate(pinned)]
    ranks.extend(
        (b["id"], UNPINNED_RANK_OFFSET + index) for index, b in enumerate(unpinned)
    )
    return ranks


def commit_order(bookmarks) -> list[tuple]:
    """(id, rank) pairs for every bookmark whose stored rank changes."""
    current = {b["id"]: b.get("customOrder") for b in bookmarks}
    return [
        (bookmark_id, rank)
        for bookmark_id, rank in rank_assignments(bookmarks)
        if current.get(bookmark_id) != rank
    ]


def order_changed(original, current) -> bool:
    return [b["id"] for b in original] != [b["id"] for b in current]
