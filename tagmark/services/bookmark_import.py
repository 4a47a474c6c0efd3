from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from bs4 import BeautifulSoup, Tag


@dataclass
class ImportedBookmark:
    title: str
    url: str
    add_date: datetime | None = None


def _parse_add_date(raw) -> datetime | None:
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        seconds = int(raw.strip())
    except ValueError:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_bookmark_html(html: str | bytes) -> list[ImportedBookmark]:
    """Every anchor with a usable href in a Netscape bookmark file.

    Raw bytes are decoded by BeautifulSoup, which honours the file's META
    charset before falling back to UTF-8 and windows-1252.
    """
    soup = BeautifulSoup(html, "lxml")

    bookmarks: list[ImportedBookmark] = []
    for anchor in soup.find_all("a"):
        if not isinstance(anchor, Tag):
            continue
        href_value = anchor.get("href")
        href = href_value.strip() if isinstance(href_value, str) else ""
        if not href:
            continue
        bookmarks.append(
            ImportedBookmark(
                title=anchor.get_text(strip=True),
                url=href,
                add_date=_parse_add_date(anchor.get("add_date")),
            )
        )
    return bookmarks


def dedupe_by_url(entries, existing_urls) -> tuple[list[ImportedBookmark], int]:
    """Drop entries whose url is already stored or appeared earlier in the file."""
    seen = set(existing_urls)
    fresh: list[ImportedBookmark] = []
    skipped = 0
    for entry in entries:
        if entry.url in seen:
            skipped += 1
            continue
        seen.add(entry.url)
        fresh.append(entry)
    return fresh, skipped
