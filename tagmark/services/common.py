from __future__ import annotations

from datetime import datetime, timezone

from dateutil import parser as dt_parser


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def clean_tag_names(raw) -> list[str]:
    """Trim tag names and drop blanks and case-insensitive duplicates.

    Accepts a list or a comma/semicolon separated string. The first spelling
    of a name wins and input order is kept.
    """
    if not raw:
        return []
    if isinstance(raw, str):
        tokens = raw.replace(";", ",").split(",")
    else:
        tokens = [str(item) for item in raw if item is not None]

    names: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        name = token.strip()
        if not name or name.casefold() in seen:
            continue
        seen.add(name.casefold())
        names.append(name)
    return names


def parse_timestamp(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = dt_parser.isoparse(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def epoch_seconds(value) -> int:
    parsed = parse_timestamp(value)
    if parsed is None:
        return 0
    return int(parsed.timestamp())
