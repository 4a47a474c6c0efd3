"""Mapping between stored-record rows and the camelCase shapes clients use.

Stored rows use snake_case keys and carry tags as nested join rows
(``bookmarks_tags[].tags.name``). Client shapes use camelCase keys and a flat
``tags`` list. Optional fields that are empty are left out of the client shape.
"""

from __future__ import annotations

DEFAULT_SETTINGS = {
    "displayMode": "grid",
    "listColumns": 4,
    "sortOption": "accessCount",
    "sortOrder": "desc",
}


def _tag_names(record: dict) -> list[str]:
    names: list[str] = []
    for row in record.get("bookmarks_tags") or []:
        tag = (row or {}).get("tags") or {}
        name = tag.get("name")
        if name and name not in names:
            names.append(name)
    return names


def to_ui(record: dict) -> dict:
    bookmark = {
        "id": record.get("id"),
        "title": record.get("title") or "",
        "url": record.get("url") or "",
        "tags": _tag_names(record),
        "isPinned": bool(record.get("is_pinned")),
        "createdAt": record.get("created_at"),
        "updatedAt": record.get("updated_at"),
        "accessCount": record.get("access_count") or 0,
    }
    if record.get("last_accessed_at"):
        bookmark["lastAccessedAt"] = record["last_accessed_at"]
    if record.get("custom_order") is not None:
        bookmark["customOrder"] = record["custom_order"]
    return bookmark


def to_db(bookmark: dict, user_id) -> dict:
    record = {
        "title": bookmark.get("title") or "",
        "url": bookmark.get("url") or "",
        "is_pinned": bool(bookmark.get("isPinned")),
        "created_at": bookmark.get("createdAt"),
        "updated_at": bookmark.get("updatedAt"),
        "access_count": bookmark.get("accessCount") or 0,
        "last_accessed_at": bookmark.get("lastAccessedAt"),
        "user_id": user_id,
        "custom_order": bookmark.get("customOrder"),
        "bookmarks_tags": [
            {"tags": {"name": name}} for name in bookmark.get("tags") or []
        ],
    }
    if bookmark.get("id") is not None:
        record["id"] = bookmark["id"]
    return record


def settings_to_ui(record: dict | None) -> dict:
    if not record:
        return dict(DEFAULT_SETTINGS)
    return {
        "displayMode": record.get("display_mode") or DEFAULT_SETTINGS["displayMode"],
        "listColumns": record.get("list_columns") or DEFAULT_SETTINGS["listColumns"],
        "sortOption": record.get("sort_option") or DEFAULT_SETTINGS["sortOption"],
        "sortOrder": record.get("sort_order") or DEFAULT_SETTINGS["sortOrder"],
    }


def settings_to_db(settings: dict, user_id) -> dict:
    return {
        "user_id": user_id,
        "display_mode": settings.get("displayMode"),
        "list_columns": settings.get("listColumns"),
        "sort_option": settings.get("sortOption"),
        "sort_order": settings.get("sortOrder"),
    }


def rule_to_ui(record: dict) -> dict:
    return {
        "id": record.get("id"),
        "targetField": record.get("target_field"),
        "matchType": record.get("match_type"),
        "pattern": record.get("pattern") or "",
        "tagId": record.get("tag_id"),
        "createdAt": record.get("created_at"),
        "updatedAt": record.get("updated_at"),
    }


def rule_to_db(rule: dict, user_id) -> dict:
    record = {
        "user_id": user_id,
        "target_field": rule.get("targetField"),
        "match_type": rule.get("matchType"),
        "pattern": rule.get("pattern") or "",
        "tag_id": rule.get("tagId"),
    }
    if rule.get("id") is not None:
        record["id"] = rule["id"]
    return record
