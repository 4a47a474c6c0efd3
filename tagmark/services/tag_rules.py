from __future__ import annotations

MATCH_STARTS_WITH = "starts_with"
MATCH_CONTAINS = "contains"
MATCH_ENDS_WITH = "ends_with"
MATCH_TYPES = (MATCH_STARTS_WITH, MATCH_CONTAINS, MATCH_ENDS_WITH)

FIELD_TITLE = "title"
FIELD_URL = "url"
TARGET_FIELDS = (FIELD_TITLE, FIELD_URL)


def matches(rule: dict, bookmark: dict) -> bool:
    """Whether a rule (client shape) matches a bookmark's title or url."""
    target_field = rule.get("targetField")
    if target_field not in TARGET_FIELDS:
        return False
    value = (bookmark.get(target_field) or "").lower()
    pattern = (rule.get("pattern") or "").lower()

    match_type = rule.get("matchType")
    if match_type == MATCH_STARTS_WITH:
        return value.startswith(pattern)
    if match_type == MATCH_CONTAINS:
        return pattern in value
    if match_type == MATCH_ENDS_WITH:
        return value.endswith(pattern)
    return False


def apply_rule(rule: dict, bookmarks) -> set:
    return {bookmark["id"] for bookmark in bookmarks if matches(rule, bookmark)}


def auto_tag_names(rules, tags_by_id: dict, title: str, url: str) -> list[str]:
    candidate = {"title": title, "url": url}
    names: list[str] = []
    for rule in rules:
        if not matches(rule, candidate):
            continue
        name = tags_by_id.get(rule.get("tagId"))
        if name and name not in names:
            names.append(name)
    return names


def merge_tag_names(chosen, automatic) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for name in list(chosen or []) + list(automatic or []):
        key = name.casefold()
        if key in seen:
            continue
        seen.add(key)
        merged.append(name)
    return merged
