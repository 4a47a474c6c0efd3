from __future__ import annotations

from flask import current_app

from tagmark.extensions import db
from tagmark.models import Bookmark, Tag, TagRule
from tagmark.services.common import clean_tag_names
from tagmark.services.context import UserContext
from tagmark.services.errors import DuplicateRecord, InvalidInput, RecordNotFound
from tagmark.services.persistence import commit_or_raise
from tagmark.services.tag_rules import MATCH_TYPES, TARGET_FIELDS, apply_rule
from tagmark.services.view_models import rule_to_ui, to_ui


def list_tags(ctx: UserContext) -> list[dict]:
    tags = Tag.query.filter_by(user_id=ctx.user_id).all()
    tags.sort(key=lambda tag: (tag.name.casefold(), tag.name))
    return [tag.as_dict() for tag in tags]


def find_tag(ctx: UserContext, name: str) -> Tag | None:
    # SQL lower() only folds ASCII, so compare casefolded names here.
    key = name.strip().casefold()
    for tag in Tag.query.filter_by(user_id=ctx.user_id).all():
        if tag.name.casefold() == key:
            return tag
    return None


def _get_owned_tag(ctx: UserContext, tag_id: int) -> Tag:
    tag = Tag.query.filter_by(id=tag_id, user_id=ctx.user_id).first()
    if not tag:
        raise RecordNotFound("tag not found")
    return tag


def ensure_tags(ctx: UserContext, names) -> list[Tag]:
    tags: list[Tag] = []
    for name in clean_tag_names(names):
        tag = find_tag(ctx, name)
        if not tag:
            tag = Tag(user_id=ctx.user_id, name=name)
            db.session.add(tag)
            db.session.flush()
        if tag not in tags:
            tags.append(tag)
    return tags


def add_tag(ctx: UserContext, name: str) -> dict:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("tag name is required")
    if find_tag(ctx, name):
        raise DuplicateRecord("tag already exists")

    tag = Tag(user_id=ctx.user_id, name=name)
    db.session.add(tag)
    commit_or_raise("add tag")
    return tag.as_dict()


def rename_tag(ctx: UserContext, tag_id: int, new_name: str) -> dict:
    tag = _get_owned_tag(ctx, tag_id)
    new_name = (new_name or "").strip()
    if not new_name:
        raise InvalidInput("tag name is required")
    clash = find_tag(ctx, new_name)
    if clash and clash.id != tag.id:
        raise DuplicateRecord("tag already exists")

    tag.name = new_name
    commit_or_raise("rename tag")
    return tag.as_dict()


def _delete_tag(ctx: UserContext, tag: Tag) -> int:
    rules = TagRule.query.filter_by(user_id=ctx.user_id, tag_id=tag.id).all()
    for rule in rules:
        db.session.delete(rule)
    for bookmark in list(tag.bookmarks):
        bookmark.tags.remove(tag)
    db.session.delete(tag)
    return len(rules)


def remove_tag(ctx: UserContext, tag_id: int) -> dict:
    tag = _get_owned_tag(ctx, tag_id)
    removed_rules = _delete_tag(ctx, tag)
    commit_or_raise("remove tag")
    return {"status": "deleted", "removed_rules": removed_rules}


def replace_tags(ctx: UserContext, names) -> list[dict]:
    """Make the user's tag set equal to ``names``.

    Tags missing from the list are deleted with their links and rules; new
    names are created. Existing tags keep their spelling.
    """
    wanted = clean_tag_names(names)
    wanted_keys = {name.casefold() for name in wanted}

    existing = Tag.query.filter_by(user_id=ctx.user_id).all()
    existing_keys = {tag.name.casefold() for tag in existing}
    for tag in existing:
        if tag.name.casefold() not in wanted_keys:
            _delete_tag(ctx, tag)
    for name in wanted:
        if name.casefold() not in existing_keys:
            db.session.add(Tag(user_id=ctx.user_id, name=name))

    commit_or_raise("update tags")
    return list_tags(ctx)


def list_rules(ctx: UserContext) -> list[dict]:
    rules = (
        TagRule.query.filter_by(user_id=ctx.user_id)
        .order_by(TagRule.created_at.asc(), TagRule.id.asc())
        .all()
    )
    return [rule_to_ui(rule.as_record()) for rule in rules]


def _get_owned_rule(ctx: UserContext, rule_id: int) -> TagRule:
    rule = TagRule.query.filter_by(id=rule_id, user_id=ctx.user_id).first()
    if not rule:
        raise RecordNotFound("tag rule not found")
    return rule


def _user_bookmarks(ctx: UserContext) -> list[Bookmark]:
    return Bookmark.query.filter_by(user_id=ctx.user_id).all()


def create_rule(ctx: UserContext, payload: dict) -> dict:
    target_field = payload.get("targetField") or "url"
    match_type = payload.get("matchType") or "contains"
    pattern = (payload.get("pattern") or "").strip()
    if target_field not in TARGET_FIELDS:
        raise InvalidInput(f"targetField must be one of {', '.join(TARGET_FIELDS)}")
    if match_type not in MATCH_TYPES:
        raise InvalidInput(f"matchType must be one of {', '.join(MATCH_TYPES)}")
    if not pattern:
        raise InvalidInput("pattern is required")
    try:
        tag_id = int(payload.get("tagId"))
    except (TypeError, ValueError):
        raise InvalidInput("tagId is required") from None
    tag = _get_owned_tag(ctx, tag_id)

    rule = TagRule(
        user_id=ctx.user_id,
        tag_id=tag.id,
        target_field=target_field,
        match_type=match_type,
        pattern=pattern,
    )
    db.session.add(rule)
    db.session.flush()

    rule_ui = rule_to_ui(rule.as_record())
    bookmarks = _user_bookmarks(ctx)
    matched = apply_rule(rule_ui, [to_ui(b.as_record()) for b in bookmarks])
    tagged = 0
    for bookmark in bookmarks:
        if bookmark.id in matched and tag not in bookmark.tags:
            bookmark.tags.append(tag)
            tagged += 1

    commit_or_raise("save tag rule")
    current_app.logger.info(
        "Tag rule %s tagged %s bookmarks for user %s", rule.id, tagged, ctx.user_id
    )
    return {"rule": rule_to_ui(rule.as_record()), "tagged": tagged}


def delete_rule(ctx: UserContext, rule_id: int, remove_tags: bool = False) -> dict:
    rule = _get_owned_rule(ctx, rule_id)
    untagged = 0
    if remove_tags:
        rule_ui = rule_to_ui(rule.as_record())
        bookmarks = _user_bookmarks(ctx)
        matched = apply_rule(rule_ui, [to_ui(b.as_record()) for b in bookmarks])
        for bookmark in bookmarks:
            if bookmark.id in matched and rule.tag in bookmark.tags:
                bookmark.tags.remove(rule.tag)
                untagged += 1

    db.session.delete(rule)
    commit_or_raise("delete tag rule")
    return {"status": "deleted", "untagged": untagged}
