from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from tagmark.extensions import db
from tagmark.models import Bookmark, Tag, TagRule, utcnow
from tagmark.services.bookmark_export import build_bookmarks_html
from tagmark.services.bookmark_import import dedupe_by_url, parse_bookmark_html
from tagmark.services.common import clean_tag_names, parse_timestamp, to_bool
from tagmark.services.context import UserContext
from tagmark.services.errors import InvalidInput, RecordNotFound
from tagmark.services.list_engine import UNPINNED_RANK_OFFSET, commit_order
from tagmark.services.ordering import ListState, cancel_ordering
from tagmark.services.persistence import commit_or_raise
from tagmark.services.tag_rules import auto_tag_names, merge_tag_names
from tagmark.services.tags import ensure_tags
from tagmark.services.view_models import rule_to_ui, to_ui


ORDER_SAVED = "saved"
ORDER_UNCHANGED = "unchanged"
ORDER_RECONCILED = "reconciled"


@dataclass
class OrderCommit:
    status: str
    items: list
    updated: int = 0

    def as_dict(self):
        return {"status": self.status, "updated": self.updated, "items": self.items}


def _user_bookmarks_query(ctx: UserContext):
    return Bookmark.query.options(selectinload(Bookmark.tags)).filter_by(
        user_id=ctx.user_id
    )


def list_bookmarks(ctx: UserContext) -> list[dict]:
    rows = _user_bookmarks_query(ctx).order_by(Bookmark.id.asc()).all()
    return [to_ui(row.as_record()) for row in rows]


def _get_owned(ctx: UserContext, bookmark_id: int) -> Bookmark:
    bookmark = Bookmark.query.filter_by(id=bookmark_id, user_id=ctx.user_id).first()
    if not bookmark:
        raise RecordNotFound("bookmark not found")
    return bookmark


def get_bookmark(ctx: UserContext, bookmark_id: int) -> dict:
    return to_ui(_get_owned(ctx, bookmark_id).as_record())


def _next_custom_order(ctx: UserContext) -> int:
    highest = (
        db.session.query(func.max(Bookmark.custom_order))
        .filter(Bookmark.user_id == ctx.user_id)
        .scalar()
    )
    return (highest or 0) + 1


def _check_pin_capacity(ctx: UserContext, bookmark: Bookmark | None = None) -> None:
    query = Bookmark.query.filter_by(user_id=ctx.user_id, is_pinned=True)
    if bookmark is not None and bookmark.id is not None:
        query = query.filter(Bookmark.id != bookmark.id)
    if query.count() >= UNPINNED_RANK_OFFSET:
        raise InvalidInput(f"at most {UNPINNED_RANK_OFFSET} bookmarks can be pinned")


def _rule_tags(ctx: UserContext, title: str, url: str) -> list[str]:
    rules = TagRule.query.filter_by(user_id=ctx.user_id).all()
    if not rules:
        return []
    tags_by_id = {
        tag.id: tag.name for tag in Tag.query.filter_by(user_id=ctx.user_id).all()
    }
    return auto_tag_names(
        [rule_to_ui(rule.as_record()) for rule in rules], tags_by_id, title, url
    )


def save_bookmark(
    ctx: UserContext, payload: dict, bookmark_id: int | None = None
) -> dict:
    """Create a bookmark or edit an existing one.

    Tags produced by the user's tag rules are merged into the chosen tags.
    New bookmarks are ranked after every existing one; edits keep their rank.
    """
    if bookmark_id is None:
        url = (payload.get("url") or "").strip()
        if not url:
            raise InvalidInput("url is required")
        bookmark = Bookmark(
            user_id=ctx.user_id,
            url=url,
            title=(payload.get("title") or "").strip(),
            custom_order=_next_custom_order(ctx),
        )
        try:
            created_at = parse_timestamp(payload.get("createdAt"))
        except (OverflowError, ValueError):
            raise InvalidInput("createdAt must be an ISO timestamp") from None
        if created_at:
            bookmark.created_at = created_at
        chosen = payload.get("tags") or []
        db.session.add(bookmark)
    else:
        bookmark = _get_owned(ctx, bookmark_id)
        if "url" in payload:
            bookmark.url = (payload.get("url") or "").strip() or bookmark.url
        if "title" in payload:
            bookmark.title = (payload.get("title") or "").strip()
        if "tags" in payload:
            chosen = payload.get("tags") or []
        else:
            chosen = [tag.name for tag in bookmark.tags]

    if "isPinned" in payload:
        pinned = to_bool(payload.get("isPinned"))
        if pinned and not bookmark.is_pinned:
            _check_pin_capacity(ctx, bookmark)
        bookmark.is_pinned = pinned

    merged = merge_tag_names(
        clean_tag_names(chosen), _rule_tags(ctx, bookmark.title, bookmark.url)
    )
    bookmark.tags = ensure_tags(ctx, merged)
    commit_or_raise("save bookmark")
    return to_ui(bookmark.as_record())


def delete_bookmark(ctx: UserContext, bookmark_id: int) -> None:
    bookmark = _get_owned(ctx, bookmark_id)
    bookmark.tags.clear()
    db.session.delete(bookmark)
    commit_or_raise("delete bookmark")


def toggle_pin(ctx: UserContext, bookmark_id: int) -> dict:
    bookmark = _get_owned(ctx, bookmark_id)
    if not bookmark.is_pinned:
        _check_pin_capacity(ctx, bookmark)
    bookmark.is_pinned = not bookmark.is_pinned
    commit_or_raise("update pin state")
    return to_ui(bookmark.as_record())


def record_access(ctx: UserContext, bookmark_id: int) -> dict:
    bookmark = _get_owned(ctx, bookmark_id)
    bookmark.access_count = (bookmark.access_count or 0) + 1
    bookmark.last_accessed_at = utcnow()
    commit_or_raise("record bookmark access")
    return to_ui(bookmark.as_record())


def delete_all(ctx: UserContext) -> dict:
    bookmarks = Bookmark.query.filter_by(user_id=ctx.user_id).all()
    for bookmark in bookmarks:
        bookmark.tags.clear()
        db.session.delete(bookmark)
    rules = TagRule.query.filter_by(user_id=ctx.user_id).all()
    for rule in rules:
        db.session.delete(rule)
    tags = Tag.query.filter_by(user_id=ctx.user_id).all()
    for tag in tags:
        db.session.delete(tag)
    commit_or_raise("delete all bookmarks")
    cancel_ordering(ctx.user_id)
    return {"bookmarks": len(bookmarks), "tags": len(tags), "rules": len(rules)}


def commit_custom_order(ctx: UserContext, items) -> OrderCommit:
    """Persist ranks for ``items`` in their displayed order.

    Each changed bookmark is written and committed on its own. If a write
    fails, the local ranks are dropped and the authoritative list is
    fetched again.
    """
    updates = commit_order(items)
    state = ListState.of(items).apply_optimistic(updates)
    if not updates:
        return OrderCommit(ORDER_UNCHANGED, list(state.items))

    written = 0
    try:
        for bookmark_id, rank in updates:
            bookmark = Bookmark.query.filter_by(
                id=bookmark_id, user_id=ctx.user_id
            ).first()
            if not bookmark:
                raise RecordNotFound(f"bookmark {bookmark_id} not found")
            bookmark.custom_order = rank
            db.session.commit()
            written += 1
    except (SQLAlchemyError, RecordNotFound) as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Custom order commit stopped after %s of %s updates for user %s: %s",
            written,
            len(updates),
            ctx.user_id,
            exc,
        )
        state = state.reconcile(list_bookmarks(ctx))
        return OrderCommit(ORDER_RECONCILED, list(state.items), written)

    current_app.logger.info(
        "Saved custom order for user %s (%s updates)", ctx.user_id, written
    )
    return OrderCommit(ORDER_SAVED, list(state.items), written)


def finish_ordering(ctx: UserContext) -> OrderCommit:
    session = cancel_ordering(ctx.user_id)
    if session is None:
        raise InvalidInput("ordering mode is not active")
    if not session.changed:
        return OrderCommit(ORDER_UNCHANGED, session.items)
    return commit_custom_order(ctx, session.items)


def import_bookmarks(ctx: UserContext, html: str | bytes) -> dict:
    entries = parse_bookmark_html(html)
    existing = {
        url for (url,) in db.session.query(Bookmark.url).filter_by(user_id=ctx.user_id)
    }
    fresh, skipped = dedupe_by_url(entries, existing)

    for entry in fresh:
        created_at = entry.add_date or utcnow()
        db.session.add(
            Bookmark(
                user_id=ctx.user_id,
                title=entry.title,
                url=entry.url,
                is_pinned=False,
                access_count=0,
                created_at=created_at,
                updated_at=created_at,
            )
        )
    commit_or_raise("import bookmarks")
    current_app.logger.info(
        "Imported %s bookmarks for user %s (%s skipped)",
        len(fresh),
        ctx.user_id,
        skipped,
    )
    return {
        "total_found": len(entries),
        "total_created": len(fresh),
        "total_skipped": skipped,
    }


def export_bookmarks_html(ctx: UserContext) -> str:
    rows = (
        _user_bookmarks_query(ctx)
        .order_by(Bookmark.created_at.asc(), Bookmark.id.asc())
        .all()
    )
    return build_bookmarks_html([to_ui(row.as_record()) for row in rows])
