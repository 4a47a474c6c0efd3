from __future__ import annotations

from flask import current_app

from tagmark.extensions import db
from tagmark.models import UserSettings
from tagmark.services.context import UserContext
from tagmark.services.errors import InvalidInput, RecordStoreError
from tagmark.services.list_engine import SORT_OPTIONS, SORT_ORDERS
from tagmark.services.persistence import commit_or_raise
from tagmark.services.view_models import (
    DEFAULT_SETTINGS,
    settings_to_db,
    settings_to_ui,
)

DISPLAY_MODES = ("grid", "list")
LIST_COLUMNS = (1, 2, 3, 4)


def _validate(settings: dict) -> dict:
    if settings["displayMode"] not in DISPLAY_MODES:
        raise InvalidInput(f"displayMode must be one of {', '.join(DISPLAY_MODES)}")
    try:
        columns = int(settings["listColumns"])
    except (TypeError, ValueError):
        raise InvalidInput("listColumns must be a number") from None
    if columns not in LIST_COLUMNS:
        raise InvalidInput("listColumns must be between 1 and 4")
    if settings["sortOption"] not in SORT_OPTIONS:
        raise InvalidInput(f"sortOption must be one of {', '.join(SORT_OPTIONS)}")
    if settings["sortOrder"] not in SORT_ORDERS:
        raise InvalidInput(f"sortOrder must be one of {', '.join(SORT_ORDERS)}")
    return {**settings, "listColumns": columns}


def _upsert(ctx: UserContext, settings: dict) -> UserSettings:
    values = settings_to_db(settings, ctx.user_id)
    row = UserSettings.query.filter_by(user_id=ctx.user_id).first()
    if not row:
        row = UserSettings(user_id=ctx.user_id)
        db.session.add(row)
    for key, value in values.items():
        setattr(row, key, value)
    return row


def get_settings(ctx: UserContext) -> dict:
    """Display settings, created with defaults on first load.

    A store failure here falls back to the defaults instead of failing the
    page.
    """
    row = UserSettings.query.filter_by(user_id=ctx.user_id).first()
    if row:
        return settings_to_ui(row.as_record())

    _upsert(ctx, DEFAULT_SETTINGS)
    try:
        commit_or_raise("create display settings")
    except RecordStoreError:
        current_app.logger.warning(
            "Using default display settings for user %s", ctx.user_id
        )
    return dict(DEFAULT_SETTINGS)


def update_settings(ctx: UserContext, changes: dict) -> dict:
    current = get_settings(ctx)
    merged = {
        key: changes[key] if key in changes else current[key]
        for key in DEFAULT_SETTINGS
    }
    settings = _validate(merged)
    row = _upsert(ctx, settings)
    commit_or_raise("save display settings")
    return settings_to_ui(row.as_record())
