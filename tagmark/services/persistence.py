from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from tagmark.extensions import db
from tagmark.services.errors import RecordStoreError


def commit_or_raise(action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Failed to %s: %s", action, exc)
        raise RecordStoreError(f"failed to {action}") from exc
