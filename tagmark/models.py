import hashlib
import secrets
from datetime import datetime, timezone

from flask import jsonify, url_for
from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from tagmark.extensions import db, login_manager


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


bookmark_tags = db.Table(
    "bookmarks_tags",
    db.Column(
        "bookmark_id", db.Integer, db.ForeignKey("bookmarks.id"), primary_key=True
    ),
    db.Column("tag_id", db.Integer, db.ForeignKey("tags.id"), primary_key=True),
)


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    bookmarks = db.relationship("Bookmark", backref="user", lazy=True)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)


@login_manager.user_loader
def load_user(user_id: str):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return (
        jsonify(
            {"error": "authentication required", "login_url": url_for("auth.login")}
        ),
        401,
    )


class Bookmark(db.Model):
    __tablename__ = "bookmarks"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )

    title = db.Column(db.String(512), nullable=False, default="")
    url = db.Column(db.Text, nullable=False)
    is_pinned = db.Column(db.Boolean, nullable=False, default=False)
    access_count = db.Column(db.Integer, nullable=False, default=0)
    last_accessed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    custom_order = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    tags = db.relationship(
        "Tag", secondary=bookmark_tags, backref="bookmarks", order_by="Tag.name"
    )

    __table_args__ = (
        db.Index("ix_bookmark_user_url", "user_id", "url"),
        db.Index("ix_bookmark_user_custom_order", "user_id", "custom_order"),
    )

    def as_record(self) -> dict:
        """Row shape as the record store returns it, with the tag join nested."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "url": self.url,
            "is_pinned": self.is_pinned,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "access_count": self.access_count,
            "last_accessed_at": isoformat(self.last_accessed_at),
            "custom_order": self.custom_order,
            "bookmarks_tags": [{"tags": {"name": tag.name}} for tag in self.tags],
        }


class Tag(db.Model):
    __tablename__ = "tags"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_tag_user_name"),)

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class TagRule(db.Model):
    __tablename__ = "tag_rules"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    tag_id = db.Column(db.Integer, db.ForeignKey("tags.id"), nullable=False, index=True)
    target_field = db.Column(db.String(16), nullable=False, default="url")
    match_type = db.Column(db.String(16), nullable=False, default="contains")
    pattern = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    tag = db.relationship("Tag")

    def as_record(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "tag_id": self.tag_id,
            "target_field": self.target_field,
            "match_type": self.match_type,
            "pattern": self.pattern,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class UserSettings(db.Model):
    __tablename__ = "user_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True
    )
    display_mode = db.Column(db.String(16), nullable=False, default="grid")
    list_columns = db.Column(db.Integer, nullable=False, default=4)
    sort_option = db.Column(db.String(32), nullable=False, default="accessCount")
    sort_order = db.Column(db.String(8), nullable=False, default="desc")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    def as_record(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "display_mode": self.display_mode,
            "list_columns": self.list_columns,
            "sort_option": self.sort_option,
            "sort_order": self.sort_order,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }


class ApiToken(db.Model):
    __tablename__ = "api_tokens"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, index=True
    )
    name = db.Column(db.String(120), nullable=False)
    token_hash = db.Column(db.String(128), nullable=False, unique=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    user = db.relationship("User", backref="api_tokens")

    @staticmethod
    def issue_token(prefix="tm"):
        token = f"{prefix}_{secrets.token_urlsafe(32)}"
        token_hash = hashlib.sha256(token.encode("utf-8")).hexdigest()
        return token, token_hash
