from __future__ import annotations

from sqlalchemy import inspect, text

from tagmark.extensions import db


# Columns added after the first schema; SQLite databases created earlier
# lack them because create_all() never alters existing tables.
ADDED_COLUMNS = (
    ("bookmarks", "custom_order", "INTEGER"),
    ("bookmarks", "last_accessed_at", "DATETIME"),
    ("user_settings", "sort_option", "VARCHAR(32) NOT NULL DEFAULT 'accessCount'"),
    ("user_settings", "sort_order", "VARCHAR(8) NOT NULL DEFAULT 'desc'"),
)


def ensure_added_columns() -> list[str]:
    engine = db.engine
    if engine.dialect.name != "sqlite":
        return []

    inspector = inspect(engine)
    added: list[str] = []
    for table, column, ddl in ADDED_COLUMNS:
        if not inspector.has_table(table):
            continue
        columns = {row["name"] for row in inspector.get_columns(table)}
        if column in columns:
            continue
        db.session.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
        added.append(f"{table}.{column}")

    if added:
        db.session.commit()
    return added
