from tagmark.services.view_models import (
    DEFAULT_SETTINGS,
    rule_to_db,
    rule_to_ui,
    settings_to_db,
    settings_to_ui,
    to_db,
    to_ui,
)


def _record(**overrides):
    record = {
        "id": 7,
        "user_id": 3,
        "title": "Go Guide",
        "url": "https://go.dev/doc",
        "is_pinned": True,
        "created_at": "2024-01-01T00:00:00+00:00",
        "updated_at": "2024-01-02T00:00:00+00:00",
        "access_count": 4,
        "last_accessed_at": None,
        "custom_order": None,
        "bookmarks_tags": [{"tags": {"name": "dev"}}, {"tags": {"name": "go"}}],
    }
    record.update(overrides)
    return record


def test_to_ui_flattens_tags_and_omits_empty_optionals():
    bookmark = to_ui(_record())

    assert bookmark == {
        "id": 7,
        "title": "Go Guide",
        "url": "https://go.dev/doc",
        "tags": ["dev", "go"],
        "isPinned": True,
        "createdAt": "2024-01-01T00:00:00+00:00",
        "updatedAt": "2024-01-02T00:00:00+00:00",
        "accessCount": 4,
    }


def test_to_ui_keeps_zero_custom_order_and_access_time():
    bookmark = to_ui(
        _record(custom_order=0, last_accessed_at="2024-02-01T00:00:00+00:00")
    )

    assert bookmark["customOrder"] == 0
    assert bookmark["lastAccessedAt"] == "2024-02-01T00:00:00+00:00"


def test_to_ui_tolerates_missing_join_rows():
    bookmark = to_ui(_record(bookmarks_tags=None, access_count=None))
    assert bookmark["tags"] == []
    assert bookmark["accessCount"] == 0


def test_client_shape_survives_store_round_trip():
    bookmark = to_ui(
        _record(custom_order=1003, last_accessed_at="2024-02-01T00:00:00Z")
    )

    record = to_db(bookmark, user_id=3)

    assert record["user_id"] == 3
    assert record["is_pinned"] is True
    assert [row["tags"]["name"] for row in record["bookmarks_tags"]] == ["dev", "go"]
    assert to_ui(record) == bookmark


def test_to_db_leaves_out_id_for_new_bookmarks():
    record = to_db({"title": "New", "url": "https://new.example", "tags": []}, 3)
    assert "id" not in record
    assert record["access_count"] == 0


def test_settings_default_when_no_row():
    assert settings_to_ui(None) == DEFAULT_SETTINGS
    assert settings_to_ui(None) is not DEFAULT_SETTINGS


def test_settings_round_trip():
    settings = {
        "displayMode": "list",
        "listColumns": 2,
        "sortOption": "custom",
        "sortOrder": "asc",
    }
    record = settings_to_db(settings, 5)

    assert record["user_id"] == 5
    assert record["display_mode"] == "list"
    assert settings_to_ui(record) == settings


def test_rule_round_trip():
    rule = {
        "id": 2,
        "targetField": "url",
        "matchType": "contains",
        "pattern": "github",
        "tagId": 9,
    }
    record = rule_to_db(rule, 5)

    assert record["tag_id"] == 9
    assert record["user_id"] == 5
    assert rule_to_ui(record) == {**rule, "createdAt": None, "updatedAt": None}
