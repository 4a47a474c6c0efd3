from tagmark.services.tag_rules import (
    apply_rule,
    auto_tag_names,
    matches,
    merge_tag_names,
)


def _rule(match_type, pattern, field="title", tag_id=1):
    return {
        "id": 1,
        "targetField": field,
        "matchType": match_type,
        "pattern": pattern,
        "tagId": tag_id,
    }


BOOKMARKS = [
    {"id": 1, "title": "Go Guide", "url": "https://go.dev/doc"},
    {"id": 2, "title": "golang tips", "url": "https://blog.example.com/golang"},
    {"id": 3, "title": "Recipe", "url": "https://food.example.org/bread"},
]


def test_starts_with_selects_case_insensitive_prefix_matches():
    assert apply_rule(_rule("starts_with", "go"), BOOKMARKS) == {1, 2}


def test_contains_and_ends_with_on_url():
    assert apply_rule(_rule("contains", "EXAMPLE", field="url"), BOOKMARKS) == {2, 3}
    assert apply_rule(_rule("ends_with", "/bread", field="url"), BOOKMARKS) == {3}


def test_unknown_match_type_or_field_never_matches():
    assert not matches(_rule("regex", "go"), BOOKMARKS[0])
    assert not matches(_rule("contains", "go", field="description"), BOOKMARKS[0])


def test_empty_pattern_matches_everything_for_every_type():
    for match_type in ("starts_with", "contains", "ends_with"):
        assert apply_rule(_rule(match_type, ""), BOOKMARKS) == {1, 2, 3}


def test_missing_field_value_is_treated_as_empty_text():
    assert not matches(_rule("contains", "go"), {"id": 9, "url": "https://go.dev"})


def test_auto_tag_names_uses_matching_rules_once_per_tag():
    rules = [
        _rule("starts_with", "go", tag_id=1),
        _rule("contains", "go.dev", field="url", tag_id=1),
        _rule("contains", "bread", field="url", tag_id=2),
        _rule("contains", "guide", tag_id=99),
    ]
    tags_by_id = {1: "golang", 2: "food"}

    names = auto_tag_names(rules, tags_by_id, "Go Guide", "https://go.dev/doc")

    assert names == ["golang"]


def test_merge_tag_names_keeps_chosen_spelling_first():
    assert merge_tag_names(["Dev", "reading"], ["dev", "golang"]) == [
        "Dev",
        "reading",
        "golang",
    ]
    assert merge_tag_names(None, ["golang"]) == ["golang"]
