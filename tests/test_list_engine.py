from collections import Counter

import pytest

from tagmark.services.list_engine import (
    UNPINNED_RANK_OFFSET,
    arrange_for_ordering,
    commit_order,
    order_changed,
    present,
    rank_assignments,
    reorder,
)


def _bookmark(
    bookmark_id,
    title,
    tags=None,
    pinned=False,
    access_count=0,
    created_at="2024-01-01T00:00:00+00:00",
    custom_order=None,
):
    bookmark = {
        "id": bookmark_id,
        "title": title,
        "url": f"https://example.com/{bookmark_id}",
        "tags": list(tags or []),
        "isPinned": pinned,
        "createdAt": created_at,
        "updatedAt": created_at,
        "accessCount": access_count,
    }
    if custom_order is not None:
        bookmark["customOrder"] = custom_order
    return bookmark


def _titles(items):
    return [item["title"] for item in items]


@pytest.fixture
def library():
    return [
        _bookmark(1, "Go Guide", ["dev"], False, 5, "2024-03-01T00:00:00Z"),
        _bookmark(2, "Recipe", ["food"], False, 2, "2024-01-01T00:00:00Z"),
        _bookmark(3, "golang tips", ["dev", "go"], pinned=True, access_count=9),
        _bookmark(4, "Bread", ["food", "baking"], False, 7, "2024-02-01T00:00:00Z"),
        _bookmark(5, "Algorithms", [], pinned=True, access_count=1),
    ]


def test_search_example_returns_only_matching_title():
    bookmarks = [
        _bookmark(1, "Go Guide", ["dev"]),
        _bookmark(2, "Recipe", ["food"]),
    ]

    view = present(bookmarks, search_query="go")

    assert view.pinned == []
    assert _titles(view.unpinned) == ["Go Guide"]


def test_unfiltered_partition_keeps_every_bookmark_once(library):
    for sort_key in ("accessCount", "title", "createdAt", "custom"):
        for sort_order in ("asc", "desc"):
            view = present(library, "", [], sort_key, sort_order, False)
            returned = Counter(item["id"] for item in view.pinned + view.unpinned)
            assert returned == Counter(item["id"] for item in library)
            assert all(item["isPinned"] for item in view.pinned)
            assert not any(item["isPinned"] for item in view.unpinned)


def test_tag_filter_uses_or_semantics_and_is_monotonic(library):
    def count(tags):
        view = present(library, selected_tags=tags)
        return len(view.pinned) + len(view.unpinned)

    assert count(["dev"]) == 2
    assert count(["dev", "food"]) == 4
    assert count(["dev", "food", "unused"]) == 4
    assert count([]) == len(library)


def test_search_and_tags_must_both_match(library):
    view = present(library, search_query="go", selected_tags=["food"])
    assert view.pinned == [] and view.unpinned == []


def test_access_count_orders_reverse_each_other_without_ties(library):
    asc = present(library, sort_key="accessCount", sort_order="asc")
    desc = present(library, sort_key="accessCount", sort_order="desc")

    assert _titles(asc.unpinned) == ["Recipe", "Go Guide", "Bread"]
    assert _titles(desc.unpinned) == list(reversed(_titles(asc.unpinned)))
    assert _titles(desc.pinned) == list(reversed(_titles(asc.pinned)))


def test_title_sort_ignores_case(library):
    view = present(library, sort_key="title", sort_order="asc")
    assert _titles(view.pinned) == ["Algorithms", "golang tips"]
    assert _titles(view.unpinned) == ["Bread", "Go Guide", "Recipe"]


def test_created_at_sort_is_chronological(library):
    view = present(library, sort_key="createdAt", sort_order="asc")
    assert _titles(view.unpinned) == ["Recipe", "Bread", "Go Guide"]


def test_custom_sort_ignores_direction_and_treats_missing_rank_as_zero():
    bookmarks = [
        _bookmark(1, "third", custom_order=1002),
        _bookmark(2, "unranked"),
        _bookmark(3, "first", custom_order=1000),
    ]

    for order in ("asc", "desc"):
        view = present(bookmarks, sort_key="custom", sort_order=order)
        assert _titles(view.unpinned) == ["unranked", "first", "third"]


def test_ordering_mode_keeps_array_order_for_custom_sort():
    bookmarks = [
        _bookmark(1, "b", custom_order=1001),
        _bookmark(2, "a", custom_order=1000),
    ]

    view = present(bookmarks, sort_key="custom", ordering_mode_active=True)
    assert _titles(view.unpinned) == ["b", "a"]

    view = present(bookmarks, "", [], "title", "asc", ordering_mode_active=True)
    assert _titles(view.unpinned) == ["a", "b"]


def test_present_is_idempotent(library):
    first = present(library, "g", ["dev"], "title", "desc", False)
    second = present(library, "g", ["dev"], "title", "desc", False)
    assert first == second


def test_unknown_sort_key_is_rejected(library):
    with pytest.raises(ValueError):
        present(library, sort_key="popularity")


def test_commit_order_uses_two_tier_ranks():
    pinned_a = _bookmark("a", "A", pinned=True)
    pinned_b = _bookmark("b", "B", pinned=True)
    unpinned_c = _bookmark("c", "C")

    assert dict(commit_order([pinned_a, pinned_b, unpinned_c])) == {
        "a": 0,
        "b": 1,
        "c": UNPINNED_RANK_OFFSET,
    }


def test_commit_order_only_reports_changed_ranks():
    bookmarks = [
        _bookmark(1, "pinned", pinned=True, custom_order=0),
        _bookmark(2, "moved", custom_order=1001),
        _bookmark(3, "kept", custom_order=1001),
    ]

    assert commit_order(bookmarks) == [(2, 1000)]
    assert rank_assignments(bookmarks) == [(1, 0), (2, 1000), (3, 1001)]


def test_pinned_ranks_always_sort_before_unpinned_ranks():
    bookmarks = [_bookmark(i, f"u{i}") for i in range(3)]
    bookmarks += [_bookmark(10 + i, f"p{i}", pinned=True) for i in range(5)]

    ranks = dict(rank_assignments(bookmarks))
    assert max(ranks[10 + i] for i in range(5)) < min(ranks[i] for i in range(3))


def test_reorder_moves_within_section_and_keeps_hidden_items_in_place():
    bookmarks = [
        _bookmark(1, "dev one", ["dev"]),
        _bookmark(2, "hidden", ["food"]),
        _bookmark(3, "dev two", ["dev"]),
        _bookmark(4, "dev three", ["dev"]),
        _bookmark(5, "hidden too", ["food"]),
    ]

    result = reorder(bookmarks, 2, 0, False, selected_tags=["dev"])

    assert [b["id"] for b in result] == [4, 2, 1, 3, 5]
    assert result[1]["id"] == 2 and result[4]["id"] == 5


def test_reorder_in_pinned_section_leaves_unpinned_alone():
    bookmarks = [
        _bookmark(1, "p1", pinned=True),
        _bookmark(2, "u1"),
        _bookmark(3, "p2", pinned=True),
        _bookmark(4, "u2"),
    ]

    result = reorder(bookmarks, 0, 1, True)
    view = present(result, sort_key="custom", ordering_mode_active=True)

    assert _titles(view.pinned) == ["p2", "p1"]
    assert _titles(view.unpinned) == ["u1", "u2"]


def test_reorder_hidden_items_do_not_get_new_ranks():
    bookmarks = [
        _bookmark(1, "dev one", ["dev"], custom_order=1000),
        _bookmark(2, "hidden", ["food"], custom_order=1001),
        _bookmark(3, "dev two", ["dev"], custom_order=1002),
    ]

    result = reorder(bookmarks, 1, 0, False, selected_tags=["dev"])
    changed = dict(commit_order(result))

    assert 2 not in changed
    assert changed == {3: 1000, 1: 1002}


def test_reorder_rejects_out_of_range_indexes():
    bookmarks = [_bookmark(1, "only")]
    with pytest.raises(ValueError):
        reorder(bookmarks, 1, 0, False)
    with pytest.raises(ValueError):
        reorder(bookmarks, 0, 3, False)


def test_arrange_for_ordering_puts_visible_sorted_items_first(library):
    arranged = arrange_for_ordering(
        library, selected_tags=["food"], sort_key="title", sort_order="asc"
    )

    assert [b["id"] for b in arranged] == [4, 2, 1, 3, 5]
    assert order_changed(library, arranged)
    assert not order_changed(library, list(library))


def test_unparseable_created_at_sorts_as_oldest():
    bookmarks = [
        _bookmark(1, "dated", created_at="2024-01-01T00:00:00Z"),
        _bookmark(2, "broken", created_at="yesterday"),
    ]

    view = present(bookmarks, sort_key="createdAt", sort_order="asc")

    assert _titles(view.unpinned) == ["broken", "dated"]
