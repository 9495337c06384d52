from types import SimpleNamespace

from linkdeck.services.cascade import group_bookmarks
from linkdeck.services.common import bookmark_href, favicon_url


def _category(category_id):
    return SimpleNamespace(id=category_id)


def _bookmark(bookmark_id, category_id):
    return SimpleNamespace(id=bookmark_id, category_id=category_id)


def test_grouping_preserves_relative_order():
    bookmarks = [
        _bookmark(10, 1),
        _bookmark(11, 2),
        _bookmark(12, 1),
        _bookmark(13, 1),
    ]

    grouped = group_bookmarks([_category(1), _category(2)], bookmarks)

    assert [row.id for row in grouped[1]] == [10, 12, 13]
    assert [row.id for row in grouped[2]] == [11]


def test_grouping_has_key_for_empty_categories():
    grouped = group_bookmarks([_category(1), _category(2)], [_bookmark(10, 1)])

    assert grouped[2] == []
    assert set(grouped) == {1, 2}


def test_grouping_ignores_bookmarks_of_unknown_categories():
    grouped = group_bookmarks([_category(1)], [_bookmark(10, 7)])

    assert grouped == {1: []}


def test_grouping_with_no_categories_is_empty():
    assert group_bookmarks([], [_bookmark(10, 1)]) == {}


def test_bookmark_href_prefixes_scheme_when_missing():
    assert bookmark_href("a.com") == "https://a.com"
    assert bookmark_href("http://a.com") == "http://a.com"
    assert bookmark_href("https://a.com/x") == "https://a.com/x"


def test_favicon_url_uses_bookmark_url_as_domain():
    assert favicon_url("a.com") == "https://www.google.com/s2/favicons?domain=a.com&sz=32"
    assert favicon_url("") == "https://www.google.com/s2/favicons?domain=example.com&sz=32"
