import pytest

from linkdeck.extensions import db
from linkdeck.models import Bookmark, Category, User
from linkdeck.services.exceptions import StoreOperationError
from linkdeck.services.store import (
    BookmarkStore,
    StoreError,
    StoreResult,
    StoreSession,
)


def _seed_user(store, session):
    result = store.upsert_user(session)
    assert result.ok
    return result


def test_upsert_user_creates_row_once(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        _seed_user(store, session)

        assert User.query.count() == 1
        assert db.session.get(User, "user_alice") is not None


def test_query_without_access_token_touches_no_data(app, make_store_session):
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, make_store_session("user_alice"))

        result = store.insert_category(make_store_session("user_alice", token=False), "Work")

        assert result.data is None
        assert result.error.code == "unauthorized"
        assert Category.query.count() == 0


def test_access_token_must_belong_to_session_user(app, make_store_session):
    alice = make_store_session("user_alice")
    forged = StoreSession(user_id="user_bob", access_token=alice.access_token)
    with app.app_context():
        result = BookmarkStore().list_categories(forged)

    assert result.error.code == "unauthorized"


def test_tampered_access_token_is_rejected(app, make_store_session):
    session = make_store_session("user_alice")
    tampered = StoreSession(user_id="user_alice", access_token=session.access_token + "x")
    with app.app_context():
        result = BookmarkStore().list_bookmarks(tampered)

    assert result.error.code == "unauthorized"


def test_insert_stamps_owner_and_returns_rows(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)

        result = (
            store.client.table("categories", session)
            .insert({"name": "Work", "user_id": "user_mallory"})
            .execute()
        )

        assert result.ok
        assert result.data[0]["user_id"] == "user_alice"
        assert result.data[0]["id"] is not None
        assert Category.query.one().user_id == "user_alice"


def test_reads_and_writes_are_scoped_to_session_user(app, make_store_session):
    alice = make_store_session("user_alice")
    bob = make_store_session("user_bob")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, alice)
        _seed_user(store, bob)
        alice_category = store.insert_category(alice, "Alice").data[0]
        bob_category = store.insert_category(bob, "Bob").data[0]
        store.insert_bookmark(bob, "bob.example", "Bob", bob_category.id)

        listed = store.list_categories(alice)
        assert [row.name for row in listed.data] == ["Alice"]
        assert store.list_bookmarks(alice).data == []

        renamed = store.update_category_name(alice, bob_category.id, "Hijacked")
        assert renamed.ok
        assert renamed.data == []

        deleted = store.delete_bookmarks_in_category(alice, bob_category.id)
        assert deleted.data == []

        assert db.session.get(Category, bob_category.id).name == "Bob"
        assert Bookmark.query.filter_by(user_id="user_bob").count() == 1
        assert db.session.get(Category, alice_category.id).name == "Alice"


def test_unknown_table_and_column_return_errors(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()

        unknown_table = store.client.table("folders", session).select().execute()
        unknown_column = (
            store.client.table("bookmarks", session).select().eq("folder_id", 1).execute()
        )
        read_only = (
            store.client.table("categories", session)
            .insert({"name": "Work", "created_at": "2024-01-01"})
            .execute()
        )

    assert unknown_table.error.code == "unknown_table"
    assert unknown_column.error.code == "unknown_column"
    assert read_only.error.code == "read_only_column"


def test_update_returns_changed_rows(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        work = store.insert_category(session, "Work").data[0]
        home = store.insert_category(session, "Home").data[0]
        bookmark = store.insert_bookmark(session, "a.com", "A", work.id).data[0]

        result = store.update_bookmark(session, bookmark.id, "b.com", "B", home.id)

        assert result.ok
        updated = result.data[0]
        assert (updated.id, updated.url, updated.title, updated.category_id) == (
            bookmark.id,
            "b.com",
            "B",
            home.id,
        )


def test_transaction_rolls_back_every_step_on_error(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        category = store.insert_category(session, "Work").data[0]
        store.insert_bookmark(session, "a.com", "A", category.id)

        with pytest.raises(RuntimeError):
            with store.transaction():
                removed = store.delete_bookmarks_in_category(session, category.id)
                assert len(removed.data) == 1
                raise RuntimeError("second step failed")

        assert Bookmark.query.count() == 1


def test_snapshot_reads_both_collections(app, make_store_session):
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        category = store.insert_category(session, "Work").data[0]
        store.insert_bookmark(session, "a.com", "A", category.id)
        store.insert_bookmark(session, "b.com", "B", category.id)

        snapshot = store.fetch_snapshot(session)

    assert [row.name for row in snapshot.categories] == ["Work"]
    assert [row.title for row in snapshot.bookmarks] == ["A", "B"]


def test_snapshot_sequential_reads_match_concurrent_reads(app, make_store_session):
    app.config["SNAPSHOT_CONCURRENT_READS"] = False
    session = make_store_session("user_alice")
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        store.insert_category(session, "Work")

        snapshot = store.fetch_snapshot(session)

    assert [row.name for row in snapshot.categories] == ["Work"]
    assert snapshot.bookmarks == []


def test_snapshot_fails_when_either_read_fails(app, make_store_session, monkeypatch):
    session = make_store_session("user_alice")
    monkeypatch.setattr(
        BookmarkStore,
        "list_bookmarks",
        lambda self, session: StoreResult(error=StoreError("timeout", code="database")),
    )
    with app.app_context():
        store = BookmarkStore()
        _seed_user(store, session)
        store.insert_category(session, "Work")

        with pytest.raises(StoreOperationError) as excinfo:
            store.fetch_snapshot(session)

    assert excinfo.value.message == "timeout"
    assert excinfo.value.operation == "fetch_snapshot"
