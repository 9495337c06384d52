"""Query-builder client for the bookmark store.

Every query is bound to a ``StoreSession`` and scoped to the rows owned by its
user. ``execute()`` reports failures as ``StoreResult(error=...)`` instead of
raising, so call sites decide how to surface them.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field

from flask import Flask, current_app, g
from sqlalchemy.exc import SQLAlchemyError

from linkdeck.extensions import db
from linkdeck.models import Bookmark, Category, User
from linkdeck.services.exceptions import StoreOperationError
from linkdeck.services.tokens import verify_access_token


TABLES = {
    "users": User,
    "categories": Category,
    "bookmarks": Bookmark,
}

# Column holding the owning user id for each table.
OWNER_COLUMNS = {
    "users": "id",
    "categories": "user_id",
    "bookmarks": "user_id",
}

READ_ONLY_COLUMNS = {"created_at"}


@dataclass(frozen=True)
class StoreSession:
    user_id: str
    access_token: str | None = None

    @property
    def has_token(self) -> bool:
        return bool(self.access_token)


@dataclass(frozen=True)
class StoreError:
    message: str
    code: str | None = None


@dataclass
class StoreResult:
    data: list | None = None
    error: StoreError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class CategoryRecord:
    id: int
    name: str
    user_id: str
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "CategoryRecord":
        return cls(
            id=row["id"],
            name=row["name"],
            user_id=row["user_id"],
            created_at=row.get("created_at"),
        )

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class BookmarkRecord:
    id: int
    url: str
    title: str
    category_id: int
    user_id: str
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "BookmarkRecord":
        return cls(
            id=row["id"],
            url=row["url"],
            title=row["title"],
            category_id=row["category_id"],
            user_id=row["user_id"],
            created_at=row.get("created_at"),
        )

    def as_dict(self):
        return asdict(self)


@dataclass
class Snapshot:
    categories: list[CategoryRecord] = field(default_factory=list)
    bookmarks: list[BookmarkRecord] = field(default_factory=list)


class _QueryError(Exception):
    def __init__(self, message: str, code: str):
        self.error = StoreError(message, code=code)
        super().__init__(message)


class Query:
    def __init__(self, client: "StoreClient", table: str, session: StoreSession | None):
        self._client = client
        self._table = table
        self._model = TABLES.get(table)
        self._session = session
        self._action = "select"
        self._values: list[dict] | dict | None = None
        self._filters: list[tuple[str, object]] = []

    def select(self) -> "Query":
        self._action = "select"
        return self

    def insert(self, rows) -> "Query":
        self._action = "insert"
        self._values = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def upsert(self, rows) -> "Query":
        self._action = "upsert"
        self._values = [rows] if isinstance(rows, dict) else list(rows)
        return self

    def update(self, values: dict) -> "Query":
        self._action = "update"
        self._values = dict(values)
        return self

    def delete(self) -> "Query":
        self._action = "delete"
        return self

    def eq(self, column: str, value) -> "Query":
        self._filters.append((column, value))
        return self

    def execute(self) -> StoreResult:
        try:
            if self._model is None:
                raise _QueryError(f"Unknown table {self._table!r}.", "unknown_table")
            self._client.authorize(self._session)
            for column, _ in self._filters:
                self._check_column(column)
            rows = getattr(self, f"_run_{self._action}")()
        except _QueryError as exc:
            self._client.rollback()
            self._client.log_error(self._table, self._action, exc.error)
            return StoreResult(error=exc.error)
        except SQLAlchemyError as exc:
            self._client.rollback()
            error = StoreError(str(getattr(exc, "orig", None) or exc), code="database")
            self._client.log_error(self._table, self._action, error)
            return StoreResult(error=error)
        return StoreResult(data=rows)

    @property
    def _owner_column(self) -> str:
        return OWNER_COLUMNS[self._table]

    def _check_column(self, column: str) -> None:
        if column not in self._model.__table__.columns:
            raise _QueryError(
                f"Unknown column {column!r} on table {self._table!r}.", "unknown_column"
            )

    def _check_writable(self, values: dict, allow_primary_key=False) -> None:
        for column in values:
            self._check_column(column)
            if column in READ_ONLY_COLUMNS:
                raise _QueryError(f"Column {column!r} is read-only.", "read_only_column")
            if column == "id" and not allow_primary_key and self._table != "users":
                raise _QueryError("Column 'id' is assigned by the store.", "read_only_column")

    def _scoped(self):
        model = self._model
        query = model.query.filter(
            getattr(model, self._owner_column) == self._session.user_id
        )
        for column, value in self._filters:
            query = query.filter(getattr(model, column) == value)
        return query.order_by(model.id.asc())

    def _owned(self, values: dict) -> dict:
        owned = dict(values)
        owned[self._owner_column] = self._session.user_id
        return owned

    def _run_select(self) -> list[dict]:
        return [row.as_dict() for row in self._scoped().all()]

    def _run_insert(self) -> list[dict]:
        rows = self._values or []
        for values in rows:
            self._check_writable(values)
        created = []
        for values in rows:
            row = self._model(**self._owned(values))
            db.session.add(row)
            created.append(row)
        db.session.flush()
        payload = [row.as_dict() for row in created]
        self._client.commit()
        return payload

    def _run_upsert(self) -> list[dict]:
        written = []
        for values in self._values or []:
            self._check_writable(values, allow_primary_key=True)
            values = self._owned(values)
            row = None
            if values.get("id") is not None:
                row = db.session.get(self._model, values["id"])
            if row is None:
                row = self._model(**values)
                db.session.add(row)
            elif getattr(row, self._owner_column) != self._session.user_id:
                raise _QueryError("Row belongs to another user.", "forbidden")
            else:
                for column, value in values.items():
                    setattr(row, column, value)
            written.append(row)
        db.session.flush()
        payload = [row.as_dict() for row in written]
        self._client.commit()
        return payload

    def _run_update(self) -> list[dict]:
        values = self._values or {}
        self._check_writable(values)
        if self._owner_column in values:
            raise _QueryError("Owner column cannot be changed.", "read_only_column")
        rows = self._scoped().all()
        for row in rows:
            for column, value in values.items():
                setattr(row, column, value)
        db.session.flush()
        payload = [row.as_dict() for row in rows]
        self._client.commit()
        return payload

    def _run_delete(self) -> list[dict]:
        rows = self._scoped().all()
        payload = [row.as_dict() for row in rows]
        for row in rows:
            db.session.delete(row)
        db.session.flush()
        self._client.commit()
        return payload


class StoreClient:
    def __init__(self, token_secret: str, token_max_age: int, token_template: str | None):
        self.token_secret = token_secret
        self.token_max_age = token_max_age
        self.token_template = token_template
        self._transaction_depth = 0

    @classmethod
    def from_app(cls, app: Flask | None = None) -> "StoreClient":
        config = (app or current_app).config
        return cls(
            token_secret=config["STORE_TOKEN_SECRET"],
            token_max_age=config["STORE_TOKEN_TTL_SECONDS"],
            token_template=config.get("STORE_TOKEN_TEMPLATE"),
        )

    def table(self, name: str, session: StoreSession | None) -> Query:
        return Query(self, name, session)

    @property
    def in_transaction(self) -> bool:
        return self._transaction_depth > 0

    def authorize(self, session: StoreSession | None) -> None:
        if session is None or not session.has_token:
            raise _QueryError("Missing access token.", "unauthorized")
        payload = verify_access_token(
            self.token_secret,
            session.access_token,
            max_age=self.token_max_age,
            expected_user_id=session.user_id,
            expected_template=self.token_template,
        )
        if payload is None:
            raise _QueryError("Access token is invalid or expired.", "unauthorized")

    def commit(self) -> None:
        if self.in_transaction:
            return
        db.session.commit()

    def rollback(self) -> None:
        # Inside a transaction the outermost block owns the rollback.
        if self.in_transaction:
            return
        db.session.rollback()

    @contextmanager
    def transaction(self):
        outermost = not self.in_transaction
        self._transaction_depth += 1
        try:
            yield self
            if outermost:
                db.session.commit()
        except Exception:
            if outermost:
                db.session.rollback()
            raise
        finally:
            self._transaction_depth -= 1

    def log_error(self, table: str, action: str, error: StoreError) -> None:
        current_app.logger.warning(
            "Store %s on %s failed (%s): %s", action, table, error.code, error.message
        )


def _records(result: StoreResult, record_type) -> StoreResult:
    if result.error:
        return result
    return StoreResult(data=[record_type.from_row(row) for row in result.data or []])


class BookmarkStore:
    """Typed accessors for the category and bookmark tables."""

    def __init__(self, client: StoreClient | None = None):
        self.client = client or StoreClient.from_app()

    def transaction(self):
        return self.client.transaction()

    def upsert_user(self, session: StoreSession) -> StoreResult:
        return self.client.table("users", session).upsert({"id": session.user_id}).execute()

    def list_categories(self, session: StoreSession) -> StoreResult:
        result = self.client.table("categories", session).select().execute()
        return _records(result, CategoryRecord)

    def list_bookmarks(self, session: StoreSession) -> StoreResult:
        result = self.client.table("bookmarks", session).select().execute()
        return _records(result, BookmarkRecord)

    def insert_category(self, session: StoreSession, name: str) -> StoreResult:
        result = self.client.table("categories", session).insert({"name": name}).execute()
        return _records(result, CategoryRecord)

    def insert_bookmark(
        self, session: StoreSession, url: str, title: str, category_id: int
    ) -> StoreResult:
        result = (
            self.client.table("bookmarks", session)
            .insert({"url": url, "title": title, "category_id": category_id})
            .execute()
        )
        return _records(result, BookmarkRecord)

    def update_category_name(
        self, session: StoreSession, category_id: int, name: str
    ) -> StoreResult:
        result = (
            self.client.table("categories", session)
            .update({"name": name})
            .eq("id", category_id)
            .execute()
        )
        return _records(result, CategoryRecord)

    def update_bookmark(
        self,
        session: StoreSession,
        bookmark_id: int,
        url: str,
        title: str,
        category_id: int,
    ) -> StoreResult:
        result = (
            self.client.table("bookmarks", session)
            .update({"url": url, "title": title, "category_id": category_id})
            .eq("id", bookmark_id)
            .execute()
        )
        return _records(result, BookmarkRecord)

    def delete_category(self, session: StoreSession, category_id: int) -> StoreResult:
        result = self.client.table("categories", session).delete().eq("id", category_id).execute()
        return _records(result, CategoryRecord)

    def delete_bookmark(self, session: StoreSession, bookmark_id: int) -> StoreResult:
        result = self.client.table("bookmarks", session).delete().eq("id", bookmark_id).execute()
        return _records(result, BookmarkRecord)

    def delete_bookmarks_in_category(
        self, session: StoreSession, category_id: int
    ) -> StoreResult:
        result = (
            self.client.table("bookmarks", session)
            .delete()
            .eq("category_id", category_id)
            .execute()
        )
        return _records(result, BookmarkRecord)

    def fetch_snapshot(self, session: StoreSession) -> Snapshot:
        app = current_app._get_current_object()
        if app.config.get("SNAPSHOT_CONCURRENT_READS", True):
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="snapshot") as executor:
                categories_future = executor.submit(
                    _read_in_app_context, app, "list_categories", session
                )
                bookmarks_future = executor.submit(
                    _read_in_app_context, app, "list_bookmarks", session
                )
                categories = categories_future.result()
                bookmarks = bookmarks_future.result()
        else:
            categories = self.list_categories(session)
            bookmarks = self.list_bookmarks(session)

        for result in (categories, bookmarks):
            if result.error:
                app.logger.error(
                    "Snapshot fetch for user %s failed: %s",
                    session.user_id,
                    result.error.message,
                )
                raise StoreOperationError(
                    result.error.message,
                    operation="fetch_snapshot",
                    code=result.error.code,
                )

        return Snapshot(categories=categories.data, bookmarks=bookmarks.data)


def _read_in_app_context(app: Flask, accessor: str, session: StoreSession) -> StoreResult:
    with app.app_context():
        store = BookmarkStore(StoreClient.from_app(app))
        return getattr(store, accessor)(session)


def get_store() -> BookmarkStore:
    if "bookmark_store" not in g:
        g.bookmark_store = BookmarkStore()
    return g.bookmark_store
