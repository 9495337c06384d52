"""In-memory category/bookmark state and the operations that mutate it.

The lists held by ``CategoryCascadeManager`` are only patched from rows the
store returned; ``refresh()`` replaces both lists from a fresh snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from linkdeck.services.exceptions import (
    CascadeDeleteError,
    ConfirmationRequired,
    NotFoundError,
    StoreOperationError,
    ValidationError,
)
from linkdeck.services.store import (
    BookmarkRecord,
    BookmarkStore,
    CategoryRecord,
    StoreResult,
    StoreSession,
)


@dataclass
class BookmarkEditSession:
    bookmark_id: int
    url: str = ""
    title: str = ""
    category_id: int | None = None

    def missing_fields(self) -> list[str]:
        missing = []
        if not (self.url or "").strip():
            missing.append("url")
        if not (self.title or "").strip():
            missing.append("title")
        if not self.category_id:
            missing.append("category_id")
        return missing


@dataclass
class CategoryEditSession:
    category_id: int
    name: str = ""


@dataclass(frozen=True)
class CascadeResult:
    category_id: int
    removed_bookmarks: list[BookmarkRecord]


def group_bookmarks(categories, bookmarks) -> dict[int, list]:
    """Map every category id to its bookmarks, keeping their original order."""
    return {
        category.id: [
            bookmark for bookmark in bookmarks if bookmark.category_id == category.id
        ]
        for category in categories
    }


def _parse_category_id(value) -> int | None:
    if value in (None, ""):
        return None
    try:
        category_id = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Category is invalid.")
    return category_id or None


class CategoryCascadeManager:
    def __init__(
        self,
        store: BookmarkStore,
        session: StoreSession,
        categories: list[CategoryRecord] | None = None,
        bookmarks: list[BookmarkRecord] | None = None,
    ):
        self.store = store
        self.session = session
        self.categories: list[CategoryRecord] = list(categories or [])
        self.bookmarks: list[BookmarkRecord] = list(bookmarks or [])
        self.bookmark_edit: BookmarkEditSession | None = None
        self.category_edit: CategoryEditSession | None = None
        self.loaded = False

    @classmethod
    def load(cls, store: BookmarkStore, session: StoreSession) -> "CategoryCascadeManager":
        manager = cls(store, session)
        manager.refresh()
        return manager

    def refresh(self) -> None:
        snapshot = self.store.fetch_snapshot(self.session)
        self.categories = snapshot.categories
        self.bookmarks = snapshot.bookmarks
        self.loaded = True

    def grouped(self) -> dict[int, list[BookmarkRecord]]:
        return group_bookmarks(self.categories, self.bookmarks)

    def get_category(self, category_id: int) -> CategoryRecord | None:
        return next((row for row in self.categories if row.id == category_id), None)

    def get_bookmark(self, bookmark_id: int) -> BookmarkRecord | None:
        return next((row for row in self.bookmarks if row.id == bookmark_id), None)

    def _require_own_category(self, category_id: int) -> None:
        if self.get_category(category_id) is None:
            raise ValidationError("Choose one of your categories.")

    def _unwrap(self, result: StoreResult, operation: str) -> list:
        if result.error:
            current_app.logger.error(
                "%s failed for user %s: %s",
                operation,
                self.session.user_id,
                result.error.message,
            )
            raise StoreOperationError(
                result.error.message, operation=operation, code=result.error.code
            )
        return result.data or []

    def add_category(self, name: str) -> CategoryRecord:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name is required.")
        rows = self._unwrap(self.store.insert_category(self.session, name), "insert_category")
        self.categories.extend(rows)
        return rows[0]

    def add_bookmark(self, url: str, title: str, category_id) -> BookmarkRecord:
        url = (url or "").strip()
        title = (title or "").strip()
        category_id = _parse_category_id(category_id)
        if not url or not title or not category_id:
            raise ValidationError("All fields are required.")
        self._require_own_category(category_id)
        rows = self._unwrap(
            self.store.insert_bookmark(self.session, url, title, category_id),
            "insert_bookmark",
        )
        self.bookmarks.extend(rows)
        return rows[0]

    def delete_category(self, category_id: int, confirmed: bool = False) -> CascadeResult:
        if not confirmed:
            raise ConfirmationRequired(
                "Confirm deleting this category and all its bookmarks."
            )

        try:
            with self.store.transaction():
                removed = self.store.delete_bookmarks_in_category(self.session, category_id)
                if removed.error:
                    raise CascadeDeleteError(
                        f"Error deleting bookmarks: {removed.error.message}", step="bookmarks"
                    )
                deleted = self.store.delete_category(self.session, category_id)
                if deleted.error:
                    raise CascadeDeleteError(
                        f"Error deleting category: {deleted.error.message}", step="category"
                    )
                if not deleted.data:
                    raise NotFoundError("Category not found.")
        except CascadeDeleteError as exc:
            current_app.logger.error(
                "Cascade delete of category %s rolled back at step %s: %s",
                category_id,
                exc.step,
                exc.message,
            )
            raise
        except SQLAlchemyError as exc:
            current_app.logger.error(
                "Cascade delete of category %s failed to commit: %s", category_id, exc
            )
            raise CascadeDeleteError("Error deleting category.", step="commit") from exc

        removed_ids = {row.id for row in removed.data}
        self.categories = [row for row in self.categories if row.id != category_id]
        self.bookmarks = [
            row
            for row in self.bookmarks
            if row.id not in removed_ids and row.category_id != category_id
        ]
        if self.category_edit and self.category_edit.category_id == category_id:
            self.category_edit = None
        if self.bookmark_edit and self.bookmark_edit.bookmark_id in removed_ids:
            self.bookmark_edit = None

        current_app.logger.info(
            "Deleted category %s with %d bookmarks for user %s.",
            category_id,
            len(removed_ids),
            self.session.user_id,
        )
        return CascadeResult(category_id=category_id, removed_bookmarks=removed.data)

    def delete_bookmark(self, bookmark_id: int) -> bool:
        rows = self._unwrap(
            self.store.delete_bookmark(self.session, bookmark_id), "delete_bookmark"
        )
        if not rows:
            return False
        self.bookmarks = [row for row in self.bookmarks if row.id != bookmark_id]
        if self.bookmark_edit and self.bookmark_edit.bookmark_id == bookmark_id:
            self.bookmark_edit = None
        return True

    def start_bookmark_edit(self, bookmark_id: int) -> BookmarkEditSession:
        bookmark = self.get_bookmark(bookmark_id)
        if bookmark is None:
            raise NotFoundError("Bookmark not found.")
        self.bookmark_edit = BookmarkEditSession(
            bookmark_id=bookmark.id,
            url=bookmark.url,
            title=bookmark.title,
            category_id=bookmark.category_id,
        )
        return self.bookmark_edit

    def cancel_bookmark_edit(self) -> None:
        self.bookmark_edit = None

    def save_bookmark_edit(self, url=None, title=None, category_id=None) -> BookmarkRecord:
        edit = self.bookmark_edit
        if edit is None:
            raise ValidationError("All fields are required.")

        pending = replace(
            edit,
            url=edit.url if url is None else str(url).strip(),
            title=edit.title if title is None else str(title).strip(),
            category_id=(
                edit.category_id if category_id is None else _parse_category_id(category_id)
            ),
        )
        # Typed values survive a failed save.
        self.bookmark_edit = pending
        if pending.missing_fields():
            raise ValidationError("All fields are required.")
        self._require_own_category(pending.category_id)

        rows = self._unwrap(
            self.store.update_bookmark(
                self.session,
                pending.bookmark_id,
                pending.url,
                pending.title,
                pending.category_id,
            ),
            "update_bookmark",
        )
        if not rows:
            raise NotFoundError("Bookmark not found.")

        updated = rows[0]
        self.bookmarks = [
            updated if row.id == updated.id else row for row in self.bookmarks
        ]
        self.bookmark_edit = None
        return updated

    def start_category_edit(self, category_id: int) -> CategoryEditSession:
        category = self.get_category(category_id)
        if category is None:
            raise NotFoundError("Category not found.")
        self.category_edit = CategoryEditSession(category_id=category.id, name=category.name)
        return self.category_edit

    def cancel_category_edit(self) -> None:
        self.category_edit = None

    def save_category_edit(self, name=None) -> CategoryRecord:
        edit = self.category_edit
        if edit is None:
            raise ValidationError("All fields are required.")
        if name is not None:
            edit.name = str(name).strip()
        if not edit.name or not edit.category_id:
            raise ValidationError("All fields are required.")

        rows = self._unwrap(
            self.store.update_category_name(self.session, edit.category_id, edit.name),
            "update_category_name",
        )
        if not rows:
            raise NotFoundError("Category not found.")

        updated = rows[0]
        self.categories = [
            updated if row.id == updated.id else row for row in self.categories
        ]
        self.category_edit = None
        return updated
