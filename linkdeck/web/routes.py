from __future__ import annotations

from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from linkdeck.services.cascade import CategoryCascadeManager
from linkdeck.services.common import bookmark_href, favicon_url, to_bool
from linkdeck.services.exceptions import LinkdeckError, StoreOperationError
from linkdeck.services.session_bridge import current_store_session
from linkdeck.services.store import get_store
from linkdeck.web import web_bp


@web_bp.app_context_processor
def inject_link_helpers():
    return {"bookmark_href": bookmark_href, "favicon_url": favicon_url}


def _load_manager() -> CategoryCascadeManager:
    manager = CategoryCascadeManager(get_store(), current_store_session())
    try:
        manager.refresh()
    except StoreOperationError as exc:
        flash(f"Error: {exc.message}", "error")
    return manager


def _manage_url(**params):
    return url_for("web.manage", **params)


@web_bp.route("/")
def dashboard():
    if not current_user.is_authenticated:
        return render_template("index.html", app_name="Linkdeck", manager=None)

    manager = _load_manager()
    return render_template(
        "index.html",
        app_name="Linkdeck",
        manager=manager,
        categories=manager.categories,
        grouped=manager.grouped(),
        load_failed=not manager.loaded,
    )


@web_bp.route("/bookmarks/edit")
@login_required
def manage():
    manager = _load_manager()
    edit_bookmark_id = request.args.get("edit_bookmark", type=int)
    edit_category_id = request.args.get("edit_category", type=int)
    try:
        if edit_bookmark_id:
            manager.start_bookmark_edit(edit_bookmark_id)
        if edit_category_id:
            manager.start_category_edit(edit_category_id)
    except LinkdeckError as exc:
        flash(exc.message, "error")

    return render_template(
        "manage.html",
        app_name="Linkdeck",
        manager=manager,
        categories=manager.categories,
        grouped=manager.grouped(),
        bookmark_edit=manager.bookmark_edit,
        category_edit=manager.category_edit,
    )


@web_bp.route("/categories", methods=["POST"])
@login_required
def categories_create():
    manager = _load_manager()
    try:
        category = manager.add_category(request.form.get("name"))
    except LinkdeckError as exc:
        flash(exc.message, "error")
    else:
        flash(f"Category {category.name!r} added.", "success")
    return redirect(_manage_url())


@web_bp.route("/categories/<int:category_id>/rename", methods=["POST"])
@login_required
def categories_rename(category_id: int):
    manager = _load_manager()
    try:
        manager.start_category_edit(category_id)
        manager.save_category_edit(request.form.get("name") or "")
    except LinkdeckError as exc:
        flash(exc.message, "error")
        return redirect(_manage_url(edit_category=category_id))
    flash("Category updated.", "success")
    return redirect(_manage_url())


@web_bp.route("/categories/<int:category_id>/delete", methods=["POST"])
@login_required
def categories_delete(category_id: int):
    manager = _load_manager()
    try:
        result = manager.delete_category(
            category_id, confirmed=to_bool(request.form.get("confirm_delete"))
        )
    except LinkdeckError as exc:
        flash(exc.message, "error")
    else:
        flash(
            f"Category and its {len(result.removed_bookmarks)} bookmarks deleted.",
            "success",
        )
    return redirect(_manage_url())


@web_bp.route("/bookmarks", methods=["POST"])
@login_required
def bookmarks_create():
    manager = _load_manager()
    try:
        manager.add_bookmark(
            request.form.get("url"),
            request.form.get("title"),
            request.form.get("category_id"),
        )
    except LinkdeckError as exc:
        flash(exc.message, "error")
    else:
        flash("Bookmark added.", "success")
    return redirect(_manage_url())


@web_bp.route("/bookmarks/<int:bookmark_id>/edit", methods=["POST"])
@login_required
def bookmarks_edit(bookmark_id: int):
    manager = _load_manager()
    try:
        manager.start_bookmark_edit(bookmark_id)
        manager.save_bookmark_edit(
            url=request.form.get("url") or "",
            title=request.form.get("title") or "",
            category_id=request.form.get("category_id") or "",
        )
    except LinkdeckError as exc:
        flash(exc.message, "error")
        return redirect(_manage_url(edit_bookmark=bookmark_id))
    flash("Bookmark updated.", "success")
    return redirect(_manage_url())


@web_bp.route("/bookmarks/<int:bookmark_id>/delete", methods=["POST"])
@login_required
def bookmarks_delete(bookmark_id: int):
    manager = _load_manager()
    try:
        removed = manager.delete_bookmark(bookmark_id)
    except LinkdeckError as exc:
        flash(f"Error: {exc.message}", "error")
    else:
        if removed:
            flash("Bookmark deleted.", "success")
        else:
            flash("Bookmark was already removed.", "info")
    return redirect(_manage_url())
