from __future__ import annotations

from flask import current_app, g, jsonify, request

from linkdeck.api import api_bp
from linkdeck.services.cascade import CategoryCascadeManager
from linkdeck.services.common import to_bool
from linkdeck.services.exceptions import IdentityError, LinkdeckError
from linkdeck.services.identity import get_identity_provider
from linkdeck.services.security import api_auth_required
from linkdeck.services.session_bridge import bridge_session
from linkdeck.services.store import get_store


def _json_error(message: str, status: int = 400):
    return jsonify({"ok": False, "error": message}), status


def _error_response(exc: LinkdeckError):
    return _json_error(exc.message, exc.status_code)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _load_manager() -> CategoryCascadeManager:
    return CategoryCascadeManager.load(get_store(), g.api_store_session)


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok"})


@api_bp.route("/auth/session", methods=["POST"])
def create_session():
    payload = _payload()
    credential = payload.get("credential") or request.form.get("credential") or ""
    identity = get_identity_provider()
    try:
        user = identity.authenticate(credential)
    except IdentityError as exc:
        return _error_response(exc)

    store_session = bridge_session(identity, user, get_store())
    if not store_session.has_token:
        return _json_error("Could not issue an access token.", 502)

    return jsonify(
        {
            "user": user.as_dict(),
            "access_token": store_session.access_token,
            "token_type": "bearer",
            "expires_in": current_app.config["STORE_TOKEN_TTL_SECONDS"],
        }
    )


@api_bp.route("/snapshot", methods=["GET"])
@api_auth_required()
def snapshot():
    try:
        manager = _load_manager()
    except LinkdeckError as exc:
        return _error_response(exc)

    return jsonify(
        {
            "categories": [row.as_dict() for row in manager.categories],
            "bookmarks": [row.as_dict() for row in manager.bookmarks],
            "grouped": {
                str(category_id): [row.id for row in rows]
                for category_id, rows in manager.grouped().items()
            },
        }
    )


@api_bp.route("/categories", methods=["GET"])
@api_auth_required()
def categories_list():
    result = get_store().list_categories(g.api_store_session)
    if result.error:
        return _json_error(result.error.message, 502)
    return jsonify({"items": [row.as_dict() for row in result.data]})


@api_bp.route("/categories", methods=["POST"])
@api_auth_required()
def categories_create():
    try:
        manager = _load_manager()
        category = manager.add_category(_payload().get("name"))
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify(category.as_dict()), 201


@api_bp.route("/categories/<int:category_id>", methods=["PATCH"])
@api_auth_required()
def categories_update(category_id: int):
    try:
        manager = _load_manager()
        manager.start_category_edit(category_id)
        category = manager.save_category_edit(_payload().get("name") or "")
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify(category.as_dict())


@api_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@api_auth_required()
def categories_delete(category_id: int):
    confirmed = to_bool(
        _payload().get("confirm_delete", request.args.get("confirm_delete"))
    )
    try:
        manager = _load_manager()
        result = manager.delete_category(category_id, confirmed=confirmed)
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify(
        {
            "ok": True,
            "deleted_category": result.category_id,
            "deleted_bookmarks": len(result.removed_bookmarks),
        }
    )


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required()
def bookmarks_list():
    result = get_store().list_bookmarks(g.api_store_session)
    if result.error:
        return _json_error(result.error.message, 502)
    return jsonify({"items": [row.as_dict() for row in result.data]})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required()
def bookmarks_create():
    payload = _payload()
    try:
        manager = _load_manager()
        bookmark = manager.add_bookmark(
            payload.get("url"), payload.get("title"), payload.get("category_id")
        )
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required()
def bookmarks_update(bookmark_id: int):
    payload = _payload()
    try:
        manager = _load_manager()
        manager.start_bookmark_edit(bookmark_id)
        bookmark = manager.save_bookmark_edit(
            url=payload.get("url"),
            title=payload.get("title"),
            category_id=payload.get("category_id"),
        )
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required()
def bookmarks_delete(bookmark_id: int):
    try:
        manager = _load_manager()
        deleted = manager.delete_bookmark(bookmark_id)
    except LinkdeckError as exc:
        return _error_response(exc)
    return jsonify({"ok": True, "deleted": deleted})
