from functools import wraps

from flask import current_app, g, jsonify, request

from linkdeck.services.session_bridge import current_store_session
from linkdeck.services.store import StoreSession
from linkdeck.services.tokens import read_access_token_subject


def _session_from_bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    if not token:
        return None
    user_id = read_access_token_subject(
        current_app.config["STORE_TOKEN_SECRET"],
        token,
        max_age=current_app.config["STORE_TOKEN_TTL_SECONDS"],
    )
    if not user_id:
        return None
    return StoreSession(user_id=user_id, access_token=token)


def get_api_store_session(token_only=False):
    store_session = _session_from_bearer_token()
    if store_session or token_only:
        return store_session
    return current_store_session()


def api_auth_required(token_only=False):
    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            store_session = get_api_store_session(token_only=token_only)
            if not store_session:
                return jsonify({"error": "authentication required"}), 401
            g.api_store_session = store_session
            return func(*args, **kwargs)

        return wrapped

    return decorator
