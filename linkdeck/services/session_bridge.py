from __future__ import annotations

from flask import current_app, g, session

from linkdeck.services.exceptions import IdentityError
from linkdeck.services.identity import IdentityProvider, IdentityUser, get_identity_provider
from linkdeck.services.store import BookmarkStore, StoreSession, get_store
from linkdeck.services.tokens import verify_access_token


STORE_TOKEN_KEY = "store_access_token"
STORE_USER_KEY = "store_user_id"


def bridge_session(
    identity: IdentityProvider, user: IdentityUser, store: BookmarkStore
) -> StoreSession:
    """Exchange an identity-provider user for a store session.

    Fails open: a token or upsert failure is logged and the caller still gets a
    session, which may carry no token. Store calls made with such a session
    return an "unauthorized" error instead of data.
    """
    template = current_app.config["STORE_TOKEN_TEMPLATE"]
    try:
        token = identity.issue_token(user, template=template)
    except IdentityError as exc:
        current_app.logger.warning(
            "Could not issue %s token for user %s: %s", template, user.id, exc.message
        )
        return StoreSession(user_id=user.id, access_token=None)

    store_session = StoreSession(user_id=user.id, access_token=token)
    result = store.upsert_user(store_session)
    if result.error:
        current_app.logger.warning(
            "Could not save user %s to the store: %s", user.id, result.error.message
        )
    else:
        current_app.logger.info("User %s synced to the store.", user.id)
    return store_session


def install_session(store_session: StoreSession) -> None:
    session[STORE_USER_KEY] = store_session.user_id
    session[STORE_TOKEN_KEY] = store_session.access_token


def clear_session() -> None:
    session.pop(STORE_USER_KEY, None)
    session.pop(STORE_TOKEN_KEY, None)


def _has_usable_token(user_id: str) -> bool:
    token = session.get(STORE_TOKEN_KEY)
    if session.get(STORE_USER_KEY) != user_id or not token:
        return False
    config = current_app.config
    payload = verify_access_token(
        config["STORE_TOKEN_SECRET"],
        token,
        max_age=config["STORE_TOKEN_TTL_SECONDS"],
        expected_user_id=user_id,
        expected_template=config.get("STORE_TOKEN_TEMPLATE"),
    )
    return payload is not None


def current_store_session() -> StoreSession | None:
    """Return the store session for the signed-in user.

    Bridges again when the user changed or the installed token is missing or
    expired.
    """
    if "api_store_session" in g:
        return g.api_store_session

    identity = get_identity_provider()
    user = identity.current_user()
    if user is None:
        return None

    if not _has_usable_token(user.id):
        install_session(bridge_session(identity, user, get_store()))

    return StoreSession(user_id=user.id, access_token=session.get(STORE_TOKEN_KEY))
