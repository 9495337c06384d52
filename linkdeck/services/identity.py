"""Adapter around the external identity provider.

The provider is consumed, not reimplemented: it signs credentials for users it
has authenticated, and it mints store access tokens from a named template
using the secret it shares with the store.
"""

from __future__ import annotations

from flask import current_app, session
from flask_login import UserMixin, current_user

from linkdeck.extensions import login_manager
from linkdeck.services.exceptions import IdentityError
from linkdeck.services.tokens import create_access_token, load_identity_credential


IDENTITY_PROFILE_KEY = "identity_profile"


class IdentityUser(UserMixin):
    def __init__(self, user_id: str, email: str | None = None, name: str | None = None):
        self.id = user_id
        self.email = email
        self.name = name

    @property
    def display_name(self) -> str:
        return self.name or self.email or self.id

    def as_dict(self):
        return {"id": self.id, "email": self.email, "name": self.name}


@login_manager.user_loader
def load_user(user_id: str):
    profile = session.get(IDENTITY_PROFILE_KEY) or {}
    if profile.get("id") != user_id:
        return IdentityUser(user_id)
    return IdentityUser(user_id, email=profile.get("email"), name=profile.get("name"))


class IdentityProvider:
    def authenticate(self, credential: str) -> IdentityUser:
        raise NotImplementedError

    def issue_token(self, user: IdentityUser, template: str) -> str:
        raise NotImplementedError

    def current_user(self) -> IdentityUser | None:
        if not current_user.is_authenticated:
            return None
        return current_user._get_current_object()

    def current_user_id(self) -> str | None:
        user = self.current_user()
        return user.id if user else None


class SignedCredentialIdentityProvider(IdentityProvider):
    def __init__(
        self,
        shared_secret: str,
        credential_max_age: int,
        token_secret: str | None,
        token_ttl_seconds: int,
    ):
        self.shared_secret = shared_secret
        self.credential_max_age = credential_max_age
        self.token_secret = token_secret
        self.token_ttl_seconds = token_ttl_seconds

    @classmethod
    def from_config(cls, config) -> "SignedCredentialIdentityProvider":
        return cls(
            shared_secret=config["IDENTITY_SHARED_SECRET"],
            credential_max_age=config["IDENTITY_CREDENTIAL_MAX_AGE"],
            token_secret=config.get("STORE_TOKEN_SECRET"),
            token_ttl_seconds=config["STORE_TOKEN_TTL_SECONDS"],
        )

    def authenticate(self, credential: str) -> IdentityUser:
        credential = (credential or "").strip()
        if not credential:
            raise IdentityError("Identity credential is required.")
        payload = load_identity_credential(
            self.shared_secret, credential, max_age=self.credential_max_age
        )
        if payload is None:
            raise IdentityError("Identity credential is invalid or expired.")
        return IdentityUser(
            str(payload["sub"]), email=payload.get("email"), name=payload.get("name")
        )

    def issue_token(self, user: IdentityUser, template: str) -> str:
        if not self.token_secret:
            raise IdentityError(f"No signing secret configured for template {template!r}.")
        return create_access_token(
            self.token_secret,
            user_id=user.id,
            template=template,
            ttl_seconds=self.token_ttl_seconds,
        )


def get_identity_provider() -> IdentityProvider:
    return current_app.extensions["identity_provider"]
