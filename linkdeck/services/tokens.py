from __future__ import annotations

from datetime import datetime, timezone

from itsdangerous import BadData, URLSafeTimedSerializer


IDENTITY_CREDENTIAL_SALT = "identity-credential"
STORE_ACCESS_SALT = "store-access"


def _serializer(secret_key: str, salt: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt=salt)


def create_access_token(
    secret_key: str,
    user_id: str,
    template: str,
    ttl_seconds: int,
) -> str:
    serializer = _serializer(secret_key, STORE_ACCESS_SALT)
    payload = {
        "sub": user_id,
        "role": "authenticated",
        "template": template,
        "issued_at": int(datetime.now(timezone.utc).timestamp()),
        "ttl": ttl_seconds,
    }
    return serializer.dumps(payload)


def verify_access_token(
    secret_key: str,
    token: str,
    max_age: int,
    expected_user_id: str,
    expected_template: str | None = None,
) -> dict | None:
    serializer = _serializer(secret_key, STORE_ACCESS_SALT)
    try:
        payload = serializer.loads(token, max_age=max_age)
    except BadData:
        return None

    if payload.get("sub") != expected_user_id:
        return None
    if expected_template and payload.get("template") != expected_template:
        return None
    return payload


def read_access_token_subject(secret_key: str, token: str, max_age: int) -> str | None:
    serializer = _serializer(secret_key, STORE_ACCESS_SALT)
    try:
        payload = serializer.loads(token, max_age=max_age)
    except BadData:
        return None
    subject = payload.get("sub")
    return subject if isinstance(subject, str) and subject else None


def create_identity_credential(
    secret_key: str,
    user_id: str,
    email: str | None = None,
    name: str | None = None,
) -> str:
    serializer = _serializer(secret_key, IDENTITY_CREDENTIAL_SALT)
    return serializer.dumps({"sub": user_id, "email": email, "name": name})


def load_identity_credential(secret_key: str, credential: str, max_age: int) -> dict | None:
    serializer = _serializer(secret_key, IDENTITY_CREDENTIAL_SALT)
    try:
        payload = serializer.loads(credential, max_age=max_age)
    except BadData:
        return None
    if not isinstance(payload, dict) or not payload.get("sub"):
        return None
    return payload
