import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'linkdeck.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    IDENTITY_SHARED_SECRET = os.environ.get(
        "IDENTITY_SHARED_SECRET", "default-identity-secret"
    )
    IDENTITY_CREDENTIAL_MAX_AGE = int(
        os.environ.get("IDENTITY_CREDENTIAL_MAX_AGE", "300")
    )
    STORE_TOKEN_SECRET = os.environ.get("STORE_TOKEN_SECRET", "default-store-secret")
    STORE_TOKEN_TEMPLATE = os.environ.get("STORE_TOKEN_TEMPLATE", "store")
    STORE_TOKEN_TTL_SECONDS = int(os.environ.get("STORE_TOKEN_TTL_SECONDS", "3600"))
    SNAPSHOT_CONCURRENT_READS = (
        os.environ.get("SNAPSHOT_CONCURRENT_READS", "1") == "1"
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    IDENTITY_SHARED_SECRET = "test-identity-secret"
    STORE_TOKEN_SECRET = "test-store-secret"
