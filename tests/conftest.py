import pytest

from linkdeck import create_app
from linkdeck.config import TestConfig
from linkdeck.extensions import db
from linkdeck.services.store import StoreSession
from linkdeck.services.tokens import create_access_token, create_identity_credential


@pytest.fixture
def app(tmp_path):
    # Snapshot reads run in worker threads, so each needs its own connection
    # to a shared file database.
    class FileDatabaseConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'linkdeck-test.db'}"

    app = create_app(FileDatabaseConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_store_session(app):
    def factory(user_id="user_alice", token=True):
        access_token = None
        if token:
            access_token = create_access_token(
                app.config["STORE_TOKEN_SECRET"],
                user_id=user_id,
                template=app.config["STORE_TOKEN_TEMPLATE"],
                ttl_seconds=app.config["STORE_TOKEN_TTL_SECONDS"],
            )
        return StoreSession(user_id=user_id, access_token=access_token)

    return factory


@pytest.fixture
def make_credential(app):
    def factory(user_id="user_alice", email=None, name=None):
        return create_identity_credential(
            app.config["IDENTITY_SHARED_SECRET"], user_id, email=email, name=name
        )

    return factory
