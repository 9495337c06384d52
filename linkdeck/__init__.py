from flask import Flask

from linkdeck.api import api_bp
from linkdeck.auth import auth_bp
from linkdeck.config import Config
from linkdeck.extensions import db, login_manager, migrate
from linkdeck.services.identity import SignedCredentialIdentityProvider
from linkdeck.web import web_bp


def create_app(config_object=Config, identity_provider=None):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    app.extensions["identity_provider"] = (
        identity_provider or SignedCredentialIdentityProvider.from_config(app.config)
    )

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Linkdeck database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "Linkdeck"}

    with app.app_context():
        db.create_all()

    return app
