import logging

from flask import Flask

from bookmarkly.api import api_bp
from bookmarkly.auth import auth_bp
from bookmarkly.backend import create_backend
from bookmarkly.config import Config
from bookmarkly.extensions import db, login_manager, migrate
from bookmarkly.jobs.scheduler import start_scheduler
from bookmarkly.services.app_context import AppServices, close_session_accessor
from bookmarkly.services.workspace import WorkspaceRegistry
from bookmarkly.web import web_bp


def create_app(config_object=Config, providers=None):
    app = Flask(__name__, template_folder="../templates", static_folder="../static")
    app.config.from_object(config_object)
    logging.getLogger("bookmarkly").setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    backend = create_backend(app.config, providers=providers)
    app.extensions["bookmarkly"] = AppServices(
        backend=backend, workspaces=WorkspaceRegistry(backend)
    )
    app.teardown_appcontext(close_session_accessor)

    app.register_blueprint(auth_bp)
    app.register_blueprint(web_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized Bookmarkly database.")

    @app.context_processor
    def inject_globals():
        return {"app_name": "Bookmarkly"}

    with app.app_context():
        db.create_all()

    start_scheduler(app)
    return app
