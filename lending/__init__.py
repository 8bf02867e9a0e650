import atexit

from flask import Flask, jsonify

from lending.config import Config
from lending.extensions import db, jwt, migrate


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # 1) db first: models and repositories need db.session
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # 2) register models with the metadata
    from lending import models  # noqa: F401

    # 3) API blueprints
    from lending.controllers.book_controller import book_bp
    from lending.controllers.borrow_controller import borrow_bp
    from lending.controllers.sweep_controller import sweep_bp
    app.register_blueprint(borrow_bp, url_prefix="/borrows")
    app.register_blueprint(book_bp, url_prefix="/books")
    app.register_blueprint(sweep_bp, url_prefix="/sweeper")

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    from lending.cli import register_commands
    register_commands(app)

    # Scheduler (expiry sweep)
    from lending.tasks.scheduler import start_scheduler, stop_scheduler
    if start_scheduler(app):
        atexit.register(stop_scheduler, app)

    return app
