"""Flask application factory."""
import logging

from flask import Flask
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def create_app(config_name: str = "default", config_overrides: dict = None, transport=None):
    """Create and configure the Flask application.

    Args:
        config_name: Key into ``kitchen_print.config.config``
        config_overrides: Values applied on top of the config class
        transport: Optional httpx transport for cloud print requests
    """
    app = Flask(__name__)

    # Load configuration
    from kitchen_print.config import config
    app.config.from_object(config[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)

    # Initialize extensions
    db.init_app(app)

    from kitchen_print.service import KitchenPrintService
    app.extensions["kitchen_print"] = KitchenPrintService(app.config, transport=transport)

    # Register blueprints
    from kitchen_print.routes.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api/kitchen-printing")

    # Root redirect
    @app.route("/")
    def index():
        from flask import redirect, url_for
        return redirect(url_for("api.status"))

    # Create tables
    with app.app_context():
        from kitchen_print import models  # noqa: F401
        db.create_all()

    return app
