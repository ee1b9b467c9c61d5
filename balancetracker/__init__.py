import logging

from flask import Flask, redirect, url_for
from .extensions import db, migrate, login_manager
from .config import Config
from .export import format_month

from .blueprints.auth.routes import auth_bp
from .blueprints.accounts.routes import accounts_bp
from .blueprints.balances.routes import balances_bp
from .blueprints.dashboard.routes import dashboard_bp
from .blueprints.income.routes import income_bp
from .blueprints.settings.routes import settings_bp


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # Ensure tables exist for a smooth first run
    with app.app_context():
        from . import models  # noqa: F401
        db.create_all()

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(accounts_bp)
    app.register_blueprint(balances_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(income_bp)
    app.register_blueprint(settings_bp)

    @app.route("/")
    def root():
        return redirect(url_for("dashboard.index"))

    app.add_template_filter(format_month, "month")

    @app.template_filter("money")
    def money_filter(value):
        if value is None:
            return "-"
        return f"{value:,.2f}"

    return app
