from flask import Flask

from tagmark.api import api_bp
from tagmark.auth import auth_bp
from tagmark.config import Config
from tagmark.extensions import db, login_manager, migrate
from tagmark.schema_migrations import ensure_added_columns


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        added = ensure_added_columns()
        print(f"Initialized Tagmark database ({len(added)} columns added).")

    with app.app_context():
        db.create_all()
        ensure_added_columns()

    return app
