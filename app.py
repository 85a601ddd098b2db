from flask import Flask, jsonify
from dotenv import load_dotenv
import os
import logging
from logging.handlers import RotatingFileHandler
from extensions import db
from services import LocalStorageService, HostelService
from services.seed_data import seed_initial_data

# Setup Flask
load_dotenv()


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def create_app(test_config=None):
    app = Flask(__name__)
    app.config['SECRET_KEY'] = os.getenv("SECRET_KEY", "secret_key")
    app.config['SQLALCHEMY_DATABASE_URI'] = os.getenv("DATABASE_URL", "sqlite:///hostel_warden.db")
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False

    # Namespace for the stored collections, e.g. hostelWarden_rooms
    app.config["STORAGE_NAMESPACE"] = os.getenv("STORAGE_NAMESPACE", "hostelWarden")
    app.config["SEED_ON_STARTUP"] = _env_flag("SEED_ON_STARTUP", True)
    app.config["LOG_DIR"] = os.getenv("LOG_DIR", os.path.join(os.path.dirname(__file__), "logs"))

    if test_config:
        app.config.update(test_config)

    # Logging
    if not app.testing:
        os.makedirs(app.config["LOG_DIR"], exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(app.config["LOG_DIR"], "hostel_warden.log"), maxBytes=1024 * 1024, backupCount=5
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)
        root_logger.setLevel(logging.INFO)

    # Database
    db.init_app(app)

    store = LocalStorageService(app.config["STORAGE_NAMESPACE"])
    app.extensions["hostel_store"] = store
    app.extensions["hostel_service"] = HostelService(store)

    # Import models after db is initialised
    import models  # noqa: F401

    # Import blueprints
    from blueprints.admin.routes import admin_bp
    app.register_blueprint(admin_bp, url_prefix="/admin")

    @app.route("/")
    def home():
        return jsonify({"app": "hostel-warden", "initialized": store.is_initialized()})

    with app.app_context():
        db.create_all()
        if app.config["SEED_ON_STARTUP"] and seed_initial_data(store):
            app.logger.info("Seeded initial hostel data")

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
