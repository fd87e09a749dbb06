import logging
import os

import click
from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .api import register_blueprints
from .config import Config
from .covers import CoverImageProcessor
from .db import init_db
from .errors import LibraryError
from .models import Base
from .schemas import validation_details
from .storage import LocalFileStorage

logger = logging.getLogger(__name__)


def create_app(overrides=None):
    app = Flask(__name__, static_folder=None)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"])
    CORS(app, origins=app.config["CORS_ORIGINS"])

    # ---------------------------------------------------------
    # DB + cover storage
    # ---------------------------------------------------------
    init_db(app)

    storage = LocalFileStorage(app.config["UPLOAD_PATH"])
    app.extensions["library_storage"] = storage
    app.extensions["library_covers"] = CoverImageProcessor(
        storage,
        max_dimension=app.config["COVER_MAX_DIMENSION"],
        quality=app.config["COVER_QUALITY"],
        max_bytes=app.config["MAX_COVER_BYTES"],
        default_format=app.config["COVER_FORMAT"],
    )

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    # ---------------------------------------------------------
    # Health + uploaded files
    # ---------------------------------------------------------

    @app.get("/api/health")
    def health_check():
        return jsonify({"status": "ok", "service": "library_service"}), 200

    @app.get("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(storage.root, filename)

    return app


def register_error_handlers(app):
    @app.errorhandler(LibraryError)
    def handle_library_error(exc):
        if exc.status_code >= 500:
            logger.error("Internal failure: %s", exc)
            return jsonify({"error": "Internal server error"}), 500
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        return jsonify(
            {"error": "Validation failed", "details": validation_details(exc)}
        ), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.description}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(exc):
        logger.exception("Database failure")
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500


def register_commands(app):
    @app.cli.command("init-db")
    def init_db_command():
        """Create any missing tables and list them."""
        engine = app.extensions["library_engine"]
        Base.metadata.create_all(engine)
        for table in Base.metadata.sorted_tables:
            click.echo(f"  - {table.name}")
        click.echo("Database initialized")


if __name__ == "__main__":
    port = int(os.getenv("PORT", "3000"))
    create_app().run(host="0.0.0.0", port=port, debug=True)
