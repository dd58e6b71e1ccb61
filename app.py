"""
Local Library - a library catalog built with Flask and SQLAlchemy.

Features:
- Browse authors, books, genres and book copies
- Create, update and delete each of them (with validation)
- Deleting authors, books and genres is refused while other records refer to them
"""

import logging
import os

from flask import Flask, redirect, render_template, url_for
from werkzeug.exceptions import HTTPException, InternalServerError

import data_models
from catalog import catalog
from config import DATA_DIR, settings
from data_models import db, InvalidRecordError
from store import init_store

logger = logging.getLogger(__name__)


def configure_logging(app):
    """
    Configure the root logger once, from the LOG_LEVEL setting.
    """
    logging.basicConfig(
        level=app.config["LOG_LEVEL"],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger().setLevel(app.config["LOG_LEVEL"])


def register_error_handlers(app):
    @app.errorhandler(InvalidRecordError)
    def invalid_record(error):
        db.session.rollback()
        logger.warning("Rejected record: %s", error)
        return render_template("error.html", title="Invalid Record",
                               message=str(error), status=400), 400

    @app.errorhandler(HTTPException)
    def http_error(error):
        return render_template("error.html", title=error.name,
                               message=error.description, status=error.code), error.code

    @app.errorhandler(InternalServerError)
    def server_error(error):
        db.session.rollback()
        logger.exception("Unhandled error: %s", error.original_exception or error,
                         exc_info=error.original_exception or error)
        return render_template("error.html", title="Server Error",
                               message="Something went wrong.", status=500), 500


def create_app(test_config=None):
    """
    Application factory.

    Args:
        test_config: optional mapping that overrides the environment settings.
    """
    app = Flask(__name__)
    app.config.from_mapping(
        SECRET_KEY=settings.secret_key,
        SQLALCHEMY_DATABASE_URI=settings.database_url,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
        LOG_LEVEL=settings.log_level,
        PARALLEL_READ_WORKERS=settings.parallel_read_workers,
    )
    if test_config:
        app.config.update(test_config)

    configure_logging(app)

    db.init_app(app)
    init_store(app)

    app.register_blueprint(catalog, url_prefix="/catalog")
    register_error_handlers(app)

    # Link helpers for templates that only have a projected row, not a model.
    app.jinja_env.globals.update(
        author_url=data_models.author_url,
        book_url=data_models.book_url,
        genre_url=data_models.genre_url,
        book_instance_url=data_models.book_instance_url,
    )

    @app.route("/")
    def home():
        return redirect(url_for("catalog.index"))

    if app.config["SQLALCHEMY_DATABASE_URI"].startswith(f"sqlite:///{DATA_DIR}"):
        os.makedirs(DATA_DIR, exist_ok=True)

    with app.app_context():
        db.create_all()

    logger.info("Catalog ready on %s", app.config["SQLALCHEMY_DATABASE_URI"])
    return app


if __name__ == "__main__":
    create_app().run(debug=settings.debug)
