import logging
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from .models import Base

logger = logging.getLogger(__name__)


def make_engine(uri, echo=False):
    if not uri.startswith("sqlite"):
        return create_engine(uri, echo=echo, future=True)

    # Sessions are per request and requests may run on any thread.
    # The timeout lets concurrent writers queue on the database lock.
    engine = create_engine(
        uri,
        echo=echo,
        future=True,
        connect_args={"check_same_thread": False, "timeout": 30},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(app):
    engine = make_engine(
        app.config["SQLALCHEMY_DATABASE_URI"],
        echo=app.config.get("SQLALCHEMY_ECHO", False),
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)

    # Create tables if not present
    Base.metadata.create_all(engine)
    logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))

    app.extensions["library_engine"] = engine
    app.extensions["library_sessions"] = SessionLocal
    return SessionLocal


def open_session():
    return current_app.extensions["library_sessions"]()


@contextmanager
def transaction(session):
    """Commit on success, roll back and re-raise on any failure."""
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
