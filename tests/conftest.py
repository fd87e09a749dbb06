"""Pytest configuration and shared fixtures.

Every test gets its own SQLite file and upload directory under tmp_path,
so tests never share stock counters or cover files.
"""

import io
from datetime import date
from typing import Generator

import pytest
from PIL import Image
from sqlalchemy.orm import Session

from library_service import create_app
from library_service.models import Book, BookCategory, Client, Loan, LoanStatus


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'library.db'}",
            "UPLOAD_PATH": str(tmp_path / "uploads"),
        }
    )
    yield app
    app.extensions["library_engine"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def session_factory(app):
    return app.extensions["library_sessions"]


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def storage(app):
    return app.extensions["library_storage"]


@pytest.fixture
def covers(app):
    return app.extensions["library_covers"]


@pytest.fixture
def make_book(session):
    """Insert a book with the given stock and return its id."""

    def _make(total_stock=1, title="Test Book", **kwargs):
        book = Book(
            title=title,
            author=kwargs.pop("author", "Test Author"),
            publication_year=kwargs.pop("publication_year", 2001),
            category=kwargs.pop("category", BookCategory.FICTION),
            total_stock=total_stock,
            on_loan_count=0,
            is_fully_rented=total_stock <= 0,
            **kwargs,
        )
        session.add(book)
        session.commit()
        return book.id

    return _make


@pytest.fixture
def make_client(session):
    counter = {"n": 0}

    def _make(name="Test Client", email=None):
        counter["n"] += 1
        client = Client(name=name, email=email or f"client{counter['n']}@example.com")
        session.add(client)
        session.commit()
        return client.id

    return _make


@pytest.fixture
def make_loan(session):
    """Insert a loan row directly, bumping the book counters like a reserve."""

    def _make(book_id, client_id, loan_date, due_date, status=LoanStatus.ACTIVE):
        loan = Loan(
            book_id=book_id,
            client_id=client_id,
            loan_date=loan_date,
            due_date=due_date,
            status=status,
            actual_return_date=due_date if status == LoanStatus.RETURNED else None,
        )
        session.add(loan)
        if status != LoanStatus.RETURNED:
            book = session.get(Book, book_id)
            book.on_loan_count += 1
            book.is_fully_rented = book.on_loan_count >= book.total_stock
        session.commit()
        return loan.id

    return _make


def fixed_clock(day):
    return lambda: day


@pytest.fixture
def today():
    return date(2024, 1, 15)


def image_bytes(width, height, fmt="PNG", mode="RGB", exif=None):
    image = Image.new(mode, (width, height), color=(200, 30, 30) if mode == "RGB" else 0)
    buf = io.BytesIO()
    options = {}
    if exif is not None:
        options["exif"] = exif.tobytes()
    image.save(buf, format=fmt, **options)
    return buf.getvalue()
