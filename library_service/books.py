import logging

from sqlalchemy.orm import Session

from .covers import CoverImageProcessor, CoverUpload
from .db import transaction
from .errors import HasOpenLoans
from .ledger import InventoryLedger
from .models import Book
from .repositories import BookRepository, LoanRepository
from .schemas import BookCreate, BookUpdate

logger = logging.getLogger(__name__)

# Columns that are NOT NULL; an explicit null in an update leaves them alone
_REQUIRED = {"title", "author", "publication_year", "category"}


class BookService:
    """Catalog operations that touch stock counters or cover files."""

    def __init__(self, session: Session, covers: CoverImageProcessor):
        self.session = session
        self.covers = covers
        self.books = BookRepository(session)
        self.loans = LoanRepository(session)
        self.ledger = InventoryLedger(session)

    def _reload(self, book_id) -> Book:
        self.session.expire_all()
        return self.books.get_or_raise(book_id)

    def create(self, data: BookCreate, cover: CoverUpload = None, fmt=None) -> Book:
        cover_path = None
        if cover is not None:
            cover_path = self.covers.process(cover.data, cover.mimetype, fmt)

        book = Book(
            title=data.title,
            author=data.author,
            publication_year=data.publication_year,
            category=data.category,
            total_stock=data.total_stock,
            on_loan_count=0,
            is_fully_rented=data.total_stock <= 0,
            synopsis=data.synopsis,
            cover_image=cover_path,
        )
        try:
            with transaction(self.session):
                self.books.add(book)
                self.session.flush()
                book_id = book.id
        except Exception:
            self.covers.discard(cover_path)
            raise

        logger.info("Created book %s: %r", book_id, data.title)
        return self._reload(book_id)

    def update(self, book_id, data: BookUpdate, cover: CoverUpload = None, fmt=None) -> Book:
        self.books.get_or_raise(book_id)

        new_cover = None
        if cover is not None:
            new_cover = self.covers.process(cover.data, cover.mimetype, fmt)

        changes = data.model_dump(exclude_unset=True)
        total_stock = changes.pop("total_stock", None)
        old_cover = None
        try:
            with transaction(self.session):
                if total_stock is not None:
                    self.ledger.set_total_stock(book_id, total_stock)
                book = self.books.get_or_raise(book_id)
                for field, value in changes.items():
                    if value is None and field in _REQUIRED:
                        continue
                    setattr(book, field, value)
                if new_cover is not None:
                    old_cover = book.cover_image
                    book.cover_image = new_cover
        except Exception:
            self.covers.discard(new_cover)
            raise

        # The previous cover goes only once the new path is committed
        if old_cover and old_cover != new_cover:
            self.covers.discard(old_cover)

        logger.info("Updated book %s", book_id)
        return self._reload(book_id)

    def update_stock(self, book_id, total_stock) -> Book:
        with transaction(self.session):
            self.ledger.set_total_stock(book_id, total_stock)
        return self._reload(book_id)

    def replace_cover(self, book_id, cover: CoverUpload, fmt=None) -> Book:
        self.books.get_or_raise(book_id)
        new_cover = self.covers.process(cover.data, cover.mimetype, fmt)
        try:
            with transaction(self.session):
                book = self.books.get_or_raise(book_id)
                old_cover = book.cover_image
                book.cover_image = new_cover
        except Exception:
            self.covers.discard(new_cover)
            raise

        if old_cover and old_cover != new_cover:
            self.covers.discard(old_cover)

        logger.info("Replaced cover of book %s with %s", book_id, new_cover)
        return self._reload(book_id)

    def delete(self, book_id) -> None:
        with transaction(self.session):
            book = self.books.get_or_raise(book_id)
            if self.loans.open_for_book(book_id):
                raise HasOpenLoans("Book has open loans and cannot be deleted")
            cover = book.cover_image
            # Returned loans go with the book (relationship cascade)
            self.books.delete(book)

        self.covers.discard(cover)
        logger.info("Deleted book %s", book_id)
