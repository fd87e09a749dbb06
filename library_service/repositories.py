from typing import Generic, List, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from .errors import BookNotFound, ClientNotFound, LoanNotFound, NotFound
from .models import OPEN_STATUSES, Book, BookCategory, Client, Loan, LoanStatus

ModelT = TypeVar("ModelT")


class Repository(Generic[ModelT]):
    """Per-entity data access over a SQLAlchemy session."""

    model: Type[ModelT]
    not_found = NotFound

    def __init__(self, session: Session):
        self.session = session

    def _select(self):
        return select(self.model)

    def get(self, entity_id: int) -> Optional[ModelT]:
        q = self._select().where(self.model.id == entity_id)
        return self.session.execute(q).scalar_one_or_none()

    def get_or_raise(self, entity_id: int) -> ModelT:
        entity = self.get(entity_id)
        if entity is None:
            raise self.not_found()
        return entity

    def list(self, *criteria, order_by=None) -> List[ModelT]:
        q = self._select().where(*criteria)
        q = q.order_by(order_by if order_by is not None else self.model.id)
        return list(self.session.execute(q).scalars().all())

    def find_one_by(self, **filters) -> Optional[ModelT]:
        q = self._select().filter_by(**filters)
        return self.session.execute(q).scalars().first()

    def add(self, entity: ModelT) -> ModelT:
        self.session.add(entity)
        return entity

    def delete(self, entity: ModelT) -> None:
        self.session.delete(entity)


class BookRepository(Repository[Book]):
    model = Book
    not_found = BookNotFound

    def search_title(self, text: str) -> List[Book]:
        return self.list(func.lower(Book.title).like(f"%{text.lower()}%"))

    def search_author(self, text: str) -> List[Book]:
        return self.list(func.lower(Book.author).like(f"%{text.lower()}%"))

    def by_category(self, category: BookCategory) -> List[Book]:
        return self.list(Book.category == category)


class ClientRepository(Repository[Client]):
    model = Client
    not_found = ClientNotFound

    def by_email(self, email: str) -> Optional[Client]:
        return self.find_one_by(email=email)

    def search_name(self, text: str) -> List[Client]:
        return self.list(func.lower(Client.name).like(f"%{text.lower()}%"))


class LoanRepository(Repository[Loan]):
    model = Loan
    not_found = LoanNotFound

    def _select(self):
        # Loan responses always embed book and client summaries
        return select(Loan).options(selectinload(Loan.book), selectinload(Loan.client))

    def by_status(self, status: LoanStatus) -> List[Loan]:
        return self.list(Loan.status == status)

    def for_client(self, client_id: int) -> List[Loan]:
        return self.list(Loan.client_id == client_id)

    def for_book(self, book_id: int) -> List[Loan]:
        return self.list(Loan.book_id == book_id)

    def open_for_book(self, book_id: int) -> List[Loan]:
        return self.list(Loan.book_id == book_id, Loan.status.in_(OPEN_STATUSES))

    def open_for_client(self, client_id: int) -> List[Loan]:
        return self.list(Loan.client_id == client_id, Loan.status.in_(OPEN_STATUSES))

    def overdue_candidates(self, today) -> List[Loan]:
        return self.list(Loan.status == LoanStatus.ACTIVE, Loan.due_date < today)
