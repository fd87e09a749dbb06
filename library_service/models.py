# library_service/models.py
import enum
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
)

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class BookCategory(str, enum.Enum):
    ROMANCE = "Romance"
    FICTION = "Ficção"
    SCIENCE_FICTION = "Ficção Científica"
    FANTASY = "Fantasia"
    MYSTERY = "Mistério"
    THRILLER = "Thriller"
    HORROR = "Terror"
    BIOGRAPHY = "Biografia"
    AUTOBIOGRAPHY = "Autobiografia"
    HISTORY = "História"
    SCIENCE = "Ciência"
    PHILOSOPHY = "Filosofia"
    PSYCHOLOGY = "Psicologia"
    SELF_HELP = "Autoajuda"
    BUSINESS = "Negócios"
    TECHNOLOGY = "Tecnologia"
    COOKING = "Culinária"
    TRAVEL = "Viagem"
    POETRY = "Poesia"
    DRAMA = "Drama"
    COMEDY = "Comédia"
    CHILDREN = "Infantil"
    YOUNG_ADULT = "Jovem Adulto"
    EDUCATION = "Educação"
    RELIGION = "Religião"
    HEALTH = "Saúde"
    SPORTS = "Esportes"
    ART = "Arte"
    MUSIC = "Música"
    OTHER = "Outros"


class LoanStatus(str, enum.Enum):
    ACTIVE = "active"
    RETURNED = "returned"
    OVERDUE = "overdue"


OPEN_STATUSES = (LoanStatus.ACTIVE, LoanStatus.OVERDUE)


class Book(Base):
    """
    A catalog title and its stock counters.

    on_loan_count and is_fully_rented are only written by the inventory
    ledger; everything else is plain catalog data.
    """
    __tablename__ = "books"
    __table_args__ = (
        CheckConstraint("total_stock >= 0", name="ck_books_total_stock"),
        CheckConstraint("on_loan_count >= 0", name="ck_books_on_loan_count"),
        CheckConstraint("on_loan_count <= total_stock", name="ck_books_stock_bound"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    publication_year = Column(Integer, nullable=False)
    category = Column(
        Enum(
            BookCategory,
            name="book_category",
            native_enum=False,
            values_callable=_enum_values,
            length=32,
        ),
        nullable=False,
        default=BookCategory.OTHER,
    )
    total_stock = Column(Integer, nullable=False, default=0)
    on_loan_count = Column(Integer, nullable=False, default=0)
    is_fully_rented = Column(Boolean, nullable=False, default=False)
    synopsis = Column(Text)
    cover_image = Column(String(255))
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    loans = relationship("Loan", back_populates="book", cascade="all, delete-orphan")


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20))
    address = Column(Text)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    loans = relationship("Loan", back_populates="client", cascade="all, delete-orphan")


class Loan(Base):
    __tablename__ = "loans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    loan_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    actual_return_date = Column(Date)
    status = Column(
        Enum(
            LoanStatus,
            name="loan_status",
            native_enum=False,
            values_callable=_enum_values,
            length=16,
        ),
        nullable=False,
        default=LoanStatus.ACTIVE,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    book = relationship("Book", back_populates="loans")
    client = relationship("Client", back_populates="loans")

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES
