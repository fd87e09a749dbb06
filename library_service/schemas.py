"""Request schemas (pydantic) and response serializers.

Wire names follow the public API contract (camelCase, plus the legacy
``gender``/``qttEstoque``/``qttAlugados``/``rented``/``sobre`` book fields);
Python code only ever sees the snake_case attribute names.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)

from .models import BookCategory, LoanStatus

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

_DATETIME = TypeAdapter(datetime)


def _no_bool(value):
    # JSON true/false would otherwise pass as 1/0
    if isinstance(value, bool):
        raise ValueError("Input should be a valid integer, not a boolean")
    return value


def _utc_date(value):
    """Accept a plain date or a full ISO timestamp; timestamps keep their UTC day."""
    if isinstance(value, str) and "T" in value:
        try:
            value = _DATETIME.validate_python(value)
        except ValidationError:
            raise ValueError("Input should be a valid date or ISO timestamp") from None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


Count = Annotated[int, BeforeValidator(_no_bool)]
CalendarDate = Annotated[date, BeforeValidator(_utc_date)]


class RequestModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )


# ----------------- books -----------------

class BookCreate(RequestModel):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    publication_year: Count = Field(..., alias="publicationYear", ge=1000)
    category: BookCategory = Field(..., alias="gender")
    total_stock: Count = Field(..., alias="qttEstoque", ge=0)
    synopsis: Optional[str] = Field(None, alias="sobre")


class BookUpdate(RequestModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    publication_year: Optional[Count] = Field(None, alias="publicationYear", ge=1000)
    category: Optional[BookCategory] = Field(None, alias="gender")
    total_stock: Optional[Count] = Field(None, alias="qttEstoque", ge=0)
    synopsis: Optional[str] = Field(None, alias="sobre")


class StockUpdate(RequestModel):
    total_stock: Count = Field(..., alias="qttEstoque", ge=0)


# ----------------- clients -----------------

class ClientCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None


class ClientUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[str] = Field(None, max_length=255, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None


# ----------------- loans -----------------

class LoanCreate(RequestModel):
    book_id: Count = Field(..., alias="bookId", gt=0)
    client_id: Count = Field(..., alias="clientId", gt=0)
    due_date: CalendarDate = Field(..., alias="returnDate")


class LoanReturn(RequestModel):
    actual_return_date: Optional[CalendarDate] = Field(None, alias="actualReturnDate")


class LoanUpdate(RequestModel):
    due_date: Optional[CalendarDate] = Field(None, alias="returnDate")
    status: Optional[LoanStatus] = None


def validation_details(exc):
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or None,
            "message": err["msg"],
            "value": err.get("input"),
        }
        for err in exc.errors(include_url=False)
    ]


# ----------------- serializers -----------------

def _iso(value):
    return value.isoformat() if value is not None else None


def book_to_dict(book):
    return {
        "id": book.id,
        "title": book.title,
        "author": book.author,
        "publicationYear": book.publication_year,
        "gender": book.category.value if book.category else None,
        "qttEstoque": book.total_stock,
        "qttAlugados": book.on_loan_count,
        "rented": book.is_fully_rented,
        "sobre": book.synopsis,
        "coverImage": book.cover_image,
        "createdAt": _iso(book.created_at),
        "updatedAt": _iso(book.updated_at),
    }


def client_to_dict(client):
    return {
        "id": client.id,
        "name": client.name,
        "email": client.email,
        "phone": client.phone,
        "address": client.address,
        "createdAt": _iso(client.created_at),
        "updatedAt": _iso(client.updated_at),
    }


def loan_to_dict(loan, include_relations=True):
    data = {
        "id": loan.id,
        "bookId": loan.book_id,
        "clientId": loan.client_id,
        "loanDate": _iso(loan.loan_date),
        "returnDate": _iso(loan.due_date),
        "actualReturnDate": _iso(loan.actual_return_date),
        "status": loan.status.value,
        "createdAt": _iso(loan.created_at),
        "updatedAt": _iso(loan.updated_at),
    }
    if include_relations:
        if loan.book is not None:
            data["book"] = {
                "id": loan.book.id,
                "title": loan.book.title,
                "author": loan.book.author,
                "gender": loan.book.category.value,
            }
        if loan.client is not None:
            data["client"] = {
                "id": loan.client.id,
                "name": loan.client.name,
                "email": loan.client.email,
            }
    return data
