from flask import Blueprint, jsonify, request

from ..books import BookService
from ..db import open_session
from ..errors import InvalidInput
from ..models import BookCategory
from ..repositories import BookRepository
from ..schemas import BookCreate, BookUpdate, StockUpdate, book_to_dict
from . import cover_format, cover_from_request, get_covers, parse_body, parse_id

bp = Blueprint("books", __name__)


def _query_text(name):
    value = request.args.get(name)
    if not value or not value.strip():
        raise InvalidInput(f"Query parameter '{name}' is required")
    return value.strip()


@bp.get("")
def list_books():
    session = open_session()
    try:
        books = BookRepository(session).list()
        return jsonify([book_to_dict(b) for b in books])
    finally:
        session.close()


@bp.get("/categories")
def list_categories():
    categories = [{"key": c.name, "value": c.value} for c in BookCategory]
    return jsonify({"categories": categories, "total": len(categories)})


@bp.get("/search/title")
def search_by_title():
    title = _query_text("title")
    session = open_session()
    try:
        books = BookRepository(session).search_title(title)
        return jsonify([book_to_dict(b) for b in books])
    finally:
        session.close()


@bp.get("/search/author")
def search_by_author():
    author = _query_text("author")
    session = open_session()
    try:
        books = BookRepository(session).search_author(author)
        return jsonify([book_to_dict(b) for b in books])
    finally:
        session.close()


@bp.get("/search/category")
def search_by_category():
    value = _query_text("category")
    try:
        category = BookCategory(value)
    except ValueError:
        return jsonify(
            {
                "error": "Invalid category",
                "validCategories": [c.value for c in BookCategory],
            }
        ), 400

    session = open_session()
    try:
        books = BookRepository(session).by_category(category)
        return jsonify([book_to_dict(b) for b in books])
    finally:
        session.close()


@bp.get("/<book_id>")
def get_book(book_id):
    book_id = parse_id(book_id, "book")
    session = open_session()
    try:
        book = BookRepository(session).get_or_raise(book_id)
        return jsonify(book_to_dict(book))
    finally:
        session.close()


@bp.post("")
def create_book():
    """
    Create a book. Accepts JSON, or multipart form fields plus an
    optional ``cover`` file (and ``format`` = webp | jpeg).
    """
    data = parse_body(BookCreate)
    cover = cover_from_request()

    session = open_session()
    try:
        book = BookService(session, get_covers()).create(data, cover, cover_format())
        return jsonify(book_to_dict(book)), 201
    finally:
        session.close()


@bp.put("/<book_id>")
def update_book(book_id):
    book_id = parse_id(book_id, "book")
    data = parse_body(BookUpdate)
    cover = cover_from_request()

    session = open_session()
    try:
        book = BookService(session, get_covers()).update(
            book_id, data, cover, cover_format()
        )
        return jsonify(book_to_dict(book))
    finally:
        session.close()


@bp.patch("/<book_id>/stock")
def update_stock(book_id):
    book_id = parse_id(book_id, "book")
    data = parse_body(StockUpdate)

    session = open_session()
    try:
        book = BookService(session, get_covers()).update_stock(book_id, data.total_stock)
        return jsonify(book_to_dict(book))
    finally:
        session.close()


@bp.patch("/<book_id>/cover")
def update_cover(book_id):
    book_id = parse_id(book_id, "book")
    cover = cover_from_request(required=True)

    session = open_session()
    try:
        book = BookService(session, get_covers()).replace_cover(
            book_id, cover, cover_format()
        )
        return jsonify(book_to_dict(book))
    finally:
        session.close()


@bp.delete("/<book_id>")
def delete_book(book_id):
    book_id = parse_id(book_id, "book")
    session = open_session()
    try:
        BookService(session, get_covers()).delete(book_id)
        return "", 204
    finally:
        session.close()
