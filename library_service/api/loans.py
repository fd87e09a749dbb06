from flask import Blueprint, jsonify

from ..db import open_session
from ..loans import LoanService
from ..models import LoanStatus
from ..repositories import LoanRepository
from ..schemas import LoanCreate, LoanReturn, LoanUpdate, loan_to_dict
from ..sweeper import OverdueSweeper
from . import parse_body, parse_id

bp = Blueprint("loans", __name__)


def _loans_json(loans):
    return jsonify([loan_to_dict(loan) for loan in loans])


@bp.get("")
def list_loans():
    session = open_session()
    try:
        return _loans_json(LoanRepository(session).list())
    finally:
        session.close()


@bp.get("/active")
def list_active_loans():
    session = open_session()
    try:
        return _loans_json(LoanRepository(session).by_status(LoanStatus.ACTIVE))
    finally:
        session.close()


@bp.get("/overdue")
def list_overdue_loans():
    """
    Run the overdue sweep, then return every loan that is overdue now
    (promoted by this sweep or an earlier one).
    """
    session = open_session()
    try:
        OverdueSweeper(session).sweep()
        return _loans_json(LoanRepository(session).by_status(LoanStatus.OVERDUE))
    finally:
        session.close()


@bp.get("/client/<client_id>")
def list_client_loans(client_id):
    client_id = parse_id(client_id, "client")
    session = open_session()
    try:
        return _loans_json(LoanRepository(session).for_client(client_id))
    finally:
        session.close()


@bp.get("/book/<book_id>")
def list_book_loans(book_id):
    book_id = parse_id(book_id, "book")
    session = open_session()
    try:
        return _loans_json(LoanRepository(session).for_book(book_id))
    finally:
        session.close()


@bp.get("/<loan_id>")
def get_loan(loan_id):
    loan_id = parse_id(loan_id, "loan")
    session = open_session()
    try:
        return jsonify(loan_to_dict(LoanRepository(session).get_or_raise(loan_id)))
    finally:
        session.close()


@bp.post("")
def create_loan():
    data = parse_body(LoanCreate)
    session = open_session()
    try:
        loan = LoanService(session).create(data.book_id, data.client_id, data.due_date)
        return jsonify(loan_to_dict(loan)), 201
    finally:
        session.close()


@bp.patch("/<loan_id>/return")
def return_loan(loan_id):
    loan_id = parse_id(loan_id, "loan")
    data = parse_body(LoanReturn)
    session = open_session()
    try:
        loan = LoanService(session).return_loan(loan_id, data.actual_return_date)
        return jsonify(loan_to_dict(loan))
    finally:
        session.close()


@bp.put("/<loan_id>")
def update_loan(loan_id):
    loan_id = parse_id(loan_id, "loan")
    data = parse_body(LoanUpdate)
    session = open_session()
    try:
        loan = LoanService(session).update(loan_id, data.due_date, data.status)
        return jsonify(loan_to_dict(loan))
    finally:
        session.close()


@bp.delete("/<loan_id>")
def delete_loan(loan_id):
    loan_id = parse_id(loan_id, "loan")
    session = open_session()
    try:
        LoanService(session).delete(loan_id)
        return "", 204
    finally:
        session.close()
