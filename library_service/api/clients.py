import re

from flask import Blueprint, jsonify, request

from ..clients import ClientService
from ..db import open_session
from ..errors import ClientNotFound, InvalidInput
from ..repositories import ClientRepository
from ..schemas import EMAIL_PATTERN, ClientCreate, ClientUpdate, client_to_dict
from . import parse_body, parse_id

bp = Blueprint("clients", __name__)


@bp.get("")
def list_clients():
    session = open_session()
    try:
        clients = ClientRepository(session).list()
        return jsonify([client_to_dict(c) for c in clients])
    finally:
        session.close()


@bp.get("/search")
def search_clients():
    name = (request.args.get("name") or "").strip()
    if not name:
        raise InvalidInput("Query parameter 'name' is required")

    session = open_session()
    try:
        clients = ClientRepository(session).search_name(name)
        return jsonify([client_to_dict(c) for c in clients])
    finally:
        session.close()


@bp.get("/email/<email>")
def get_client_by_email(email):
    if not re.match(EMAIL_PATTERN, email):
        raise InvalidInput("Invalid email format")

    session = open_session()
    try:
        client = ClientRepository(session).by_email(email)
        if client is None:
            raise ClientNotFound()
        return jsonify(client_to_dict(client))
    finally:
        session.close()


@bp.get("/<client_id>")
def get_client(client_id):
    client_id = parse_id(client_id, "client")
    session = open_session()
    try:
        client = ClientRepository(session).get_or_raise(client_id)
        return jsonify(client_to_dict(client))
    finally:
        session.close()


@bp.post("")
def create_client():
    data = parse_body(ClientCreate)
    session = open_session()
    try:
        client = ClientService(session).create(data)
        return jsonify(client_to_dict(client)), 201
    finally:
        session.close()


@bp.put("/<client_id>")
def update_client(client_id):
    client_id = parse_id(client_id, "client")
    data = parse_body(ClientUpdate)
    session = open_session()
    try:
        client = ClientService(session).update(client_id, data)
        return jsonify(client_to_dict(client))
    finally:
        session.close()


@bp.delete("/<client_id>")
def delete_client(client_id):
    client_id = parse_id(client_id, "client")
    session = open_session()
    try:
        ClientService(session).delete(client_id)
        return "", 204
    finally:
        session.close()
