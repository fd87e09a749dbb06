from flask import current_app, request

from ..covers import CoverUpload
from ..errors import InvalidInput


def parse_id(value, label="id"):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"Invalid {label} id: {value!r}")
    if parsed <= 0:
        raise InvalidInput(f"Invalid {label} id: {value!r}")
    return parsed


def request_data():
    """JSON body, or the form fields of a multipart/urlencoded request."""
    if request.is_json:
        if not request.get_data():
            return {}
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be a JSON object")
        return data
    data = request.form.to_dict()
    data.pop("format", None)
    return data


def parse_body(schema):
    return schema.model_validate(request_data())


def cover_from_request(required=False):
    file = request.files.get("cover")
    if file is None or not file.filename:
        if required:
            raise InvalidInput("A cover file is required in the 'cover' field")
        return None
    return CoverUpload.from_file_storage(file)


def cover_format():
    return request.form.get("format") or request.args.get("format")


def get_covers():
    return current_app.extensions["library_covers"]


def register_blueprints(app):
    from .books import bp as books_bp
    from .clients import bp as clients_bp
    from .loans import bp as loans_bp

    app.register_blueprint(books_bp, url_prefix="/api/books")
    app.register_blueprint(clients_bp, url_prefix="/api/clients")
    app.register_blueprint(loans_bp, url_prefix="/api/loans")
