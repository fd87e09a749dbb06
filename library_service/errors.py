"""
Domain errors raised by the ledger, the loan state machine and the cover
pipeline. Each one carries the HTTP status the API layer answers with, so
services never build responses themselves.
"""


class LibraryError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class Internal(LibraryError):
    pass


class NotFound(LibraryError):
    status_code = 404
    default_message = "Not found"


class BookNotFound(NotFound):
    default_message = "Book not found"


class ClientNotFound(NotFound):
    default_message = "Client not found"


class LoanNotFound(NotFound):
    default_message = "Loan not found"


class InvalidInput(LibraryError):
    status_code = 400
    default_message = "Invalid input"


class InvalidStock(InvalidInput):
    default_message = "Invalid stock quantity"


class InsufficientStock(LibraryError):
    status_code = 400
    default_message = "Book not available for loan"


class InvalidTransition(LibraryError):
    status_code = 400
    default_message = "Loan cannot be changed"


class AlreadyReturned(InvalidTransition):
    default_message = "Loan already returned"


class Conflict(LibraryError):
    status_code = 409
    default_message = "Conflict"


class HasOpenLoans(Conflict):
    default_message = "Resource still has open loans"


class DuplicateEmail(Conflict):
    default_message = "Email already registered"


class UnsupportedMediaType(LibraryError):
    status_code = 415
    default_message = "Unsupported file type. Use JPG, PNG or WebP"


class PayloadTooLarge(LibraryError):
    status_code = 413
    default_message = "File too large"


class ImageProcessingFailed(LibraryError):
    status_code = 422
    default_message = "Failed to process image"
