"""
Domain exceptions for the authorization matrix.

Raised by the store, mutator and services; translated to HTTP responses by the
handlers registered in app.main.
"""


class MatrixError(Exception):
    """Base exception for the authorization matrix."""

    status_code = 400

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationFailedError(MatrixError):
    """Raised when input fails a domain check before reaching the store."""
    status_code = 400


class StoreError(MatrixError):
    """Base class for entity store failures."""
    status_code = 500


class RecordNotFoundError(StoreError):
    """Raised when a row addressed by id does not exist."""
    status_code = 404


class ConstraintViolationError(StoreError):
    """Raised when the store rejects a write (unique or foreign key)."""
    status_code = 409


class StoreUnavailableError(StoreError):
    """Raised when the store cannot be reached."""
    status_code = 503


class ProtectedRecordError(MatrixError):
    """Raised when deleting or renaming a record the policy depends on."""
    status_code = 409


class DuplicatePermissionError(MatrixError):
    """Raised when two permission rows exist for one (role, action) pair."""
    status_code = 500


class IdentityProviderError(MatrixError):
    """Raised when the identity provider rejects or fails a call."""
    status_code = 502
