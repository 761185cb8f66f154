"""
Domain errors raised by the service layer.

Each class carries the HTTP status it maps to; ``clinic.main`` turns any
``ClinicError`` into a ``{"detail": message}`` JSON response.
"""


class ClinicError(Exception):
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ClinicError):
    """Referenced examination, patient, diagnosis or other row does not exist."""
    http_status = 404


class ConflictError(ClinicError):
    """The request collides with existing state, e.g. a taken username."""
    http_status = 409


class DuplicateEntryError(ClinicError):
    """Narrow add of a (patient, item, examination) triple that already exists."""
    http_status = 400


class UnauthenticatedError(ClinicError):
    """No acting user could be established for a mutating call."""
    http_status = 401


class StorageError(ClinicError):
    """Unexpected fault during a write; the transaction was rolled back."""
    http_status = 500
