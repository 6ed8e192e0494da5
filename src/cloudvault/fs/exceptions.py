"""Custom exception hierarchy for the CloudVault storage layer.

Every error carries the HTTP status and short machine code it maps to, so
the web layer can translate any ``VaultError`` without a lookup table.
"""

from __future__ import annotations


class VaultError(Exception):
    """Base exception for all CloudVault errors."""

    status_code: int = 500
    code: str = "internal_error"


class BadRequestError(VaultError):
    """Raised when a request is missing a required parameter or is malformed."""

    status_code = 400
    code = "bad_request"


class InvalidPathError(BadRequestError):
    """Raised on path traversal attempts or malformed folder/blob keys."""

    code = "invalid_path"


class NotFoundError(VaultError):
    """Raised when a file, folder, blob or share token does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(VaultError):
    """Raised when a resource already exists or its parent is missing."""

    status_code = 409
    code = "conflict"


class PreconditionFailedError(VaultError):
    """Raised when a conditional request or ``Overwrite: F`` cannot be honored."""

    status_code = 412
    code = "precondition_failed"


class RangeNotSatisfiableError(VaultError):
    """Raised when a ``Range`` header lies outside the object."""

    status_code = 416
    code = "range_not_satisfiable"

    def __init__(self, size: int, message: str = "Range Not Satisfiable") -> None:
        super().__init__(message)
        self.size = size


class UnauthorizedError(VaultError):
    """Raised on a missing/invalid session or a wrong share password."""

    status_code = 401
    code = "unauthorized"


class ShareAccessDeniedError(VaultError):
    """Raised when a share needs a password or a file lies outside a shared folder."""

    status_code = 403
    code = "forbidden"


class UnsupportedMediaTypeError(VaultError):
    """Raised when a request body has the wrong content type."""

    status_code = 415
    code = "unsupported_media_type"


class StorageError(VaultError):
    """Raised on storage backend failures (DB connection, disk I/O, etc.)."""
