"""
core/errors.py -- Typed failure taxonomy for data access.

Every failure raised by core.database and the auth stores is a
DataAccessError. The error_type attribute lets callers (an HTTP layer, a
CLI) map failures to their own status codes without string matching:

  NOT_FOUND     -- user or session absent
  CONFLICT      -- uniqueness violation (duplicate username)
  DATA_QUALITY  -- any other constraint violation (short username, unknown role)
  UNAUTHORIZED  -- login mismatch; deliberately does not say which half failed
  UNKNOWN       -- storage unavailable or any other driver failure

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

from __future__ import annotations

from enum import Enum


class ErrorType(str, Enum):
    UNKNOWN = "unknown"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    DATA_QUALITY = "data_quality"
    UNAUTHORIZED = "unauthorized"


class DataAccessError(Exception):
    """Base class for all storage-facing failures.

    error_type defaults to the class-level value so subclasses need no
    __init__ of their own. Passing error_type explicitly is only useful on
    the base class itself.
    """

    error_type: ErrorType = ErrorType.UNKNOWN

    def __init__(self, message: str, error_type: ErrorType | None = None) -> None:
        super().__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, error_type={self.error_type.value!r})"


class NotFoundError(DataAccessError):
    error_type = ErrorType.NOT_FOUND


class ConflictError(DataAccessError):
    error_type = ErrorType.CONFLICT


class DataQualityError(DataAccessError):
    error_type = ErrorType.DATA_QUALITY


class UnauthorizedError(DataAccessError):
    error_type = ErrorType.UNAUTHORIZED
