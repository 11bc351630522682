"""Error taxonomy shared by the catalog service and the quote editor."""
from __future__ import annotations

from typing import Any, Optional


class QuotingError(Exception):
    """Base class for every error the quoting core surfaces."""

    code = "quoting_error"
    status_code = 500

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = context


class NotFound(QuotingError):
    code = "not_found"
    status_code = 404


class InvalidArgument(QuotingError, ValueError):
    code = "invalid_argument"
    status_code = 400


class NoPrice(QuotingError):
    """Neither an override nor a base price exists for the requested key."""

    code = "no_price"
    status_code = 404


class CurrencyMismatch(QuotingError):
    code = "currency_mismatch"
    status_code = 409


class Conflict(QuotingError):
    code = "conflict"
    status_code = 409


class Transient(QuotingError):
    """Network failure or 5xx reply that survived every retry."""

    code = "transient"
    status_code = 503

    def __init__(self, message: str = "", status: Optional[int] = None, **context: Any) -> None:
        super().__init__(message, **context)
        self.status = status


class PermissionDenied(QuotingError):
    code = "permission_denied"
    status_code = 403


ERRORS_BY_CODE: dict[str, type[QuotingError]] = {
    cls.code: cls
    for cls in (NotFound, InvalidArgument, NoPrice, CurrencyMismatch, Conflict, Transient, PermissionDenied)
}


def error_for_status(status: int, message: str, code: Optional[str] = None) -> QuotingError:
    """Map an HTTP error reply back onto the taxonomy; ``code`` wins when present."""

    if code and code in ERRORS_BY_CODE:
        return ERRORS_BY_CODE[code](message)
    if status == 404:
        return NotFound(message)
    if status in (400, 422):
        return InvalidArgument(message)
    if status in (401, 403):
        return PermissionDenied(message)
    if status == 409:
        return Conflict(message)
    if status >= 500:
        return Transient(message, status=status)
    return QuotingError(message)
