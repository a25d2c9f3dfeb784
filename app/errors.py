# app/errors.py
"""
Error taxonomy for the ledger service.

Services raise these; main.py turns every one of them into the uniform
{"success": false, "error": ..., "details": ...} envelope.
"""

from typing import Any, Optional


class FinanceError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(FinanceError):
    """Missing or malformed fields, wrong types, out-of-range values."""

    status_code = 400


class InsufficientBalance(FinanceError):
    """Business-rule rejection: the wallet (or savings) cannot cover the amount."""

    status_code = 400


class Unauthorized(FinanceError):
    """No identity on the request."""

    status_code = 401


class NotFoundOrForbidden(FinanceError):
    """
    Resource absent or owned by someone else.

    The two cases are intentionally indistinguishable to the caller.
    """

    status_code = 404


class InternalError(FinanceError):
    """Unexpected failure (database unreachable, rolled-back write...)."""

    status_code = 500
