"""
Domain errors raised below the HTTP layer.

Routes either translate these into HTTPException at the call site (portal
messages) or let the handlers in observability map them to the standard error
payload.
"""
from __future__ import annotations


# User-facing messages
MSG_RESCAN = "Please scan the current code at the location."
MSG_CHECKIN_FAILED = "An error occurred during check-in. Please try again."
MSG_CHECKOUT_FAILED = "An error occurred during check-out. Please contact a floor lead."
MSG_RENDER_FAILED = "Failed to generate QR code. Please try again."

STATUS_FORBIDDEN = 403
STATUS_NOT_FOUND = 404
STATUS_SERVICE_UNAVAILABLE = 503


class LedgerError(Exception):
    """Base class for check-in ledger failures."""


class NotFoundError(LedgerError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)
        self.message = message


class LedgerUnavailable(LedgerError):
    """The backing store could not be read or written."""


class RenderFailure(Exception):
    """The admission code image could not be produced."""


class AdmissionRejected(Exception):
    def __init__(self, status: str, message: str = MSG_RESCAN) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
