"""HTTP-aware error types raised by the ledger and renewal services."""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException


class LedgerError(HTTPException):
    """Base class; `detail` is the message shown to the user as-is."""

    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(status_code=status_code or type(self).status_code, detail=message)
        self.message = message


class InvalidAmount(LedgerError):
    code = "invalid_amount"


class InvalidType(LedgerError):
    code = "invalid_type"


class NotFound(LedgerError):
    status_code = 404
    code = "not_found"


class Forbidden(LedgerError):
    status_code = 403
    code = "forbidden"


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"

    def __init__(self, message: str, side: str):
        super().__init__(message)
        self.side = side


class InvalidDuration(LedgerError):
    code = "invalid_duration"


class InvalidExpiry(LedgerError):
    code = "invalid_expiry"


class InvalidPackageSelection(LedgerError):
    code = "invalid_package_selection"


class DuplicateDevice(LedgerError):
    code = "duplicate_device"


class InvalidStatus(LedgerError):
    code = "invalid_status"
