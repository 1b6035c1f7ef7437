from __future__ import annotations


class GatewayError(Exception):
    """Base class for callback handling failures."""

    status_code = 400
    public_message = "Bad request"

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message or self.public_message)
        if status_code is not None:
            self.status_code = status_code


class AuthenticationFailure(GatewayError):
    status_code = 401
    public_message = "Invalid signature"


class ReplayRejected(GatewayError):
    status_code = 400
    public_message = "Invalid timestamp"


class MalformedPayload(GatewayError):
    status_code = 400
    public_message = "Invalid event data"


class ReconciliationFailure(GatewayError):
    public_message = "Payment could not be applied"


class InvoiceNotFound(ReconciliationFailure):
    public_message = "Invoice not found"


class InvoiceNotPayable(ReconciliationFailure):
    public_message = "Invoice cannot accept payments"


class CurrencyConversionError(ReconciliationFailure):
    public_message = "Currency conversion failed"


class LedgerWriteError(ReconciliationFailure):
    public_message = "Ledger write failed"


class DuplicatePayment(ReconciliationFailure):
    """The reference is already in the ledger, found up front or by the unique index at commit."""

    public_message = "Payment already recorded"
