from __future__ import annotations

import logging
from dataclasses import dataclass

from inpaycheckout.config import GatewayConfig
from inpaycheckout.errors import DuplicatePayment, ReconciliationFailure
from inpaycheckout.payments.ledger import Ledger
from inpaycheckout.payments.payload import TransactionPayload
from inpaycheckout.utils.gateway_log import ERROR, INFORMATION, SUCCESSFUL, UNSUCCESSFUL, GatewayLogger

log = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    ok: bool
    duplicate: bool = False
    amount: float = 0.0
    error: str = ""

    @property
    def message(self) -> str:
        if self.duplicate:
            return "Payment already processed"
        if self.ok:
            return "Payment verified and applied"
        return self.error or "Payment could not be applied"


def minor_to_major(amount_minor_units: int) -> float:
    return float(amount_minor_units or 0) / 100


class PaymentReconciler:
    """Applies a verified processor transaction to an invoice exactly once."""

    def __init__(self, ledger: Ledger, config: GatewayConfig, gateway_log: GatewayLogger):
        self.ledger = ledger
        self.config = config
        self.gateway_log = gateway_log

    def settle_amount(self, payload: TransactionPayload, invoice_currency: str) -> float:
        amount = minor_to_major(payload.amount_minor_units)
        convert_to = (self.config.convert_to or "").upper()
        if convert_to and convert_to != (invoice_currency or "").upper():
            converted = self.ledger.convert_currency(amount, convert_to, invoice_currency)
            amount = round(converted, self.ledger.currency_decimals(invoice_currency))
        return amount

    def apply(self, invoice_id: int, reference: str, payload: TransactionPayload) -> ReconcileResult:
        module = self.config.module
        try:
            if self.ledger.exists(reference):
                raise DuplicatePayment(reference)
            invoice = self.ledger.resolve_invoice(invoice_id)
            amount = self.settle_amount(payload, invoice.currency_code)
            self.ledger.apply_payment(invoice_id, reference, amount, 0.0, module)
        except DuplicatePayment:
            self.gateway_log.log(module, f"Payment already processed for reference: {reference} (duplicate prevented)", INFORMATION)
            return ReconcileResult(ok=True, duplicate=True)
        except ReconciliationFailure as e:
            self.gateway_log.log(module, f"Payment processing error: {e}", UNSUCCESSFUL)
            return ReconcileResult(ok=False, error=str(e))
        except Exception as e:
            log.exception("unexpected error applying %s to invoice %s", reference, invoice_id)
            self.gateway_log.log(module, f"Payment processing error: {e}", ERROR)
            return ReconcileResult(ok=False, error="Payment processing error")

        self.gateway_log.log(module, f"Payment added successfully for invoice {invoice_id}", SUCCESSFUL)
        return ReconcileResult(ok=True, amount=amount)
