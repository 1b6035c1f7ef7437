"""Billing ledger the reconciler writes to.

`Ledger` is the narrow surface the engine depends on; `SqlLedger` backs it
with the Flask-SQLAlchemy models so the gateway runs standalone. A host
billing system plugs in by subclassing `Ledger`.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from inpaycheckout.errors import (
    CurrencyConversionError,
    DuplicatePayment,
    InvoiceNotFound,
    InvoiceNotPayable,
    LedgerWriteError,
)
from inpaycheckout.extensions import db
from inpaycheckout.models import Currency, Invoice, InvoicePayment

log = logging.getLogger(__name__)


class Ledger:

    def exists(self, reference: str) -> bool:
        raise NotImplementedError

    def resolve_invoice(self, invoice_id: int) -> Invoice:
        raise NotImplementedError

    def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> float:
        raise NotImplementedError

    def currency_decimals(self, code: str) -> int:
        return 2

    def apply_payment(self, invoice_id: int, reference: str, amount: float, fee: float = 0.0, gateway: str = "") -> None:
        raise NotImplementedError


class SqlLedger(Ledger):

    def exists(self, reference: str) -> bool:
        ref = (reference or "").strip()
        if not ref:
            return False
        try:
            row = db.session.query(InvoicePayment.id).filter_by(transaction_id=ref).first()
        except SQLAlchemyError:
            # Treated as not found: the commit-time unique index still guards duplicates.
            db.session.rollback()
            log.exception("payment lookup failed for %s", ref)
            return False
        return row is not None

    def resolve_invoice(self, invoice_id: int) -> Invoice:
        inv = db.session.get(Invoice, int(invoice_id))
        if inv is None:
            raise InvoiceNotFound(f"Invoice {invoice_id} not found")
        if inv.status == "Cancelled":
            raise InvoiceNotPayable(f"Invoice {invoice_id} is cancelled")
        if inv.status == "Paid":
            raise InvoiceNotPayable(f"Invoice {invoice_id} is already paid")
        return inv

    def _currency(self, code: str) -> Currency:
        cur = Currency.query.filter_by(code=(code or "").strip().upper()).first()
        if cur is None:
            raise CurrencyConversionError(f"Unknown currency {code}")
        return cur

    def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> float:
        src = self._currency(from_currency)
        dst = self._currency(to_currency)
        if not src.rate or src.rate <= 0:
            raise CurrencyConversionError(f"Currency {src.code} has no exchange rate")
        # Rates are relative to the default currency
        return float(amount) / float(src.rate) * float(dst.rate or 0.0)

    def currency_decimals(self, code: str) -> int:
        cur = Currency.query.filter_by(code=(code or "").strip().upper()).first()
        if cur is None or cur.decimals is None:
            return 2
        return int(cur.decimals)

    def apply_payment(self, invoice_id: int, reference: str, amount: float, fee: float = 0.0, gateway: str = "") -> None:
        inv = self.resolve_invoice(invoice_id)
        payment = InvoicePayment(
            invoice_id=int(inv.id),
            transaction_id=reference,
            amount=float(amount),
            fee=float(fee or 0.0),
            gateway=gateway or "inpaycheckout",
        )
        try:
            db.session.add(payment)
            db.session.flush()
            if inv.balance() <= 0:
                inv.status = "Paid"
                inv.paid_at = datetime.utcnow()
                db.session.add(inv)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise DuplicatePayment(f"Payment {reference} already recorded")
        except SQLAlchemyError as e:
            db.session.rollback()
            raise LedgerWriteError(f"Could not record payment {reference}: {e}")
