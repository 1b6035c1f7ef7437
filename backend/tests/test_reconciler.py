from unittest.mock import Mock

import pytest

from inpaycheckout.config import GatewayConfig
from inpaycheckout.extensions import db
from inpaycheckout.models import GatewayLog, Invoice, InvoicePayment
from inpaycheckout.payments.ledger import SqlLedger
from inpaycheckout.payments.payload import TransactionPayload
from inpaycheckout.payments.reconciler import PaymentReconciler, minor_to_major
from inpaycheckout.utils.gateway_log import GatewayLogger

pytestmark = pytest.mark.payment

REF = "42_1700000000_ab12cd34"


def _payload(amount=150000, reference=REF):
    return TransactionPayload.from_dict({"reference": reference, "amount": amount, "status": "completed"})


def _reconciler(ledger=None, **cfg):
    config = GatewayConfig(secret_key="sk_test", gateway_logs=True, **cfg)
    return PaymentReconciler(ledger or SqlLedger(), config, GatewayLogger(True))


def test_minor_units_are_divided_by_100():
    assert minor_to_major(150000) == 1500.00
    assert minor_to_major(99) == 0.99
    assert minor_to_major(0) == 0.0


def test_apply_records_one_payment(seeded):
    res = _reconciler().apply(42, REF, _payload())
    assert res.ok and not res.duplicate
    assert res.amount == 1500.00

    rows = InvoicePayment.query.filter_by(transaction_id=REF).all()
    assert len(rows) == 1
    assert rows[0].invoice_id == 42
    assert rows[0].amount == 1500.00
    assert rows[0].fee == 0.0
    assert rows[0].gateway == "inpaycheckout"
    inv = db.session.get(Invoice, 42)
    assert inv.status == "Paid"
    assert inv.paid_at is not None


def test_apply_twice_is_idempotent(seeded):
    rec = _reconciler()
    first = rec.apply(45, REF, _payload(100000))
    second = rec.apply(45, REF, _payload(100000))
    assert first.ok and not first.duplicate
    assert second.ok and second.duplicate
    assert InvoicePayment.query.filter_by(transaction_id=REF).count() == 1
    assert db.session.get(Invoice, 45).status == "Unpaid"


def test_partial_payment_leaves_invoice_unpaid(seeded):
    _reconciler().apply(45, REF, _payload(100000))
    inv = db.session.get(Invoice, 45)
    assert inv.status == "Unpaid"
    assert inv.balance() == 2000.0


def test_unique_index_stops_race_past_precheck(seeded):
    class BlindLedger(SqlLedger):
        def exists(self, reference):
            return False

    rec = _reconciler(BlindLedger())
    assert rec.apply(45, REF, _payload(100000)).ok
    second = rec.apply(45, REF, _payload(100000))
    assert second.ok and second.duplicate
    assert InvoicePayment.query.filter_by(transaction_id=REF).count() == 1


def test_missing_invoice_is_logged_not_raised(seeded):
    res = _reconciler().apply(999, REF, _payload())
    assert res.ok is False
    assert "not found" in res.error
    assert InvoicePayment.query.count() == 0
    log = GatewayLog.query.order_by(GatewayLog.id.desc()).first()
    assert log.status == "Unsuccessful"
    assert log.message.startswith("Payment processing error")


def test_cancelled_invoice_rejected(seeded):
    res = _reconciler().apply(44, REF, _payload())
    assert res.ok is False
    assert "cancelled" in res.error


def test_paid_invoice_rejected(seeded):
    rec = _reconciler()
    rec.apply(42, REF, _payload())
    res = rec.apply(42, "42_1700000999_ffffffff", _payload(reference="42_1700000999_ffffffff"))
    assert res.ok is False
    assert "already paid" in res.error


def test_currency_conversion_to_invoice_currency(seeded):
    rec = _reconciler(convert_to="NGN")
    res = rec.apply(43, REF, _payload(1000000))
    assert res.ok
    # 10,000.00 NGN at 0.00065 USD/NGN
    assert res.amount == 6.5
    assert InvoicePayment.query.filter_by(transaction_id=REF).one().amount == 6.5


def test_no_conversion_when_currency_matches(seeded):
    ledger = SqlLedger()
    ledger.convert_currency = Mock(side_effect=AssertionError("should not convert"))
    res = _reconciler(ledger, convert_to="NGN").apply(42, REF, _payload())
    assert res.ok and res.amount == 1500.0


def test_unknown_conversion_currency_fails_softly(seeded):
    res = _reconciler(convert_to="GHS").apply(42, REF, _payload())
    assert res.ok is False
    assert "GHS" in res.error
    assert InvoicePayment.query.count() == 0


def test_unexpected_ledger_error_is_contained(seeded):
    ledger = SqlLedger()
    ledger.apply_payment = Mock(side_effect=RuntimeError("disk full"))
    res = _reconciler(ledger).apply(42, REF, _payload())
    assert res.ok is False
    assert res.error == "Payment processing error"


def test_idempotency_lookup_error_is_contained(seeded):
    ledger = SqlLedger()
    ledger.exists = Mock(side_effect=RuntimeError("ledger offline"))
    res = _reconciler(ledger).apply(42, REF, _payload())
    assert res.ok is False
    assert res.error == "Payment processing error"
    assert InvoicePayment.query.count() == 0
    assert GatewayLog.query.order_by(GatewayLog.id.desc()).first().status == "Error"


def test_exists_treats_empty_and_lookup_failure_as_absent(seeded, monkeypatch):
    ledger = SqlLedger()
    assert ledger.exists("") is False
    assert ledger.exists("   ") is False

    from sqlalchemy.exc import OperationalError
    from inpaycheckout.payments import ledger as ledger_module

    broken = Mock()
    broken.session.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))
    monkeypatch.setattr(ledger_module, "db", broken)
    assert ledger.exists(REF) is False


def test_gateway_log_disabled_writes_nothing(seeded):
    config = GatewayConfig(secret_key="sk_test", gateway_logs=False)
    PaymentReconciler(SqlLedger(), config, GatewayLogger(False)).apply(42, REF, _payload())
    assert GatewayLog.query.count() == 0
    assert InvoicePayment.query.count() == 1
