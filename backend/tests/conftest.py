import json

import pytest

from inpaycheckout import create_app
from inpaycheckout.extensions import db
from inpaycheckout.models import Currency, Invoice
from inpaycheckout.payments.payload import TransactionPayload, VerificationResult
from inpaycheckout.utils.signatures import now_ms, sign_payload

SECRET = "sk_test_5f2b9c0d1e"
CALLBACK_URL = "/modules/gateways/callback/inpaycheckout"


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "payment: mark test as payment/reconciliation related"
    )
    config.addinivalue_line(
        "markers",
        "integration: mark test as going through the Flask app end to end"
    )


class FakeInpayClient:
    """Stands in for InpayClient; returns canned results and records calls."""

    def __init__(self):
        self.calls = []
        self.results = {}
        self.default = None

    def set_completed(self, reference, amount=150000, metadata=None):
        self.results[reference] = VerificationResult.ok(TransactionPayload.from_dict({
            "reference": reference,
            "amount": amount,
            "status": "completed",
            "metadata": metadata or {},
        }))

    def set_result(self, reference, result):
        self.results[reference] = result

    def verify(self, reference, secret=None):
        self.calls.append((reference, secret))
        if reference in self.results:
            return self.results[reference]
        return self.default or VerificationResult.failed("API Error: Transaction not found")


@pytest.fixture()
def config_overrides():
    return {
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "INPAY_SECRET_KEY": SECRET,
        "INPAY_PUBLIC_KEY": "pk_test_7a1c",
        "INPAY_GATEWAY_LOGS": True,
        "INPAY_SYSTEM_URL": "https://billing.example.com",
        "INPAY_CONVERT_TO": "",
        "INPAY_RETURN_REDIRECT": False,
    }


@pytest.fixture()
def app(config_overrides):
    app = create_app(config_overrides)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def fake_client(app):
    fake = FakeInpayClient()
    app.extensions["inpay_client"] = fake
    return fake


@pytest.fixture()
def client(app, fake_client):
    return app.test_client()


@pytest.fixture()
def seeded(app):
    db.session.add_all([
        Currency(code="NGN", prefix="₦", rate=1.0, decimals=2, is_default=True),
        Currency(code="USD", prefix="$", rate=0.00065, decimals=2),
        Invoice(id=42, user_id=7, currency_code="NGN", total=1500.0, status="Unpaid"),
        Invoice(id=43, user_id=7, currency_code="USD", total=10.0, status="Unpaid"),
        Invoice(id=44, user_id=8, currency_code="NGN", total=500.0, status="Cancelled"),
        Invoice(id=45, user_id=8, currency_code="NGN", total=3000.0, status="Unpaid"),
    ])
    db.session.commit()
    return {"invoice_id": 42}


def webhook_request(body, secret=SECRET, timestamp=None, signature=None, event_header=None):
    """Raw body and headers for a signed webhook delivery."""
    raw = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Timestamp": str(now_ms() if timestamp is None else timestamp),
        "X-Webhook-Signature": signature if signature is not None else "sha256=" + sign_payload(raw, secret),
    }
    if event_header:
        headers["X-Webhook-Event"] = event_header
    return raw, headers


def completed_event(reference="42_1700000000_ab12cd34", invoice_id=42, event="payment.virtual_account.completed", amount=150000, metadata=True):
    data = {"reference": reference, "amount": amount, "status": "completed"}
    if metadata:
        data["metadata"] = {"invoice_id": invoice_id, "reference": reference, "gateway": "whmcs"}
    return {"event": event, "data": data}
