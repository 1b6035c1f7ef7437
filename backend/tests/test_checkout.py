import re
from urllib.parse import parse_qs, urlparse

from inpaycheckout.config import GatewayConfig
from inpaycheckout.extensions import db
from inpaycheckout.models import Invoice
from inpaycheckout.payments.checkout import build_checkout, gateway_config_fields, new_reference, to_minor_units
from inpaycheckout.payments.events import invoice_id_from_reference

CONFIG = GatewayConfig.from_mapping({
    "INPAY_SECRET_KEY": "sk_live_0123456789",
    "INPAY_PUBLIC_KEY": "pk_live_abc",
    "INPAY_SYSTEM_URL": "https://billing.example.com/",
})


def test_reference_follows_invoice_timestamp_suffix_convention():
    ref = new_reference(42)
    assert re.fullmatch(r"42_\d{10}_[0-9a-f]{8}", ref)
    assert invoice_id_from_reference(ref) == 42


def test_to_minor_units():
    assert to_minor_units(1500) == 150000
    assert to_minor_units(19.99) == 1999


def test_build_checkout_for_ngn_invoice(seeded):
    inv = db.session.get(Invoice, 42)
    res = build_checkout(inv, {"email": " ada@example.com ", "firstname": "Ada", "lastname": "Obi", "phonenumber": "0803"}, CONFIG)
    assert res["ok"] is True
    checkout = res["checkout"]
    assert checkout["amount"] == 150000
    assert checkout["currency"] == "NGN"
    assert checkout["apiKey"] == "pk_live_abc"
    assert checkout["email"] == "ada@example.com"
    assert checkout["metadata"]["invoice_id"] == 42
    assert checkout["metadata"]["reference"] == res["reference"]

    url = urlparse(res["return_url"])
    assert url.netloc == "billing.example.com"
    assert url.path == "/modules/gateways/callback/inpaycheckout"
    assert parse_qs(url.query) == {"invoiceid": ["42"], "reference": [res["reference"]]}


def test_build_checkout_rejects_other_currencies(seeded):
    res = build_checkout(db.session.get(Invoice, 43), {}, CONFIG)
    assert res == {"ok": False, "error": "iNPAY Checkout only supports NGN currency."}


def test_build_checkout_rejects_cancelled_invoice(seeded):
    res = build_checkout(db.session.get(Invoice, 44), {}, CONFIG)
    assert res["ok"] is False


def test_config_fields_mask_secret():
    fields = gateway_config_fields(CONFIG)
    assert fields["secretKey"]["Value"].endswith("6789")
    assert "0123456789" not in fields["secretKey"]["Value"]
    assert fields["webhook"]["Value"] == "https://billing.example.com/modules/gateways/callback/inpaycheckout"


def test_config_endpoint(client):
    resp = client.get("/api/gateway/config")
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["active"] is True
    assert body["fields"]["publicKey"]["Value"] == "pk_test_7a1c"


def test_checkout_endpoint(client, seeded):
    resp = client.post("/api/gateway/checkout", json={"invoice_id": 42, "client": {"email": "ada@example.com"}})
    assert resp.status_code == 200
    assert resp.get_json()["checkout"]["amount"] == 150000

    assert client.post("/api/gateway/checkout", json={"invoice_id": 4242}).status_code == 404
    assert client.post("/api/gateway/checkout", json={}).status_code == 400


def test_health(client):
    resp = client.get("/api/health")
    assert resp.get_json()["db"] == "ok"
