from __future__ import annotations

import time
import uuid
from urllib.parse import urlencode

from inpaycheckout.config import CALLBACK_PATH, GatewayConfig
from inpaycheckout.models import Invoice

SUPPORTED_CURRENCY = "NGN"
CHECKOUT_SCRIPT = "https://js.inpaycheckout.com/v1/inline.js"


def new_reference(invoice_id: int) -> str:
    return f"{int(invoice_id)}_{int(time.time())}_{uuid.uuid4().hex[:8]}"


def to_minor_units(amount: float) -> int:
    return int(round(float(amount) * 100))


def gateway_config_fields(config: GatewayConfig) -> dict:
    """Settings form the billing system renders for this gateway."""
    return {
        "FriendlyName": {"Type": "System", "Value": "iNPAY Checkout (PayID & Bank Transfer)"},
        "webhook": {
            "FriendlyName": "Webhook URL",
            "Type": "display",
            "Description": "Copy this URL to your iNPAY Dashboard > Settings > Webhooks",
            "Value": config.webhook_url,
        },
        "gatewayLogs": {
            "FriendlyName": "Gateway logs",
            "Type": "yesno",
            "Description": "Tick to enable gateway logs for debugging",
            "Value": "on" if config.gateway_logs else "",
        },
        "secretKey": {
            "FriendlyName": "Secret Key",
            "Type": "password",
            "Size": "64",
            "Description": "Your secret key from iNPAY Checkout Dashboard",
            "Value": ("*" * 8 + config.secret_key[-4:]) if config.secret_key else "",
        },
        "publicKey": {
            "FriendlyName": "Public Key",
            "Type": "text",
            "Size": "64",
            "Description": "Your public key from iNPAY Checkout Dashboard",
            "Value": config.public_key,
        },
    }


def build_checkout(invoice: Invoice, client: dict, config: GatewayConfig) -> dict:
    """Parameters for the inline checkout of one invoice.

    Returns {"ok": False, "error": ...} when the invoice cannot be paid through iNPAY.
    """
    currency = (invoice.currency_code or "").upper()
    if currency != SUPPORTED_CURRENCY:
        return {"ok": False, "error": "iNPAY Checkout only supports NGN currency."}
    if invoice.status != "Unpaid":
        return {"ok": False, "error": f"Invoice is {invoice.status.lower()}"}

    amount = invoice.balance()
    if amount <= 0:
        return {"ok": False, "error": "Invoice has no balance due"}

    ref = new_reference(int(invoice.id))
    phone = str(client.get("phonenumber") or "").strip()
    return_url = f"{config.system_url}{CALLBACK_PATH}?" + urlencode({"invoiceid": int(invoice.id), "reference": ref})

    return {
        "ok": True,
        "script": CHECKOUT_SCRIPT,
        "checkout": {
            "apiKey": config.public_key,
            "amount": to_minor_units(amount),
            "currency": currency,
            "email": str(client.get("email") or "").strip(),
            "firstName": str(client.get("firstname") or "").strip(),
            "lastName": str(client.get("lastname") or "").strip(),
            "metadata": {
                "invoice_id": int(invoice.id),
                "gateway": "whmcs",
                "reference": ref,
                "phone": phone,
            },
        },
        "reference": ref,
        "return_url": return_url,
    }
