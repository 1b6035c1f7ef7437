"""Callback endpoint logic, independent of the web framework.

The billing system routes three kinds of traffic to one URL:

- processor webhooks (POST, signed),
- client-side verification after the checkout modal closes
  (POST with `X-Verify-Payment`),
- the customer's return from checkout (GET with `invoiceid` and `reference`).

`CallbackHandler.handle` takes a `RequestContext` and returns a
`CallbackResponse`; the Flask blueprint only translates in and out.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import urlencode

from inpaycheckout.config import GatewayConfig
from inpaycheckout.errors import AuthenticationFailure, GatewayError, MalformedPayload, ReplayRejected
from inpaycheckout.payments import events
from inpaycheckout.payments.events import RouteAction
from inpaycheckout.payments.ledger import Ledger
from inpaycheckout.payments.payload import WebhookEvent, parse_invoice_id
from inpaycheckout.payments.reconciler import PaymentReconciler
from inpaycheckout.utils.gateway_log import INFORMATION, SUCCESSFUL, UNSUCCESSFUL, GatewayLogger
from inpaycheckout.utils.inpay_client import InpayClient
from inpaycheckout.utils.signatures import is_fresh, verify_signature

log = logging.getLogger(__name__)

VERIFY_HEADER = "x-verify-payment"
SIGNATURE_HEADER = "x-webhook-signature"
TIMESTAMP_HEADER = "x-webhook-timestamp"
EVENT_HEADER = "x-webhook-event"


@dataclass
class RequestContext:
    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    query: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.method = (self.method or "").upper()
        self.headers = {str(k).lower(): str(v) for k, v in (self.headers or {}).items()}

    def header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)


@dataclass
class CallbackResponse:
    status: int
    body: str = ""
    json: Optional[dict] = None
    headers: dict = field(default_factory=dict)

    @classmethod
    def text(cls, status: int, body: str) -> "CallbackResponse":
        return cls(status=status, body=body)

    @classmethod
    def payload(cls, status: int, data: dict) -> "CallbackResponse":
        return cls(status=status, json=data)


def _sanitize_int(value: Optional[str]) -> Optional[int]:
    digits = re.sub(r"[^0-9]", "", value or "")
    return parse_invoice_id(digits) if digits else None


class CallbackHandler:

    def __init__(self, config: GatewayConfig, ledger: Ledger, client: InpayClient, gateway_log: GatewayLogger | None = None):
        self.config = config
        self.ledger = ledger
        self.client = client
        self.gateway_log = gateway_log or GatewayLogger(config.gateway_logs)
        self.reconciler = PaymentReconciler(ledger, config, self.gateway_log)

    def _log(self, message: str, status: str) -> None:
        self.gateway_log.log(self.config.module, message, status)

    def handle(self, ctx: RequestContext) -> CallbackResponse:
        if not self.config.active:
            return CallbackResponse.text(404, "Module Not Activated")

        if ctx.method == "POST":
            if VERIFY_HEADER in ctx.headers:
                return self.handle_verification(ctx)
            try:
                return self.handle_webhook(ctx)
            except GatewayError as e:
                return CallbackResponse.text(e.status_code, e.public_message)

        if ctx.method == "GET":
            return self.handle_return(ctx)

        return CallbackResponse(status=405, body="Method Not Allowed", headers={"Allow": "GET, POST"})

    # -------------------------
    # Webhooks
    # -------------------------

    def authenticate(self, ctx: RequestContext) -> WebhookEvent:
        """Boundary gates: timestamp, signature, then body shape. Raises on rejection."""
        timestamp = ctx.header(TIMESTAMP_HEADER)
        if not is_fresh(timestamp, self.config.timestamp_tolerance_minutes):
            self._log(f"Invalid webhook timestamp: {timestamp}", UNSUCCESSFUL)
            raise ReplayRejected()

        signature = ctx.header(SIGNATURE_HEADER)
        if not verify_signature(ctx.body, signature, self.config.secret_key):
            self._log("Invalid webhook signature", UNSUCCESSFUL)
            raise AuthenticationFailure()

        try:
            body = json.loads(ctx.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise MalformedPayload()

        event = WebhookEvent.from_body(body, signature=signature, timestamp_ms=timestamp)
        if event is None:
            raise MalformedPayload()
        return event

    def handle_webhook(self, ctx: RequestContext) -> CallbackResponse:
        event = self.authenticate(ctx)
        self._log(f"Webhook event received: {event.event_type}", INFORMATION)

        advisory = ctx.header(EVENT_HEADER)
        if advisory and advisory != event.event_type:
            log.info("webhook header event %s differs from body event %s", advisory, event.event_type)

        try:
            self.dispatch(event)
        except Exception:
            # Acknowledged regardless; the processor redelivers anything but 200
            log.exception("webhook processing failed for %s", event.data.reference)
        return CallbackResponse.text(200, "OK")

    def dispatch(self, event: WebhookEvent) -> RouteAction:
        action = events.route(event)
        ref = action.processor_reference

        if action.kind == events.RECONCILE:
            self._log(f"Payment completion webhook received for reference: {ref}", SUCCESSFUL)
            self.process_completion(action)
        elif action.kind == events.UNRESOLVED:
            self._log(f"Payment completion webhook could not be matched to an invoice for reference: {ref}", UNSUCCESSFUL)
        elif action.kind == events.FAILED:
            self._log(f"Payment failure webhook received for reference: {ref}", UNSUCCESSFUL)
        elif action.kind == events.CANCELLED:
            self._log(f"Payment cancellation webhook received for reference: {ref}", UNSUCCESSFUL)
        else:
            self._log(f"Unhandled webhook event: {event.event_type}", INFORMATION)
        return action

    def process_completion(self, action: RouteAction) -> None:
        host_ref = action.host_reference
        if self.ledger.exists(host_ref):
            self._log(f"Payment already processed for reference: {host_ref} (duplicate prevented)", INFORMATION)
            return

        result = self.client.verify(action.processor_reference, self.config.secret_key)
        if not result.success or not result.data.is_completed:
            reason = result.error or f"status {result.data.status}"
            self._log(f"Webhook received but API verification failed for reference: {action.processor_reference} ({reason})", UNSUCCESSFUL)
            return

        outcome = self.reconciler.apply(action.invoice_id, host_ref, result.data)
        if outcome.ok and not outcome.duplicate:
            self._log(f"Payment successfully processed via webhook for reference: {host_ref}", SUCCESSFUL)

    # -------------------------
    # Client verification
    # -------------------------

    def handle_verification(self, ctx: RequestContext) -> CallbackResponse:
        try:
            body = json.loads(ctx.body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError):
            body = None
        if not isinstance(body, dict):
            return CallbackResponse.payload(400, {"success": False, "message": "Invalid request body"})

        reference = str(body.get("reference") or "").strip()
        invoice_id = parse_invoice_id(body.get("invoice_id"))
        if not reference or not invoice_id:
            return CallbackResponse.payload(400, {"success": False, "message": "Missing reference or invoice_id"})

        if self.ledger.exists(reference):
            self._log(f"Verification requested for already processed reference: {reference}", INFORMATION)
            return CallbackResponse.payload(200, {"success": True, "message": "Payment already processed"})

        result = self.client.verify(reference, self.config.secret_key)
        if not result.success:
            self._log(f"Verification failed for reference: {reference} ({result.error})", UNSUCCESSFUL)
            return CallbackResponse.payload(400, {"success": False, "message": result.error or "Verification failed"})

        data = result.data
        if not data.is_completed:
            return CallbackResponse.payload(400, {"success": False, "message": f"Payment not completed (status: {data.status})"})

        owner = data.metadata.invoice_id or events.invoice_id_from_reference(reference)
        if owner != invoice_id:
            self._log(f"Invoice mismatch for reference: {reference} ({owner} != {invoice_id})", UNSUCCESSFUL)
            return CallbackResponse.payload(400, {"success": False, "message": "Transaction does not belong to this invoice"})

        outcome = self.reconciler.apply(invoice_id, reference, data)
        status = 200 if outcome.ok else 400
        return CallbackResponse.payload(status, {"success": outcome.ok, "message": outcome.message})

    # -------------------------
    # Customer return
    # -------------------------

    def invoice_url(self, invoice_id: int, applied: bool) -> str:
        flag = {"paymentsuccess": 1} if applied else {"paymentfailed": 1}
        query = urlencode({"id": invoice_id, **flag})
        return f"{self.config.system_url}/viewinvoice.php?{query}"

    def handle_return(self, ctx: RequestContext) -> CallbackResponse:
        invoice_id = _sanitize_int(ctx.query.get("invoiceid"))
        reference = (ctx.query.get("reference") or "").strip()
        if not invoice_id or not reference:
            return CallbackResponse.text(400, "Invalid parameters")

        applied = self.ledger.exists(reference)
        if applied:
            self._log(f"Payment already processed via webhook for reference: {reference}", INFORMATION)
        else:
            self._log(f"GET callback received for reference: {reference} (payment processing pending)", INFORMATION)

        if self.config.return_redirect:
            return CallbackResponse(status=302, body="Redirecting to invoice page...", headers={"Location": self.invoice_url(invoice_id, applied)})
        return CallbackResponse.text(200, "OK")
