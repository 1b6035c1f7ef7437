from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from inpaycheckout.payments.payload import WebhookEvent, parse_invoice_id

# Payment rails the processor reports on; each emits the same three outcomes
RAILS = ("virtual_payid", "checkout_payid", "virtual_account", "checkout_virtual_account")

COMPLETED_EVENTS = frozenset(f"payment.{rail}.completed" for rail in RAILS)
FAILED_EVENTS = frozenset(f"payment.{rail}.failed" for rail in RAILS)
CANCELLED_EVENTS = frozenset(f"payment.{rail}.cancelled" for rail in RAILS)

RECONCILE = "reconcile"
FAILED = "failed"
CANCELLED = "cancelled"
UNHANDLED = "unhandled"
UNRESOLVED = "unresolved"


@dataclass
class RouteAction:
    kind: str
    processor_reference: str = ""
    invoice_id: Optional[int] = None
    host_reference: str = ""

    @property
    def mutates_ledger(self) -> bool:
        return self.kind == RECONCILE


def invoice_id_from_reference(reference: str) -> Optional[int]:
    """Last-resort parse of `{invoiceId}_{timestamp}_{suffix}` references."""
    parts = (reference or "").split("_")
    if len(parts) < 2:
        return None
    return parse_invoice_id(parts[0])


def resolve_identity(event: WebhookEvent) -> tuple[Optional[int], str]:
    processor_ref = event.data.reference
    meta = event.data.metadata
    invoice_id, host_ref = meta.invoice_id, meta.host_reference
    if invoice_id and host_ref:
        return invoice_id, host_ref
    fallback = invoice_id_from_reference(processor_ref)
    if fallback:
        return fallback, processor_ref
    return None, ""


def route(event: WebhookEvent) -> RouteAction:
    name = event.event_type
    ref = event.data.reference

    if name in COMPLETED_EVENTS:
        invoice_id, host_ref = resolve_identity(event)
        if not invoice_id or not host_ref:
            return RouteAction(kind=UNRESOLVED, processor_reference=ref)
        return RouteAction(kind=RECONCILE, processor_reference=ref, invoice_id=invoice_id, host_reference=host_ref)

    if name in FAILED_EVENTS:
        return RouteAction(kind=FAILED, processor_reference=ref)

    if name in CANCELLED_EVENTS:
        return RouteAction(kind=CANCELLED, processor_reference=ref)

    return RouteAction(kind=UNHANDLED, processor_reference=ref)
