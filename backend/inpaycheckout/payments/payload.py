"""Typed shapes for processor payloads.

The processor delivers metadata as an object on webhooks but as a JSON string
when it was passed through the inline checkout, and amounts may arrive as
ints, floats or strings. Everything is normalized here once; the router,
client and reconciler only ever see these dataclasses.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

STATUSES = ("pending", "completed", "failed", "cancelled")


def _as_dict(value: Any) -> dict:
    if isinstance(value, dict):
        return value
    if isinstance(value, (str, bytes)) and value:
        try:
            parsed = json.loads(value)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _as_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return 0


def parse_invoice_id(value: Any) -> Optional[int]:
    try:
        invoice_id = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return invoice_id if invoice_id > 0 else None


@dataclass
class PaymentMetadata:
    invoice_id: Optional[int] = None
    host_reference: str = ""
    phone: str = ""
    callback_url: str = ""
    gateway: str = ""

    @classmethod
    def from_raw(cls, raw: Any) -> "PaymentMetadata":
        data = _as_dict(raw)
        return cls(
            invoice_id=parse_invoice_id(data.get("invoice_id")),
            host_reference=_as_str(data.get("reference")),
            phone=_as_str(data.get("phone")),
            callback_url=_as_str(data.get("callback_url") or data.get("callbackUrl")),
            gateway=_as_str(data.get("gateway")),
        )


@dataclass
class TransactionPayload:
    reference: str = ""
    amount_minor_units: int = 0
    status: str = "pending"
    metadata: PaymentMetadata = field(default_factory=PaymentMetadata)

    @classmethod
    def from_dict(cls, raw: Any) -> "TransactionPayload":
        data = _as_dict(raw)
        status = _as_str(data.get("status")).lower()
        return cls(
            reference=_as_str(data.get("reference")),
            amount_minor_units=_as_int(data.get("amount")),
            status=status if status in STATUSES else "pending",
            metadata=PaymentMetadata.from_raw(data.get("metadata")),
        )

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"


@dataclass
class WebhookEvent:
    event_type: str
    data: TransactionPayload
    signature: str = ""
    timestamp_ms: str = ""

    @classmethod
    def from_body(cls, body: Any, signature: str = "", timestamp_ms: str = "") -> Optional["WebhookEvent"]:
        """Build an event from a parsed JSON body; None when `event` is missing."""
        if not isinstance(body, dict):
            return None
        event_type = _as_str(body.get("event"))
        if not event_type:
            return None
        return cls(
            event_type=event_type,
            data=TransactionPayload.from_dict(body.get("data")),
            signature=signature,
            timestamp_ms=timestamp_ms,
        )


@dataclass
class VerificationResult:
    success: bool
    data: Optional[TransactionPayload] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: TransactionPayload) -> "VerificationResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: str) -> "VerificationResult":
        return cls(success=False, error=error)
