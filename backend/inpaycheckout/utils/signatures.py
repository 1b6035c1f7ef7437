from __future__ import annotations

import hashlib
import hmac
import time

SIGNATURE_PREFIX = "sha256="
DEFAULT_TOLERANCE_MINUTES = 5


def sign_payload(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature_header: str | None, secret: str) -> bool:
    """Check `X-Webhook-Signature` against an HMAC-SHA256 of the raw body.

    The body must be the bytes exactly as received; re-serialized JSON will not match.
    """
    if not raw_body or not signature_header:
        return False
    signature = signature_header.strip()
    if signature.startswith(SIGNATURE_PREFIX):
        signature = signature[len(SIGNATURE_PREFIX):]
    digest = sign_payload(raw_body, secret or "")
    try:
        return hmac.compare_digest(digest.encode("ascii"), signature.encode("utf-8"))
    except UnicodeError:
        return False


def now_ms() -> int:
    return int(time.time() * 1000)


def is_fresh(timestamp_ms: str | None, tolerance_minutes: int = DEFAULT_TOLERANCE_MINUTES, now: int | None = None) -> bool:
    """Replay window check on `X-Webhook-Timestamp` (epoch millis), skew allowed both ways."""
    raw = (timestamp_ms or "").strip()
    if not (raw.isascii() and raw.isdigit()):
        return False
    ts = int(raw)
    current = now_ms() if now is None else int(now)
    return abs(current - ts) <= int(tolerance_minutes) * 60 * 1000
