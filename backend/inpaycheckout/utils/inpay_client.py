from __future__ import annotations

import logging
import ssl
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter

from inpaycheckout.config import DEFAULT_API_BASE
from inpaycheckout.payments.payload import TransactionPayload, VerificationResult

log = logging.getLogger(__name__)

STATUS_PATH = "/api/v1/developer/transaction/status"
VERIFY_PATH = "/api/v1/developer/transaction/verify"

CONNECT_TIMEOUT = 10
READ_TIMEOUT = 30

# Higher rank wins when both attempts fail
_RANK_TRANSPORT = 1
_RANK_HTTP = 2
_RANK_JSON = 3
_RANK_API = 4


class TLS12Adapter(HTTPAdapter):
    """Transport adapter that refuses anything older than TLS 1.2."""

    def init_poolmanager(self, *args, **kwargs):
        ctx = ssl.create_default_context()
        ctx.minimum_version = ssl.TLSVersion.TLSv1_2
        kwargs["ssl_context"] = ctx
        return super().init_poolmanager(*args, **kwargs)


def build_session() -> requests.Session:
    s = requests.Session()
    s.mount("https://", TLS12Adapter())
    return s


class InpayClient:
    """Status/verify calls against the iNPAY Checkout developer API."""

    def __init__(self, secret_key: str = "", api_base: str = DEFAULT_API_BASE, session: requests.Session | None = None):
        self.secret_key = (secret_key or "").strip()
        self.api_base = (api_base or DEFAULT_API_BASE).rstrip("/")
        self.session = session or build_session()

    def _headers(self, secret: str, json_body: bool = False) -> dict:
        h = {"Authorization": f"Bearer {secret}", "Accept": "application/json"}
        if json_body:
            h["Content-Type"] = "application/json"
        return h

    def _attempt(self, method: str, reference: str, secret: str) -> tuple[VerificationResult, int]:
        if method == "GET":
            url = f"{self.api_base}{STATUS_PATH}?reference={quote(reference, safe='')}"
            kwargs = {"headers": self._headers(secret)}
        else:
            url = f"{self.api_base}{VERIFY_PATH}"
            kwargs = {"headers": self._headers(secret, json_body=True), "json": {"reference": reference}}

        try:
            r = self.session.request(method, url, timeout=(CONNECT_TIMEOUT, READ_TIMEOUT), **kwargs)
        except requests.RequestException as e:
            return VerificationResult.failed(f"Transport error ({method}): {e}"), _RANK_TRANSPORT

        try:
            body = r.json() if r.content else None
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("success") is False:
            message = body.get("message") or "Unknown error"
            return VerificationResult.failed(f"API Error: {message}"), _RANK_API

        if r.status_code != 200:
            return VerificationResult.failed(f"API Error: HTTP {r.status_code} - Reference: {reference}"), _RANK_HTTP

        if not isinstance(body, dict):
            return VerificationResult.failed("Invalid JSON response from API"), _RANK_JSON

        data = body.get("data")
        if body.get("success") is not True or not isinstance(data, dict) or not data:
            message = body.get("message") or "Transaction data missing"
            return VerificationResult.failed(f"API Error: {message}"), _RANK_API

        return VerificationResult.ok(TransactionPayload.from_dict(data)), 0

    def verify(self, reference: str, secret: str | None = None) -> VerificationResult:
        """GET the status endpoint, falling back once to POST verify.

        No retries beyond the two endpoints. On double failure the most specific
        error wins: API-reported message, then invalid JSON, then HTTP status,
        then transport error.
        """
        reference = (reference or "").strip()
        key = (secret if secret is not None else self.secret_key).strip()
        if not reference:
            return VerificationResult.failed("Missing transaction reference")
        if not key:
            return VerificationResult.failed("Secret key not configured")

        first, first_rank = self._attempt("GET", reference, key)
        if first.success:
            return first
        log.info("inpay status check failed for %s: %s; falling back to verify", reference, first.error)

        second, second_rank = self._attempt("POST", reference, key)
        if second.success:
            return second

        return second if second_rank >= first_rank else first
