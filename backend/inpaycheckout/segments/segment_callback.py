from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify, request

from inpaycheckout.callback import CallbackHandler, CallbackResponse, RequestContext
from inpaycheckout.config import CALLBACK_PATH, GatewayConfig
from inpaycheckout.payments.ledger import SqlLedger
from inpaycheckout.utils.inpay_client import InpayClient

callback_bp = Blueprint("callback_bp", __name__)


def gateway_config() -> GatewayConfig:
    return GatewayConfig.from_mapping(current_app.config, system_url=request.host_url)


def build_handler() -> CallbackHandler:
    cfg = gateway_config()
    client = current_app.extensions.get("inpay_client") or InpayClient(cfg.secret_key, cfg.api_base)
    ledger = current_app.extensions.get("inpay_ledger") or SqlLedger()
    return CallbackHandler(cfg, ledger, client)


def _to_flask(res: CallbackResponse):
    if res.json is not None:
        resp = jsonify(res.json)
        resp.status_code = res.status
    else:
        resp = Response(res.body, status=res.status, mimetype="text/plain")
    for k, v in res.headers.items():
        resp.headers[k] = v
    return resp


@callback_bp.route(CALLBACK_PATH, methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
def inpay_callback():
    ctx = RequestContext(
        method=request.method,
        headers=dict(request.headers),
        body=request.get_data(cache=False) or b"",
        query=request.args.to_dict(),
    )
    return _to_flask(build_handler().handle(ctx))
