from __future__ import annotations

from flask import Blueprint, jsonify, request

from inpaycheckout.extensions import db
from inpaycheckout.models import GatewayLog, Invoice, InvoicePayment
from inpaycheckout.payments.checkout import build_checkout, gateway_config_fields
from inpaycheckout.segments.segment_callback import gateway_config

gateway_bp = Blueprint("gateway_bp", __name__, url_prefix="/api/gateway")


@gateway_bp.get("/config")
def config_fields():
    cfg = gateway_config()
    return jsonify({"ok": True, "active": cfg.active, "fields": gateway_config_fields(cfg)}), 200


@gateway_bp.post("/checkout")
def checkout():
    data = request.get_json(silent=True) or {}
    try:
        invoice_id = int(data.get("invoice_id"))
    except (TypeError, ValueError):
        return jsonify({"ok": False, "error": "invoice_id required"}), 400

    cfg = gateway_config()
    if not cfg.active:
        return jsonify({"ok": False, "error": "Module Not Activated"}), 404

    inv = db.session.get(Invoice, invoice_id)
    if not inv:
        return jsonify({"ok": False, "error": "Invoice not found"}), 404

    client = data.get("client") if isinstance(data.get("client"), dict) else {}
    res = build_checkout(inv, client, cfg)
    return jsonify(res), (200 if res.get("ok") else 400)


@gateway_bp.get("/invoices/<int:invoice_id>")
def invoice_status(invoice_id: int):
    inv = db.session.get(Invoice, invoice_id)
    if not inv:
        return jsonify({"ok": False, "error": "Invoice not found"}), 404
    payments = inv.payments.order_by(InvoicePayment.created_at.asc()).all()
    return jsonify({"ok": True, "invoice": inv.to_dict(), "payments": [p.to_dict() for p in payments]}), 200


@gateway_bp.get("/logs")
def gateway_logs():
    status = (request.args.get("status") or "").strip()
    try:
        limit = min(max(int(request.args.get("limit") or 100), 1), 250)
    except ValueError:
        limit = 100
    q = GatewayLog.query.filter_by(module=gateway_config().module)
    if status:
        q = q.filter(GatewayLog.status.ilike(status))
    rows = q.order_by(GatewayLog.id.desc()).limit(limit).all()
    return jsonify({"ok": True, "items": [r.to_dict() for r in rows]}), 200
