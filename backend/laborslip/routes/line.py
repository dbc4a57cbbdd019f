# Overview: LINE Messaging routes (group list, manual push, webhook receiver).

from flask import Blueprint, request, jsonify, current_app

from ..services import notification_service
from ..decorators import require_auth, require_company


line_bp = Blueprint("line", __name__, url_prefix="/api/line")


@line_bp.get("/groups")
@require_auth
@require_company
def list_groups_route():
    groups = notification_service.list_groups()
    return jsonify({"groups": [group.to_dict() for group in groups]})


@line_bp.post("/send")
@require_auth
@require_company
def send_route():
    """
    Push a signing link to a group.

    Body: group_id, payee_name, gross_amount, net_amount, sign_link.
    Delivery failures are reported as {"success": false}, never as 5xx.
    """
    data = request.get_json(silent=True) or {}
    group_id = data.get("group_id")
    sign_link = data.get("sign_link")
    if not group_id or not sign_link:
        return jsonify({"error": "group_id and sign_link are required"}), 400

    try:
        gross_amount = int(data.get("gross_amount") or 0)
        net_amount = int(data.get("net_amount") or 0)
    except (TypeError, ValueError):
        return jsonify({"error": "gross_amount and net_amount must be integers"}), 400

    sent = notification_service.send_signing_link(
        group_id, data.get("payee_name") or "", gross_amount, net_amount, sign_link
    )
    return jsonify({"success": sent})


@line_bp.get("/webhook")
def webhook_verify_route():
    return jsonify({"status": "ok"})


@line_bp.post("/webhook")
def webhook_route():
    """Always answer 200 so LINE does not retry; failures are logged."""
    data = request.get_json(silent=True) or {}
    try:
        handled = notification_service.handle_webhook_events(data.get("events") or [])
    except Exception:
        current_app.logger.exception("Failed to process LINE webhook")
        handled = 0
    return jsonify({"status": "ok", "handled": handled})
