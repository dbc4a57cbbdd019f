# Overview: Public signing-link routes; the URL token is the only credential.

# backend/laborslip/routes/signing.py
"""
Signing routes

GET resolves a token into what the payee should see; POST records the
payee's data and signature. Neither requires a login.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import signing_service
from .errors import error_response


signing_bp = Blueprint("signing", __name__, url_prefix="/api/sign")


def _client_ip() -> str | None:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.remote_addr


@signing_bp.get("/<token>")
def resolve_route(token: str):
    try:
        resolved = signing_service.resolve_by_token(token)
        return jsonify({"report": resolved.to_dict()})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to resolve signing token")
        return jsonify({"error": "Internal server error"}), 500


@signing_bp.post("/<token>")
def sign_route(token: str):
    """
    Sign a pending report.

    Body: name, id_number, address, bank_name, bank_account, signature_data
    (data URL), plus optional phone, email, bank_branch, id_card_front_url,
    id_card_back_url, bank_book_url. Fields already on a complete profile
    may be omitted.
    """
    try:
        report = signing_service.sign(token, request.get_json(silent=True), ip_address=_client_ip())
        return jsonify({
            "success": True,
            "message": "簽名完成",
            "report_number": report.report_number,
            "signed_at": report.to_dict()["signed_at"],
        })
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to sign report")
        return jsonify({"error": "簽名失敗，請重試"}), 500
