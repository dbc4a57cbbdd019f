# Overview: Public calculator preview route; nothing is persisted.

from flask import Blueprint, request, jsonify, current_app

from ..services.calculator import INCOME_TYPES, calculate_withholding
from ..validation import coerce_bool
from .errors import error_response


calculator_bp = Blueprint("calculator", __name__, url_prefix="/api")


@calculator_bp.get("/income-types")
def income_types_route():
    return jsonify({
        "income_types": [
            {"code": t.code, "name": t.name, "description": t.description, "label": t.label}
            for t in INCOME_TYPES.values()
        ]
    })


@calculator_bp.post("/calculate")
def calculate_route():
    """Body: gross_amount, income_type, is_union_member (optional)."""
    try:
        data = request.get_json(silent=True) or {}
        result = calculate_withholding(
            data.get("gross_amount"),
            data.get("income_type"),
            coerce_bool(data.get("is_union_member", False)),
        )
        return jsonify(result.to_dict())
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to calculate withholding")
        return jsonify({"error": "Internal server error"}), 500
