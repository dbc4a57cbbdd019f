# Overview: Flask API routes for companies the current user may act for.

from flask import Blueprint, jsonify, g

from ..services import tenant_service
from ..decorators import require_auth


companies_bp = Blueprint("companies", __name__, url_prefix="/api/companies")


@companies_bp.get("")
@require_auth
def list_companies_route():
    companies = tenant_service.get_user_companies(g.current_user.id)
    return jsonify({"companies": [c.to_dict() for c in companies]})
