# Overview: Flask API routes for contact profiles; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app, g

from ..services import contact_service
from ..services.calculator import mask_bank_account, mask_id_number
from ..decorators import require_auth, require_company
from .errors import error_response


contacts_bp = Blueprint("contacts", __name__, url_prefix="/api/contacts")


def _masked(contact) -> dict:
    data = contact.to_dict()
    data["id_number_masked"] = mask_id_number(contact.id_number)
    data["bank_account_masked"] = mask_bank_account(contact.bank_account)
    return data


@contacts_bp.get("")
@require_auth
@require_company
def list_contacts_route():
    contacts = contact_service.list_contacts(g.company_id, search=request.args.get("q"))
    return jsonify({"contacts": [_masked(c) for c in contacts]})


@contacts_bp.post("")
@require_auth
@require_company
def create_contact_route():
    try:
        contact = contact_service.create_contact(g.company_id, request.get_json(silent=True))
        return jsonify({"contact": contact.to_dict()}), 201
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to create contact")
        return jsonify({"error": "Internal server error"}), 500


@contacts_bp.get("/lookup")
@require_auth
@require_company
def lookup_contact_route():
    """Find a profile by national ID number; {found: false} when absent."""
    id_number = request.args.get("id_number")
    if not id_number:
        return jsonify({"error": "請提供身分證字號"}), 400

    contact = contact_service.find_by_id_number(g.company_id, id_number)
    if not contact:
        return jsonify({"found": False})
    return jsonify({"found": True, "data": contact.to_dict()})


@contacts_bp.get("/<int:contact_id>")
@require_auth
@require_company
def get_contact_route(contact_id: int):
    try:
        contact = contact_service.get_contact(g.company_id, contact_id)
        return jsonify({"contact": contact.to_dict()})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to load contact")
        return jsonify({"error": "Internal server error"}), 500


@contacts_bp.put("/<int:contact_id>")
@require_auth
@require_company
def update_contact_route(contact_id: int):
    try:
        contact = contact_service.update_contact(g.company_id, contact_id, request.get_json(silent=True))
        return jsonify({"contact": contact.to_dict()})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to update contact")
        return jsonify({"error": "更新失敗"}), 500


@contacts_bp.delete("/<int:contact_id>")
@require_auth
@require_company
def delete_contact_route(contact_id: int):
    try:
        contact_service.delete_contact(g.company_id, contact_id)
        return jsonify({"success": True})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to delete contact")
        return jsonify({"error": "刪除失敗"}), 500
