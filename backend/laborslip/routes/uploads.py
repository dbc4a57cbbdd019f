# Overview: Upload and file-serving routes for ID card and bank book images.

from flask import Blueprint, request, jsonify, current_app, send_from_directory

from ..decorators import bearer_token
from ..services import session_service
from ..services import signing_service
from ..services import storage_service
from ..validation import ConflictError, NotFoundError
from .errors import error_response


uploads_bp = Blueprint("uploads", __name__)


def _upload_allowed() -> bool:
    """A logged-in session, or a sign_token that still resolves to a pending report."""
    token = bearer_token()
    if token and session_service.validate_session(token):
        return True

    sign_token = request.form.get("sign_token")
    if not sign_token:
        return False
    try:
        signing_service.resolve_by_token(sign_token)
    except (NotFoundError, ConflictError):
        return False
    return True


@uploads_bp.post("/api/uploads")
def upload_route():
    """
    Multipart upload.

    Form fields: file, type (id_card_front | id_card_back | bank_book),
    sign_token (when uploading from a signing page without a session).
    """
    if not _upload_allowed():
        return jsonify({"error": "Authentication required"}), 401

    try:
        stored = storage_service.save_upload(request.files.get("file"), request.form.get("type"))
        return jsonify({"success": True, **stored}), 201
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to store upload")
        return jsonify({"error": "上傳失敗"}), 500


@uploads_bp.get("/files/<path:path>")
def serve_file_route(path: str):
    return send_from_directory(storage_service.upload_root(), path)
