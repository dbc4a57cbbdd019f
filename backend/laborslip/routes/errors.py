# Overview: Shared mapping from service-layer exceptions to JSON error responses.

from flask import jsonify

from ..services.concurrency import StorageFailure
from ..services.report_service import RecordLockedError
from ..services.signing_service import AlreadySignedError, CancelledError, ConflictingUpdateError
from ..services.tenant_service import TenantAccessError
from ..validation import ConflictError, NotFoundError, ValidationError


def error_response(exc: Exception):
    """
    Map a known domain exception to (response, status).

    Returns None for anything else so the route can log it and answer 500.
    """
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, TenantAccessError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictingUpdateError):
        return jsonify({"error": str(exc), "code": "CONFLICTING_UPDATE"}), 409
    if isinstance(exc, AlreadySignedError):
        return jsonify({"error": str(exc), "code": "ALREADY_SIGNED"}), 409
    if isinstance(exc, CancelledError):
        return jsonify({"error": str(exc), "code": "CANCELLED"}), 409
    if isinstance(exc, RecordLockedError):
        return jsonify({"error": str(exc), "code": "RECORD_LOCKED"}), 409
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, StorageFailure):
        return jsonify({"error": str(exc)}), 503
    return None
