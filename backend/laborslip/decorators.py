# Overview: Request decorators for API routes (session auth and company scoping).

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, tenant_service
from .services.tenant_service import TenantAccessError


COMPANY_HEADER = "X-Company-Id"


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid back-office session.

    Sets the following Flask g attributes:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the Authorization header is missing, or the token is
    invalid, expired, revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_company(f):
    """
    Establish the company context for this request.

    The caller names the company explicitly in the X-Company-Id header; it
    is verified against the user's memberships. Must be applied after
    @require_auth. Sets g.company_id and g.company.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not hasattr(g, "current_user"):
            return jsonify({"error": "Authentication required"}), 401

        raw = request.headers.get(COMPANY_HEADER)
        if not raw:
            return jsonify({"error": f"{COMPANY_HEADER} header required"}), 400
        try:
            company_id = int(raw)
        except ValueError:
            return jsonify({"error": f"{COMPANY_HEADER} must be an integer"}), 400

        try:
            company = tenant_service.require_company_access(g.current_user.id, company_id)
        except TenantAccessError as e:
            return jsonify({"error": str(e)}), 403

        g.company_id = company.id
        g.company = company

        return f(*args, **kwargs)

    return decorated_function
