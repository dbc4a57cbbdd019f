# Overview: Flask API routes for system health and version.

# backend/laborslip/routes/system.py
"""
System health and version endpoints.
"""

import os
import sys
import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Company, IncomeRecord, SessionToken
from ..services import storage_service
from laborslip.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")

API_VERSION = "1.0.0"


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        company_count = db.session.query(Company).count()
        pending_count = db.session.query(IncomeRecord).filter_by(status="pending").count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        return {
            "status": "healthy",
            "latency_ms": _elapsed_ms(start_time),
            "details": {
                "companies": company_count,
                "pending_reports": pending_count,
                "active_sessions": active_sessions,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": _elapsed_ms(start_time),
            "error": "Database error"
        }


def check_storage_health() -> dict:
    root = storage_service.upload_root()
    if os.path.isdir(root) and os.access(root, os.W_OK):
        return {"status": "healthy"}
    current_app.logger.error("Upload folder %s is not writable", root)
    return {"status": "unhealthy", "error": "Upload folder not writable"}


def check_line_health() -> dict:
    # Notifications are optional; a missing token only degrades.
    if current_app.config.get("LINE_CHANNEL_ACCESS_TOKEN"):
        return {"status": "healthy"}
    return {"status": "degraded", "warning": "LINE_CHANNEL_ACCESS_TOKEN not configured"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database or upload storage unusable
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "storage": check_storage_health(),
        "line": check_line_health(),
    }

    statuses = [check["status"] for check in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": _elapsed_ms(start_time),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": API_VERSION,
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
