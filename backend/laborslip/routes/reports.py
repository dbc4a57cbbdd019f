# Overview: Flask API routes for payment slips (勞報單); parses input and returns JSON responses.

# backend/laborslip/routes/reports.py
"""
Payment slip routes

All endpoints act inside the company named by the X-Company-Id header.
Amounts are always computed server-side; client-supplied tax figures are
ignored.
"""

from urllib.parse import quote

from flask import Blueprint, Response, request, jsonify, current_app, g

from ..services import export_service
from ..services import notification_service
from ..services import report_service
from ..validation import coerce_date, coerce_int
from ..decorators import require_auth, require_company
from .errors import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _report_payload(report, include_signature: bool = False) -> dict:
    data = report.to_dict(include_signature=include_signature)
    data["sign_url"] = report_service.sign_url(report.sign_token) if report.sign_token else None
    return data


def _csv_response(filename: str, body: str) -> Response:
    response = Response(body, mimetype="text/csv")
    response.headers["Content-Type"] = "text/csv; charset=utf-8"
    response.headers["Content-Disposition"] = f"attachment; filename*=UTF-8''{quote(filename)}"
    return response


def _notify_created(report, group_id: str) -> bool:
    """Push the signing link to a LINE group; a failure never fails the create."""
    try:
        return notification_service.send_signing_link(
            group_id,
            report.payee_name,
            report.gross_amount,
            report.net_amount,
            report_service.sign_url(report.sign_token),
        )
    except Exception:
        current_app.logger.exception("Failed to notify LINE group for %s", report.report_number)
        return False


@reports_bp.get("")
@require_auth
@require_company
def list_reports_route():
    """
    List reports.

    Query params:
    - status: single status, comma list, or 'all'
    - start_date / end_date: inclusive payment_date range (YYYY-MM-DD)
    - q: payee name or report number substring
    """
    try:
        reports = report_service.list_reports(
            g.company_id,
            status=request.args.get("status"),
            start_date=coerce_date("start_date", request.args.get("start_date")),
            end_date=coerce_date("end_date", request.args.get("end_date")),
            search=request.args.get("q"),
        )
        return jsonify({"reports": [_report_payload(r) for r in reports]})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to list reports")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.post("")
@require_auth
@require_company
def create_report_route():
    """
    Create a pending report and return its signing link.

    Optional line_group_id pushes the link to that group (best effort).
    """
    try:
        data = request.get_json(silent=True)
        report = report_service.create_report(g.company_id, data, created_by_user_id=g.current_user.id)

        payload = {"report": _report_payload(report), "notified": False}
        group_id = (data or {}).get("line_group_id")
        if group_id:
            payload["notified"] = _notify_created(report, group_id)
        return jsonify(payload), 201
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to create report")
        return jsonify({"error": "建立失敗"}), 500


@reports_bp.get("/export")
@require_auth
@require_company
def export_reports_route():
    """
    CSV export.

    Query params:
    - ids: comma list of report ids (optional)
    - start_date / end_date (optional)
    - status: comma list; defaults to signed,pending,draft
    """
    try:
        raw_ids = request.args.get("ids")
        ids = [coerce_int("ids", v) for v in raw_ids.split(",") if v.strip()] if raw_ids else None
        raw_status = request.args.get("status")
        statuses = [s.strip() for s in raw_status.split(",") if s.strip()] if raw_status else None

        filename, body = export_service.export_reports(
            g.company,
            ids=ids,
            start_date=coerce_date("start_date", request.args.get("start_date")),
            end_date=coerce_date("end_date", request.args.get("end_date")),
            statuses=statuses,
        )
        return _csv_response(filename, body)
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to export reports")
        return jsonify({"error": "匯出失敗"}), 500


@reports_bp.post("/batch-delete")
@require_auth
@require_company
def batch_delete_route():
    try:
        data = request.get_json(silent=True) or {}
        deleted = report_service.batch_delete_reports(g.company_id, data.get("ids"))
        return jsonify({"success": True, "deleted": deleted})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to batch delete reports")
        return jsonify({"error": "刪除失敗"}), 500


@reports_bp.get("/<int:report_id>")
@require_auth
@require_company
def get_report_route(report_id: int):
    try:
        report = report_service.get_report(g.company_id, report_id)
        return jsonify({"report": _report_payload(report, include_signature=True)})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to load report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.put("/<int:report_id>")
@require_auth
@require_company
def update_report_route(report_id: int):
    try:
        report = report_service.update_report(g.company_id, report_id, request.get_json(silent=True))
        return jsonify({"report": _report_payload(report)})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to update report")
        return jsonify({"error": "更新失敗"}), 500


@reports_bp.delete("/<int:report_id>")
@require_auth
@require_company
def delete_report_route(report_id: int):
    try:
        report_service.delete_report(g.company_id, report_id)
        return jsonify({"success": True})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to delete report")
        return jsonify({"error": "刪除失敗"}), 500


@reports_bp.post("/<int:report_id>/cancel")
@require_auth
@require_company
def cancel_report_route(report_id: int):
    try:
        report = report_service.cancel_report(g.company_id, report_id)
        return jsonify({"report": _report_payload(report)})
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to cancel report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/<int:report_id>/export")
@require_auth
@require_company
def export_single_route(report_id: int):
    try:
        filename, body = export_service.export_single_report(g.company, report_id)
        return _csv_response(filename, body)
    except Exception as e:
        mapped = error_response(e)
        if mapped:
            return mapped
        current_app.logger.exception("Failed to export report")
        return jsonify({"error": "匯出失敗"}), 500
