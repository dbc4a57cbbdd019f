# Overview: Service-layer operations for labor payment slips; encapsulates business logic and database work.

"""
Report Service - creation and back-office maintenance of IncomeRecords

CREATE is the only place a signing token is minted. The record starts in
'pending' with amounts computed by the withholding calculator; when a
ContactProfile is linked, its snapshot fields are copied and its union flag
feeds the calculation.

EDITS are allowed only while a record is draft/pending. A signed record is
immutable: the remedy for a mistake is delete-and-recreate.
"""

from __future__ import annotations

import secrets
from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import IncomeRecord, ReportSequence
from ..models.reports import (
    EDITABLE_STATUSES,
    REPORT_STATUS_CANCELLED,
    REPORT_STATUS_PENDING,
    REPORT_STATUS_SIGNED,
    REPORT_STATUSES,
)
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    coerce_amount,
    coerce_date,
    coerce_int,
)
from laborslip.time_utils import utcnow
from . import contact_service
from .calculator import calculate_withholding, get_income_type
from .concurrency import commit_or_fail, run_with_retry
from .tenant_service import scoped_query


REPORT_NUMBER_PREFIX = "LR"

SIGNED_RECORD_LOCKED_MESSAGE = "已簽名的勞報單無法修改，請刪除後重新建立"

UPDATABLE_FIELDS = {
    "payee_name",
    "contact_id",
    "income_type",
    "gross_amount",
    "payment_date",
    "period_start",
    "period_end",
    "description",
}


class RecordLockedError(ConflictError):
    """Raised when a signed or cancelled record would be modified."""
    pass


def generate_sign_token() -> str:
    """Opaque one-time signing credential (32 URL-safe characters)."""
    return secrets.token_urlsafe(24)


def sign_url(token: str) -> str:
    return f"{current_app.config['PUBLIC_BASE_URL']}/sign/{token}"


def next_report_number(*, company_id: int, year: int, pad: int = 4) -> str:
    """
    Atomically allocate the next report number for a company/year,
    e.g. LR-2025-0007.
    """
    def _op() -> str:
        stmt = (
            update(ReportSequence)
            .where(
                ReportSequence.company_id == company_id,
                ReportSequence.year == year,
            )
            .values(next_number=ReportSequence.next_number + 1)
        )

        result = db.session.execute(stmt)
        if result.rowcount:
            db.session.flush()
            current = (
                db.session.query(ReportSequence.next_number)
                .filter_by(company_id=company_id, year=year)
                .scalar()
            )
            next_num = current - 1
        else:
            seq = ReportSequence(company_id=company_id, year=year, next_number=2)
            db.session.add(seq)
            try:
                db.session.flush()
                next_num = 1
            except IntegrityError:
                db.session.rollback()
                result = db.session.execute(stmt)
                if not result.rowcount:
                    raise
                db.session.flush()
                current = (
                    db.session.query(ReportSequence.next_number)
                    .filter_by(company_id=company_id, year=year)
                    .scalar()
                )
                next_num = current - 1

        return f"{REPORT_NUMBER_PREFIX}-{year}-{next_num:0{pad}d}"

    return run_with_retry(_op)


def _required_text(data: dict, key: str) -> str:
    value = data.get(key)
    if value is None or not str(value).strip():
        raise ValidationError(f"{key} is required")
    return str(value).strip()


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _validate_period(period_start: date | None, period_end: date | None) -> None:
    if period_start and period_end and period_start > period_end:
        raise ValidationError("period_start must be on or before period_end")


def _apply_contact_snapshot(report: IncomeRecord, contact) -> None:
    report.contact_id = contact.id if contact else None
    report.payee_id_number = contact.id_number if contact else None
    report.payee_address = contact.address if contact else None
    report.payee_bank_name = contact.bank_name if contact else None
    report.payee_bank_account = contact.bank_account if contact else None


def _apply_amounts(report: IncomeRecord, is_union_member: bool) -> None:
    result = calculate_withholding(report.gross_amount, report.income_type, is_union_member)
    report.gross_amount = result.gross_amount
    report.income_tax = result.income_tax
    report.health_insurance = result.health_insurance
    report.net_amount = result.net_amount


def create_report(
    company_id: int,
    data: dict,
    created_by_user_id: int | None = None,
) -> IncomeRecord:
    """
    Create a pending payment slip with a fresh signing token.

    Required: payee_name, income_type, gross_amount, payment_date.
    Optional: contact_id, description, period_start, period_end.

    Raises:
        ValidationError / InvalidIncomeType: bad input (nothing is written)
        NotFoundError: contact_id does not belong to this company
        StorageFailure: the database write failed
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    payee_name = _required_text(data, "payee_name")
    income_type = get_income_type(_required_text(data, "income_type")).code
    if data.get("gross_amount") in (None, ""):
        raise ValidationError("gross_amount is required")
    payment_date = coerce_date("payment_date", data.get("payment_date"))
    if payment_date is None:
        raise ValidationError("payment_date is required")
    period_start = coerce_date("period_start", data.get("period_start"))
    period_end = coerce_date("period_end", data.get("period_end"))
    _validate_period(period_start, period_end)

    contact = None
    if data.get("contact_id") not in (None, ""):
        contact_id = coerce_int("contact_id", data["contact_id"])
        contact = contact_service.get_contact(company_id, contact_id)

    # Validates gross_amount before anything touches the database
    amounts = calculate_withholding(
        data.get("gross_amount"),
        income_type,
        bool(contact and contact.is_union_member),
    )

    report = IncomeRecord(
        company_id=company_id,
        payee_name=payee_name,
        income_type=income_type,
        gross_amount=amounts.gross_amount,
        income_tax=amounts.income_tax,
        health_insurance=amounts.health_insurance,
        net_amount=amounts.net_amount,
        payment_date=payment_date,
        period_start=period_start,
        period_end=period_end,
        description=_optional_text(data.get("description")),
        status=REPORT_STATUS_PENDING,
        sign_token=generate_sign_token(),
        created_by_user_id=created_by_user_id,
    )
    _apply_contact_snapshot(report, contact)

    report.report_number = next_report_number(company_id=company_id, year=utcnow().year)
    db.session.add(report)
    commit_or_fail("建立勞報單失敗")

    current_app.logger.info(
        "Created report %s for company %s (gross=%s, net=%s)",
        report.report_number, company_id, report.gross_amount, report.net_amount,
    )
    return report


def get_report(company_id: int, report_id: int) -> IncomeRecord:
    report = scoped_query(IncomeRecord, company_id).filter(IncomeRecord.id == report_id).first()
    if not report:
        raise NotFoundError("找不到此勞報單")
    return report


def list_reports(
    company_id: int,
    *,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
) -> list[IncomeRecord]:
    """
    Company reports, newest first.

    status: one status, a comma-separated list, or 'all'/None for everything.
    start_date/end_date: inclusive payment_date range.
    """
    query = scoped_query(IncomeRecord, company_id)

    if status and status != "all":
        statuses = [s.strip() for s in status.split(",") if s.strip()]
        unknown = [s for s in statuses if s not in REPORT_STATUSES]
        if unknown:
            raise ValidationError(f"Unknown status: {', '.join(unknown)}")
        query = query.filter(IncomeRecord.status.in_(statuses))

    if start_date:
        query = query.filter(IncomeRecord.payment_date >= start_date)
    if end_date:
        query = query.filter(IncomeRecord.payment_date <= end_date)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                IncomeRecord.payee_name.ilike(pattern),
                IncomeRecord.report_number.ilike(pattern),
            )
        )

    return query.order_by(IncomeRecord.created_at.desc(), IncomeRecord.id.desc()).all()


def _ensure_editable(report: IncomeRecord) -> None:
    if report.status == REPORT_STATUS_SIGNED:
        raise RecordLockedError(SIGNED_RECORD_LOCKED_MESSAGE)
    if report.status not in EDITABLE_STATUSES:
        raise RecordLockedError("已取消的勞報單無法修改")


def update_report(company_id: int, report_id: int, data: dict) -> IncomeRecord:
    """
    Edit a draft/pending record and recompute its amounts.

    The signing token is untouched: the link already sent stays valid.

    Raises:
        RecordLockedError: the record is signed or cancelled
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(data) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    report = get_report(company_id, report_id)
    _ensure_editable(report)

    try:
        # Amount columns are inconsistent until _apply_amounts runs
        with db.session.no_autoflush:
            if "payee_name" in data:
                report.payee_name = _required_text(data, "payee_name")
            if "income_type" in data:
                report.income_type = get_income_type(data["income_type"]).code
            if "gross_amount" in data:
                report.gross_amount = coerce_amount("gross_amount", data["gross_amount"])
            if "payment_date" in data:
                payment_date = coerce_date("payment_date", data["payment_date"])
                if payment_date is None:
                    raise ValidationError("payment_date is required")
                report.payment_date = payment_date
            if "period_start" in data:
                report.period_start = coerce_date("period_start", data["period_start"])
            if "period_end" in data:
                report.period_end = coerce_date("period_end", data["period_end"])
            if "description" in data:
                report.description = _optional_text(data["description"])
            _validate_period(report.period_start, report.period_end)

            contact = report.contact
            if "contact_id" in data:
                contact = None
                if data["contact_id"] not in (None, ""):
                    contact_id = coerce_int("contact_id", data["contact_id"])
                    contact = contact_service.get_contact(company_id, contact_id)
                _apply_contact_snapshot(report, contact)

            _apply_amounts(report, bool(contact and contact.is_union_member))
    except (ValidationError, NotFoundError):
        db.session.rollback()
        raise

    commit_or_fail("更新勞報單失敗")
    return report


def cancel_report(company_id: int, report_id: int) -> IncomeRecord:
    """
    draft/pending -> cancelled. The signing link stops authorizing anything.

    Uses a status-guarded UPDATE so a concurrent signature cannot be
    overwritten by a cancellation.
    """
    report = get_report(company_id, report_id)
    _ensure_editable(report)

    result = db.session.execute(
        update(IncomeRecord)
        .where(
            IncomeRecord.id == report.id,
            IncomeRecord.status.in_(EDITABLE_STATUSES),
        )
        .values(status=REPORT_STATUS_CANCELLED, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        db.session.rollback()
        raise RecordLockedError(SIGNED_RECORD_LOCKED_MESSAGE)

    commit_or_fail("取消勞報單失敗")
    db.session.refresh(report)
    return report


def delete_report(company_id: int, report_id: int) -> None:
    """
    Delete one record. Signed records may be deleted (delete-and-recreate is
    the only correction path); they are never edited in place.
    """
    report = get_report(company_id, report_id)
    report_number, status = report.report_number, report.status
    db.session.delete(report)
    commit_or_fail("刪除失敗")
    current_app.logger.info("Deleted report %s (status=%s)", report_number, status)


def batch_delete_reports(company_id: int, ids) -> int:
    """
    Delete several records of this company. Ids of other companies are
    ignored (never revealed). Returns the number deleted.
    """
    if not ids or not isinstance(ids, list):
        raise ValidationError("請提供要刪除的 ID")
    report_ids = [coerce_int("ids", value) for value in ids]

    deleted = scoped_query(IncomeRecord, company_id).filter(
        IncomeRecord.id.in_(report_ids)
    ).delete(synchronize_session=False)
    commit_or_fail("刪除失敗")
    return deleted
