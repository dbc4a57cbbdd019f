# Overview: CSV export of payment slips for accounting.

from __future__ import annotations

import csv
import io
from datetime import date

from ..models import Company, IncomeRecord
from ..models.reports import (
    REPORT_STATUS_DRAFT,
    REPORT_STATUS_PENDING,
    REPORT_STATUS_SIGNED,
)
from ..validation import ValidationError
from laborslip.time_utils import to_iso_date
from . import report_service
from .calculator import income_type_label
from .tenant_service import scoped_query


# Spreadsheet tools use the byte-order mark to detect UTF-8
BOM = "\ufeff"

CSV_HEADERS = [
    "公司名稱", "公司統編", "勞報單編號", "領款人姓名", "身分證字號", "戶籍地址",
    "所得類別", "所得代碼", "總金額", "代扣所得稅", "二代健保", "實付金額",
    "銀行名稱", "銀行帳號", "支付日期", "狀態",
]

# A single-record export ends with the signed date instead of the status
SINGLE_CSV_HEADERS = CSV_HEADERS[:-1] + ["簽名日期"]

STATUS_LABELS = {
    "signed": "已簽名",
    "pending": "待簽名",
    "draft": "草稿",
    "cancelled": "已取消",
}

DEFAULT_EXPORT_STATUSES = (REPORT_STATUS_SIGNED, REPORT_STATUS_PENDING, REPORT_STATUS_DRAFT)


def report_row(company: Company, report: IncomeRecord) -> list:
    return _common_cells(company, report) + [STATUS_LABELS.get(report.status, report.status)]


def single_report_row(company: Company, report: IncomeRecord) -> list:
    signed_on = report.signed_at.date() if report.signed_at else None
    return _common_cells(company, report) + [to_iso_date(signed_on) or ""]


def _common_cells(company: Company, report: IncomeRecord) -> list:
    return [
        company.name,
        company.tax_id or "",
        report.report_number,
        report.payee_name,
        report.payee_id_number or "",
        report.payee_address or "",
        income_type_label(report.income_type),
        report.income_type,
        report.gross_amount,
        report.income_tax or 0,
        report.health_insurance or 0,
        report.net_amount,
        report.payee_bank_name or "",
        report.payee_bank_account or "",
        to_iso_date(report.payment_date) or "",
    ]


def render_csv(company: Company, reports: list[IncomeRecord], *, single: bool = False) -> str:
    """BOM + header + one row per report; every cell quoted."""
    headers, make_row = (SINGLE_CSV_HEADERS, single_report_row) if single else (CSV_HEADERS, report_row)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for report in reports:
        writer.writerow(make_row(company, report))
    return BOM + buffer.getvalue()


def select_reports(
    company_id: int,
    *,
    ids: list[int] | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    statuses: list[str] | None = None,
) -> list[IncomeRecord]:
    """
    Reports to export, oldest payment first.

    ids: explicit selection (still scoped to the company)
    statuses: defaults to signed + pending + draft
    """
    statuses = list(statuses or DEFAULT_EXPORT_STATUSES)
    unknown = [s for s in statuses if s not in STATUS_LABELS]
    if unknown:
        raise ValidationError(f"Unknown status: {', '.join(unknown)}")

    query = scoped_query(IncomeRecord, company_id).filter(IncomeRecord.status.in_(statuses))
    if ids:
        query = query.filter(IncomeRecord.id.in_(ids))
    if start_date:
        query = query.filter(IncomeRecord.payment_date >= start_date)
    if end_date:
        query = query.filter(IncomeRecord.payment_date <= end_date)
    return query.order_by(IncomeRecord.payment_date.asc(), IncomeRecord.id.asc()).all()


def export_filename(company: Company, start_date: date | None, end_date: date | None) -> str:
    def _compact(d: date | None) -> str:
        return d.strftime("%Y%m%d") if d else ""

    if start_date or end_date:
        return f"勞報單_{company.short_name}_{_compact(start_date)}_{_compact(end_date)}.csv"
    return f"勞報單匯出_{company.short_name}_{date.today().isoformat()}.csv"


def export_reports(company: Company, **filters) -> tuple[str, str]:
    """Returns (filename, csv_text)."""
    reports = select_reports(company.id, **filters)
    filename = export_filename(company, filters.get("start_date"), filters.get("end_date"))
    return filename, render_csv(company, reports)


def export_single_report(company: Company, report_id: int) -> tuple[str, str]:
    report = report_service.get_report(company.id, report_id)
    return f"{report.report_number}.csv", render_csv(company, [report], single=True)
