from __future__ import annotations

from ..extensions import db
from laborslip.time_utils import to_iso_date, to_utc_z


REPORT_STATUS_DRAFT = "draft"
REPORT_STATUS_PENDING = "pending"
REPORT_STATUS_SIGNED = "signed"
REPORT_STATUS_CANCELLED = "cancelled"

REPORT_STATUSES = (
    REPORT_STATUS_DRAFT,
    REPORT_STATUS_PENDING,
    REPORT_STATUS_SIGNED,
    REPORT_STATUS_CANCELLED,
)

# Statuses that still accept edits, cancellation and signing
EDITABLE_STATUSES = (REPORT_STATUS_DRAFT, REPORT_STATUS_PENDING)


class IncomeRecord(db.Model):
    """
    A single labor payment slip (勞報單).

    LIFECYCLE:
    - Created as pending with a one-time sign_token
    - pending -> signed (payee signature; terminal, immutable)
    - draft/pending -> cancelled (terminal, token stops working)

    The payee_* columns are a snapshot taken at signing time so the slip stays
    historically correct after the linked ContactProfile is edited.

    INVARIANT: net_amount == gross_amount - income_tax - health_insurance
    """
    __tablename__ = "labor_reports"
    __table_args__ = (
        db.UniqueConstraint("company_id", "report_number", name="uq_labor_reports_company_number"),
        db.UniqueConstraint("sign_token", name="uq_labor_reports_sign_token"),
        db.CheckConstraint("income_tax >= 0", name="ck_labor_reports_income_tax_nonneg"),
        db.CheckConstraint("health_insurance >= 0", name="ck_labor_reports_hi_nonneg"),
        db.CheckConstraint(
            "net_amount = gross_amount - income_tax - health_insurance",
            name="ck_labor_reports_net_amount",
        ),
        db.Index("ix_labor_reports_company_status", "company_id", "status"),
        db.Index("ix_labor_reports_company_payment_date", "company_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("labor_companies.id"), nullable=False, index=True)
    report_number = db.Column(db.String(32), nullable=False)

    contact_id = db.Column(db.Integer, db.ForeignKey("labor_contacts.id", ondelete="SET NULL"), nullable=True, index=True)

    # Payee snapshot
    payee_name = db.Column(db.String(120), nullable=False)
    payee_id_number = db.Column(db.String(20), nullable=True)
    payee_address = db.Column(db.String(255), nullable=True)
    payee_bank_name = db.Column(db.String(120), nullable=True)
    payee_bank_account = db.Column(db.String(64), nullable=True)

    income_type = db.Column(db.String(4), nullable=False)
    gross_amount = db.Column(db.Integer, nullable=False)
    income_tax = db.Column(db.Integer, nullable=False, default=0)
    health_insurance = db.Column(db.Integer, nullable=False, default=0)
    net_amount = db.Column(db.Integer, nullable=False)

    payment_date = db.Column(db.Date, nullable=False)
    period_start = db.Column(db.Date, nullable=True)
    period_end = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=REPORT_STATUS_PENDING, index=True)

    # One-time signing credential; never regenerated for the same record
    sign_token = db.Column(db.String(64), nullable=True)

    # Signature image as a data URL (set only once signed)
    signature_data = db.Column(db.Text, nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    signed_ip = db.Column(db.String(45), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("reports", lazy=True))
    contact = db.relationship("ContactProfile", backref=db.backref("reports", lazy=True))

    def __repr__(self) -> str:
        return f"<IncomeRecord id={self.id} number={self.report_number!r} status={self.status}>"

    def to_dict(self, include_signature: bool = False) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "report_number": self.report_number,
            "contact_id": self.contact_id,
            "payee_name": self.payee_name,
            "payee_id_number": self.payee_id_number,
            "payee_address": self.payee_address,
            "payee_bank_name": self.payee_bank_name,
            "payee_bank_account": self.payee_bank_account,
            "income_type": self.income_type,
            "gross_amount": self.gross_amount,
            "income_tax": self.income_tax,
            "health_insurance": self.health_insurance,
            "net_amount": self.net_amount,
            "payment_date": to_iso_date(self.payment_date),
            "period_start": to_iso_date(self.period_start),
            "period_end": to_iso_date(self.period_end),
            "description": self.description,
            "status": self.status,
            "sign_token": self.sign_token,
            "signed_at": to_utc_z(self.signed_at),
            "signed_ip": self.signed_ip,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_signature:
            data["signature_data"] = self.signature_data
        return data


class ReportSequence(db.Model):
    """
    Atomic per-company, per-year report number sequences.

    WHY: Counting existing rows to number the next slip races under
    concurrent creation; a counter row does not.
    """
    __tablename__ = "report_sequences"
    __table_args__ = (
        db.UniqueConstraint("company_id", "year", name="uq_report_sequences_company_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("labor_companies.id"), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "year": self.year,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
