# Overview: Service-layer operations for the payee signing link; encapsulates business logic and database work.

"""
Signing-Link State Machine

The sign_token minted at report creation is the payee's only credential:
no login, no session. Holding a valid token for a 'pending' record
authorizes exactly one successful Sign.

STATES:
    draft ──┐
            ├──> cancelled (terminal)
    pending ┤
            └──> signed (terminal, immutable)

RESOLVE (read path) fails with NotFound / AlreadySigned / Cancelled and
otherwise tells the client whether a short confirm-and-sign form is enough
(linked profile is complete) or the full data form is required.

SIGN (write path), in one transaction:
1. Re-resolve by token (the client's earlier read proves nothing)
2. Upsert ContactProfile keyed by (company_id, id_number)
3. Status-guarded UPDATE ... WHERE status = 'pending'; zero rows means a
   concurrent Sign won, so roll back and report the conflict
4. Commit; on storage error roll back so the record stays 'pending' and the
   same token can be retried without duplicating the profile

Amounts are never touched by Sign; they were fixed at creation time.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import ContactProfile, IncomeRecord
from ..models.reports import (
    REPORT_STATUS_CANCELLED,
    REPORT_STATUS_PENDING,
    REPORT_STATUS_SIGNED,
)
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_bool, normalize_id_number
from laborslip.time_utils import to_iso_date, utcnow
from . import contact_service
from .concurrency import StorageFailure


MSG_NOT_FOUND = "找不到此勞報單或連結已失效"
MSG_ALREADY_SIGNED = "此勞報單已簽名完成"
MSG_CANCELLED = "此勞報單已取消"
MSG_CONFLICT = "此勞報單已由其他請求完成簽名"

# Submission fields that may be taken from a complete linked profile when
# the payee uses the short confirm-and-sign form.
PROFILE_FALLBACK_FIELDS = (
    "name",
    "id_number",
    "phone",
    "email",
    "address",
    "bank_name",
    "bank_branch",
    "bank_account",
    "is_union_member",
    "id_card_front_url",
    "id_card_back_url",
    "bank_book_url",
)

# Required after profile fallback has been applied
REQUIRED_SIGN_FIELDS = ("name", "id_number", "address", "bank_name", "bank_account")

MAX_SIGNATURE_BYTES = 2 * 1024 * 1024


class AlreadySignedError(ConflictError):
    """Token is valid but the record has already been signed."""
    pass


class CancelledError(ConflictError):
    """Token is valid but the record has been cancelled."""
    pass


class ConflictingUpdateError(AlreadySignedError):
    """A concurrent Sign on the same token won the race."""
    pass


@dataclass
class ResolvedReport:
    report: IncomeRecord
    contact: ContactProfile | None

    @property
    def has_contact(self) -> bool:
        return self.contact is not None

    @property
    def has_complete_data(self) -> bool:
        return contact_service.is_complete(self.contact)

    def to_dict(self) -> dict:
        report = self.report
        contact = self.contact
        return {
            "id": report.id,
            "report_number": report.report_number,
            "company_name": report.company.name if report.company else "",
            "income_type": report.income_type,
            "description": report.description,
            "period_start": to_iso_date(report.period_start),
            "period_end": to_iso_date(report.period_end),
            "payment_date": to_iso_date(report.payment_date),
            "gross_amount": report.gross_amount,
            "income_tax": report.income_tax,
            "health_insurance": report.health_insurance,
            "net_amount": report.net_amount,
            "payee_name": report.payee_name,
            "status": report.status,
            "has_contact": self.has_contact,
            "has_complete_data": self.has_complete_data,
            "contact": {
                "name": contact.name,
                "id_number": contact.id_number,
                "phone": contact.phone,
                "email": contact.email,
                "address": contact.address,
                "bank_name": contact.bank_name,
                "bank_branch": contact.bank_branch,
                "bank_account": contact.bank_account,
                "is_union_member": contact.is_union_member,
                "id_card_front_url": contact.id_card_front_url,
                "id_card_back_url": contact.id_card_back_url,
                "bank_book_url": contact.bank_book_url,
            } if contact else None,
        }


def _load_by_token(token: str | None) -> IncomeRecord:
    """
    Look up a record by token and reject terminal states.

    Always re-reads from the database; nothing is cached between calls.
    """
    if not token or not isinstance(token, str):
        raise NotFoundError(MSG_NOT_FOUND)

    report = db.session.query(IncomeRecord).filter(
        IncomeRecord.sign_token == token
    ).populate_existing().first()

    if not report:
        raise NotFoundError(MSG_NOT_FOUND)
    if report.status == REPORT_STATUS_SIGNED:
        raise AlreadySignedError(MSG_ALREADY_SIGNED)
    if report.status == REPORT_STATUS_CANCELLED:
        raise CancelledError(MSG_CANCELLED)
    return report


def resolve_by_token(token: str | None) -> ResolvedReport:
    """
    Read path for the payee page.

    Raises:
        NotFoundError: no record has this token
        AlreadySignedError: record is signed (its data is never returned)
        CancelledError: record is cancelled
    """
    report = _load_by_token(token)
    return ResolvedReport(report=report, contact=report.contact)


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _merge_submission(submission: dict, contact: ContactProfile | None) -> dict:
    """
    Normalize the submission and, when the linked profile is complete and
    belongs to the same person, fill fields the payee did not resend from
    that profile.

    A submission carrying someone else's ID number is a full-form
    submission: nothing is borrowed from the linked profile.
    """
    merged: dict = {}
    for field in PROFILE_FALLBACK_FIELDS:
        if field == "is_union_member":
            merged[field] = submission.get(field)
        else:
            merged[field] = _text(submission.get(field))
    merged["id_number"] = normalize_id_number(merged["id_number"])

    if (
        contact is not None
        and contact.is_complete
        and merged["id_number"] in (None, contact.id_number)
    ):
        for field in PROFILE_FALLBACK_FIELDS:
            if merged[field] is None:
                merged[field] = getattr(contact, field)

    merged["is_union_member"] = coerce_bool(merged["is_union_member"])
    return merged


def _validate_submission(merged: dict, signature_data) -> str:
    missing = [field for field in REQUIRED_SIGN_FIELDS if not merged.get(field)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if not signature_data or not isinstance(signature_data, str):
        raise ValidationError("signature_data is required")
    if not signature_data.startswith("data:image/"):
        raise ValidationError("signature_data must be an image data URL")
    if len(signature_data) > MAX_SIGNATURE_BYTES:
        raise ValidationError("signature_data is too large")
    return signature_data


def _claim_and_sign(report_id: int, contact: ContactProfile, merged: dict, signature_data: str, ip_address: str | None) -> None:
    """Status-guarded transition; raises ConflictingUpdateError if not pending anymore."""
    result = db.session.execute(
        update(IncomeRecord)
        .where(
            IncomeRecord.id == report_id,
            IncomeRecord.status == REPORT_STATUS_PENDING,
        )
        .values(
            contact_id=contact.id,
            payee_name=merged["name"],
            payee_id_number=merged["id_number"],
            payee_address=merged["address"],
            payee_bank_name=merged["bank_name"],
            payee_bank_account=merged["bank_account"],
            status=REPORT_STATUS_SIGNED,
            signature_data=signature_data,
            signed_at=utcnow(),
            signed_ip=ip_address,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictingUpdateError(MSG_CONFLICT)


def sign(token: str | None, submission: dict, ip_address: str | None = None) -> IncomeRecord:
    """
    Write path: record the payee's data and signature.

    Raises:
        ValidationError: submission incomplete (nothing written)
        NotFoundError / AlreadySignedError / CancelledError: token unusable
        ConflictingUpdateError: a concurrent Sign on this token won
        StorageFailure: database error; record left 'pending', safe to retry
    """
    if not isinstance(submission, dict):
        raise ValidationError("Invalid JSON payload")

    # A unique-constraint collision on a first-time profile insert means
    # another token for the same person created it first: retry as update.
    attempts = 2
    for attempt in range(attempts):
        report = _load_by_token(token)
        merged = _merge_submission(submission, report.contact)
        signature_data = _validate_submission(merged, submission.get("signature_data"))
        report_id, company_id = report.id, report.company_id

        try:
            contact = contact_service.upsert_for_signing(company_id, merged)
            _claim_and_sign(report_id, contact, merged, signature_data, ip_address)
            db.session.commit()
        except ConflictingUpdateError:
            db.session.rollback()
            current_app.logger.warning("Concurrent sign lost for report id=%s", report_id)
            raise
        except IntegrityError as exc:
            db.session.rollback()
            if attempt < attempts - 1:
                current_app.logger.info(
                    "Contact insert collided for report id=%s, retrying as update", report_id
                )
                continue
            raise StorageFailure("簽名失敗，請重試") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Sign failed for report id=%s", report_id)
            raise StorageFailure("簽名失敗，請重試") from exc

        signed = db.session.get(IncomeRecord, report_id, populate_existing=True)
        current_app.logger.info(
            "Report %s signed (contact id=%s)", signed.report_number, signed.contact_id
        )
        return signed

    raise StorageFailure("簽名失敗，請重試")
