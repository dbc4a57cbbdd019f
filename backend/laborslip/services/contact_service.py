# Overview: Service-layer operations for contact profiles; encapsulates business logic and database work.

"""
Contact Profile Service

A ContactProfile is a reusable payee identity keyed by national ID number
within a company. Profiles are maintained from the back office and upserted
by the signing flow, which never deletes them.

UNIQUENESS: (company_id, id_number) is enforced by a unique constraint, so
two first-time submissions for the same person cannot create duplicates;
the loser of that race retries as an update.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ContactProfile, IncomeRecord
from ..models.contacts import MUTABLE_PROFILE_FIELDS
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    coerce_bool,
    normalize_id_number,
    validate_payload,
)
from .concurrency import commit_or_fail
from .tenant_service import scoped_query


CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={
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
    },
    required_on_create={"name"},
)


def is_complete(contact: ContactProfile | None) -> bool:
    """A linked profile is complete when the payee only needs to sign."""
    return contact is not None and contact.is_complete


def list_contacts(company_id: int, search: str | None = None) -> list[ContactProfile]:
    query = scoped_query(ContactProfile, company_id)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(
                ContactProfile.name.ilike(pattern),
                ContactProfile.id_number.ilike(pattern),
                ContactProfile.phone.ilike(pattern),
            )
        )
    return query.order_by(ContactProfile.name.asc()).all()


def get_contact(company_id: int, contact_id: int) -> ContactProfile:
    contact = scoped_query(ContactProfile, company_id).filter(
        ContactProfile.id == contact_id
    ).first()
    if not contact:
        raise NotFoundError("找不到此聯絡人")
    return contact


def find_by_id_number(company_id: int, id_number: str | None) -> ContactProfile | None:
    normalized = normalize_id_number(id_number)
    if not normalized:
        return None
    return scoped_query(ContactProfile, company_id).filter(
        ContactProfile.id_number == normalized
    ).first()


def _clean(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(
        model=ContactProfile,
        payload=payload,
        policy=CONTACT_POLICY,
        partial=partial,
    )
    if "id_number" in patch:
        patch["id_number"] = normalize_id_number(patch["id_number"])
    if "is_union_member" in patch and patch["is_union_member"] is None:
        patch["is_union_member"] = False
    return patch


def create_contact(company_id: int, payload: dict) -> ContactProfile:
    """
    Create a profile from the back-office contact screen.

    Raises:
        ValidationError: invalid or missing fields
        ConflictError: a profile with the same ID number already exists
    """
    patch = _clean(payload, partial=False)

    if patch.get("id_number") and find_by_id_number(company_id, patch["id_number"]):
        raise ConflictError("此身分證字號已存在")

    contact = ContactProfile(company_id=company_id, **patch)
    db.session.add(contact)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("此身分證字號已存在")
    return contact


def update_contact(company_id: int, contact_id: int, payload: dict) -> ContactProfile:
    contact = get_contact(company_id, contact_id)
    patch = _clean(payload, partial=True)

    new_id_number = patch.get("id_number")
    if new_id_number and new_id_number != contact.id_number:
        other = find_by_id_number(company_id, new_id_number)
        if other and other.id != contact.id:
            raise ConflictError("此身分證字號已存在")

    for key, value in patch.items():
        setattr(contact, key, value)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("此身分證字號已存在")
    return contact


def delete_contact(company_id: int, contact_id: int) -> None:
    """
    Delete a profile. Reports that referenced it keep their payee snapshot
    and lose only the link.
    """
    contact = get_contact(company_id, contact_id)
    db.session.execute(
        update(IncomeRecord)
        .where(IncomeRecord.company_id == company_id, IncomeRecord.contact_id == contact.id)
        .values(contact_id=None)
    )
    db.session.delete(contact)
    commit_or_fail("刪除聯絡人失敗")


def upsert_for_signing(company_id: int, submission: dict) -> ContactProfile:
    """
    Create or overwrite the profile for a signing submission, keyed by
    (company_id, id_number).

    Flushes but does not commit: the caller owns the transaction so the
    profile write and the report transition commit together. IntegrityError
    propagates when a concurrent first-time insert wins the unique constraint.
    """
    id_number = normalize_id_number(submission.get("id_number"))
    contact = find_by_id_number(company_id, id_number)

    values = {field: submission.get(field) for field in MUTABLE_PROFILE_FIELDS}
    values["is_union_member"] = coerce_bool(values.get("is_union_member"))

    if contact:
        for key, value in values.items():
            setattr(contact, key, value)
    else:
        contact = ContactProfile(company_id=company_id, id_number=id_number, **values)
        db.session.add(contact)

    db.session.flush()
    return contact
