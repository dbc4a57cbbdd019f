"""
Multi-Tenant Service: Company Validation and Scoping Helpers

Every back-office request is scoped to one company, chosen explicitly by
the caller (X-Company-Id header) and verified against the user's
memberships. Services receive company_id as a parameter; there is no
implicit "current company" state.

SECURITY INVARIANTS:
1. Every company-scoped request has g.company_id set by @require_company
2. Row lookups filter by company_id; rows of another company are reported
   as not found (existence is never revealed)
"""

from ..extensions import db
from ..models import Company, CompanyMembership


class TenantAccessError(Exception):
    """Raised when cross-company access is attempted."""
    pass


def get_user_companies(user_id: int, active_only: bool = True) -> list[Company]:
    """Companies the user has been granted access to, ordered by name."""
    query = db.session.query(Company).join(
        CompanyMembership, CompanyMembership.company_id == Company.id
    ).filter(CompanyMembership.user_id == user_id)

    if active_only:
        query = query.filter(Company.is_active.is_(True))

    return query.order_by(Company.name).all()


def require_company_access(user_id: int, company_id: int) -> Company:
    """
    Validate that a user may act on behalf of a company.

    Raises TenantAccessError if the company doesn't exist, is inactive, or
    the user has no membership. The message is identical in every case.
    """
    company = db.session.query(Company).filter_by(id=company_id).first()
    if not company or not company.is_active:
        raise TenantAccessError("Company not found")

    membership = db.session.query(CompanyMembership).filter_by(
        user_id=user_id,
        company_id=company_id,
    ).first()
    if not membership:
        raise TenantAccessError("Company not found")

    return company


def scoped_query(model, company_id: int):
    """Base query for a company-owned model."""
    return db.session.query(model).filter(model.company_id == company_id)
