from __future__ import annotations

from ..extensions import db
from laborslip.time_utils import to_utc_z


# Fields a profile must carry before a payee may skip the full form and only sign.
COMPLETENESS_FIELDS = (
    "id_number",
    "address",
    "bank_name",
    "bank_account",
    "id_card_front_url",
    "id_card_back_url",
    "bank_book_url",
)

# Fields a signing submission overwrites on an existing profile.
MUTABLE_PROFILE_FIELDS = (
    "name",
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


class ContactProfile(db.Model):
    """
    Reusable payee identity, keyed by national ID number within a company.

    Created from the back office or upserted by the signing flow. The signing
    flow never deletes profiles.
    """
    __tablename__ = "labor_contacts"
    __table_args__ = (
        db.UniqueConstraint("company_id", "id_number", name="uq_labor_contacts_company_id_number"),
        db.Index("ix_labor_contacts_company_name", "company_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("labor_companies.id"), nullable=False, index=True)

    name = db.Column(db.String(120), nullable=False)
    # NULLs do not collide in the unique constraint, so back-office drafts may omit it
    id_number = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    bank_name = db.Column(db.String(120), nullable=True)
    bank_branch = db.Column(db.String(120), nullable=True)
    bank_account = db.Column(db.String(64), nullable=True)

    # Union members are exempt from the supplementary health-insurance levy
    is_union_member = db.Column(db.Boolean, nullable=False, default=False)

    id_card_front_url = db.Column(db.String(512), nullable=True)
    id_card_back_url = db.Column(db.String(512), nullable=True)
    bank_book_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("contacts", lazy=True))

    def __repr__(self) -> str:
        return f"<ContactProfile id={self.id} company_id={self.company_id} name={self.name!r}>"

    @property
    def missing_fields(self) -> list[str]:
        return [field for field in COMPLETENESS_FIELDS if not getattr(self, field)]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "name": self.name,
            "id_number": self.id_number,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "bank_name": self.bank_name,
            "bank_branch": self.bank_branch,
            "bank_account": self.bank_account,
            "is_union_member": self.is_union_member,
            "id_card_front_url": self.id_card_front_url,
            "id_card_back_url": self.id_card_back_url,
            "bank_book_url": self.bank_book_url,
            "is_complete": self.is_complete,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
