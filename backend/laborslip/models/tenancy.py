from __future__ import annotations

from ..extensions import db
from laborslip.time_utils import to_utc_z


class Company(db.Model):
    """
    Multi-tenant root: every payer company is a tenant.

    All contacts, reports and report sequences belong to exactly one
    company. No data may cross company boundaries.
    """
    __tablename__ = "labor_companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    tax_id = db.Column(db.String(16), nullable=True, unique=True, index=True)  # 統一編號
    responsible_person = db.Column(db.String(120), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    @property
    def short_name(self) -> str:
        """Name without the 股份有限公司 suffix, used in export filenames."""
        return self.name.replace("股份有限公司", "")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tax_id": self.tax_id,
            "responsible_person": self.responsible_person,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
