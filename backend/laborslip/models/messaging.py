from __future__ import annotations

from ..extensions import db
from laborslip.time_utils import to_utc_z


class LineGroup(db.Model):
    """LINE group the notification bot has joined (recorded from the webhook)."""
    __tablename__ = "labor_line_groups"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    group_name = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "group_id": self.group_id,
            "group_name": self.group_name,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
