"""Organisation model: the tenant boundary."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from vendor_risk.models.base import Base, TimestampMixin


class Organisation(TimestampMixin, Base):
    """A tenant. Owns its users, suppliers and audit trail."""

    __tablename__ = "organisations"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Organisation {self.name}>"
