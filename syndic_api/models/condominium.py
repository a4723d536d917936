"""Condominium model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from syndic_api.database import Base
from syndic_api.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin


class Condominium(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Managed building; reconciliation views are scoped to one condominium."""

    __tablename__ = "condominiums"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
