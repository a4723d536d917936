"""User model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from syndic_api.database import Base
from syndic_api.models.base import TenantOwnedMixin, TimestampMixin, UUIDMixin


class User(UUIDMixin, TenantOwnedMixin, TimestampMixin, Base):
    """Platform user; lot owners are users (authentication handled elsewhere)."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
