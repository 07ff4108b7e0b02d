"""Account model as maintained by the external account store.

This core only ever reads from the table, and never selects password_hash.
"""

from datetime import datetime
from enum import StrEnum
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from accounts_gate.models.base import Base, TimestampMixin


class Role(StrEnum):
    """Account roles, ordered from most to least privileged."""

    ADMIN = "Admin"
    ACCOUNTANT = "Accountant"
    CONTACT = "Contact"


class Account(TimestampMixin, Base):
    """A login identity of the accounting application."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: uuid4().hex)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.CONTACT.value)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Tokens issued before this instant are rejected
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return f"<Account {self.email} ({self.role})>"
