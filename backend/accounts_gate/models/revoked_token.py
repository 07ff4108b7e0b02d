"""Revoked bearer tokens for multi-instance deployments."""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from accounts_gate.models.base import Base


class RevokedToken(Base):
    """A revoked token identified by the SHA-256 digest of its encoded form.

    Entries are created on logout and deleted by the sweep once expires_at passes.
    """

    __tablename__ = "revoked_tokens"

    token_digest: Mapped[str] = mapped_column(String(64), primary_key=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    revoked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
