"""SQLAlchemy ORM models — local persisted state."""

from datetime import datetime

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from watchd.database import Base


# ── Credentials ──────────────────────────────────────────────────

class CredentialEntry(Base):
    """One persisted credential value (token, user id, name, email, guest flag)."""

    __tablename__ = "credentials"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(),
    )
