"""
API key model — authentication credential for a client.

Security notes:
  • Raw API keys are NEVER stored. Only a SHA-256 fingerprint is persisted.
  • The `prefix` column stores the first 12 characters (e.g., "kg_live_3fa9")
    for identification in logs/UI without exposing the full key.
  • `is_active` only ever goes true → false. Keys are never deleted
    (audit trail) and never re-enabled.
"""

import uuid
import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.sql import func, true
from sqlalchemy.orm import Mapped, mapped_column

from keygate.core.database import Base


class APIKey(Base):
    """Hashed API key belonging to a client, with its daily quota."""

    __tablename__ = "api_keys"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("api_clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
    prefix: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
    )
    daily_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("daily_limit > 0", name="ck_api_keys_daily_limit_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<APIKey id={self.id!s:.8} prefix={self.prefix!r} "
            f"limit={self.daily_limit} active={self.is_active}>"
        )
