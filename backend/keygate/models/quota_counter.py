"""
Daily quota counter model.

Each row is the request count for one API key on one calendar day.
Composite PK: (api_key_id, day) — exactly one row per key per day.

The day is computed in the configured reference timezone (UTC by default),
never from the caller's clock zone. Rows for past days are kept for audit
and are never written again.

Atomic increments go through INSERT … ON CONFLICT DO UPDATE … WHERE in
services/quota_ledger.py.
"""

import uuid
import datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from keygate.core.database import Base


class QuotaCounter(Base):
    """Per-key, per-day admitted request counter."""

    __tablename__ = "quota_counters"

    api_key_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        primary_key=True,
    )
    day: Mapped[datetime.date] = mapped_column(
        Date,
        primary_key=True,
    )
    request_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint("request_count >= 0", name="ck_quota_counters_count_non_neg"),
    )

    def __repr__(self) -> str:
        return (
            f"<QuotaCounter key={self.api_key_id!s:.8} "
            f"day={self.day} count={self.request_count}>"
        )
