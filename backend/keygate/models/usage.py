"""
SQLAlchemy model for the `usage_records` table.

Each row is one admitted call to a protected endpoint. The table is
append-only: rows are never updated or deleted by the service.
"""

import uuid
import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from keygate.core.database import Base


class UsageRecord(Base):
    """One admitted request, for audit and reporting."""

    __tablename__ = "usage_records"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    api_key_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("api_keys.id", ondelete="CASCADE"),
        nullable=False,
    )
    endpoint: Mapped[str] = mapped_column(String(255), nullable=False)
    status_code: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_usage_records_api_key_id", "api_key_id"),
        Index("ix_usage_records_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<UsageRecord key={self.api_key_id!s:.8} "
            f"endpoint={self.endpoint} status={self.status_code}>"
        )
