"""
Client model — the owner of one or more API keys.

Created by provisioning; not mutated afterwards.
"""

import uuid
import datetime

from sqlalchemy import DateTime, Text, Uuid
from sqlalchemy.sql import func
from sqlalchemy.orm import Mapped, mapped_column

from keygate.core.database import Base


class Client(Base):
    """A consumer of the protected API."""

    __tablename__ = "api_clients"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    def __repr__(self) -> str:
        return f"<Client id={self.id!s:.8} name={self.name!r}>"
