"""
Usage recorder — append-only log of admitted requests.

Recording is best-effort: it runs after the admission decision (normally
as a background task) and a failure here is logged, never raised. An
admitted request is never reversed or blocked because its usage row
could not be written.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keygate.core.errors import STORE_ERRORS, ClientNotFoundError, StoreUnavailableError
from keygate.models.api_key import APIKey
from keygate.models.client import Client
from keygate.models.usage import UsageRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class EndpointUsage:
    """Request count for one endpoint across all of a client's keys."""

    endpoint: str
    request_count: int
    client_name: str


async def record_usage(
    session_factory: async_sessionmaker[AsyncSession],
    api_key_id: uuid.UUID,
    endpoint: str,
    status_code: int,
) -> bool:
    """Append one usage row in its own session. Returns False on failure."""
    try:
        async with session_factory() as session:
            session.add(
                UsageRecord(
                    api_key_id=api_key_id,
                    endpoint=endpoint,
                    status_code=status_code,
                )
            )
            await session.commit()
    except STORE_ERRORS:
        logger.exception(
            "Failed to record usage for key %s on %s", api_key_id, endpoint
        )
        return False
    return True


async def query_usage(
    session: AsyncSession,
    client_id: uuid.UUID,
) -> list[EndpointUsage]:
    """
    SQL: SELECT u.endpoint, COUNT(*), c.name
         FROM usage_records u
         JOIN api_keys k ON u.api_key_id = k.id
         JOIN api_clients c ON k.client_id = c.id
         WHERE k.client_id = :client_id
         GROUP BY u.endpoint, c.name

    Raises ClientNotFoundError for an unknown client. A known client with
    no traffic yields an empty list.
    """
    try:
        client = await session.get(Client, client_id)
        if client is None:
            raise ClientNotFoundError(f"Client {client_id} not found")

        stmt = (
            select(
                UsageRecord.endpoint,
                func.count().label("request_count"),
                Client.name.label("client_name"),
            )
            .join(APIKey, UsageRecord.api_key_id == APIKey.id)
            .join(Client, APIKey.client_id == Client.id)
            .where(APIKey.client_id == client_id)
            .group_by(UsageRecord.endpoint, Client.name)
            .order_by(UsageRecord.endpoint.asc())
        )
        result = await session.execute(stmt)
    except STORE_ERRORS as exc:
        raise StoreUnavailableError("Usage query failed") from exc

    return [
        EndpointUsage(
            endpoint=row.endpoint,
            request_count=row.request_count,
            client_name=row.client_name,
        )
        for row in result.all()
    ]
