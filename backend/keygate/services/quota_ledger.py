"""
Store-backed daily quota ledger.

Enforces per-API-key daily limits using a single conditional upsert
against the quota_counters table.

Design decisions:
  • Check AND increment in ONE statement:
        INSERT (count = 1)
        ON CONFLICT (api_key_id, day)
        DO UPDATE SET count = count + 1 WHERE count < :limit
        RETURNING count
    A returned row means the request was admitted; no row means the
    counter was already at the limit. There is no read-then-write gap,
    so concurrent callers can never overshoot the limit, and the stored
    count always equals the number of admissions.
  • First request of the day: the composite PK makes counter creation
    idempotent. Two racing inserts — one wins, the other takes the
    ON CONFLICT branch and is evaluated against the winner's row.
  • Denials don't touch the counter.
  • Day bucket — calendar day in the reference timezone (UTC by default),
    so every instance agrees on "today".

PostgreSQL and SQLite both support ON CONFLICT … DO UPDATE … WHERE …
RETURNING. Any other dialect fails closed.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.core.errors import STORE_ERRORS, StoreUnavailableError
from keygate.models.quota_counter import QuotaCounter

logger = logging.getLogger(__name__)

_UPSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


@dataclass(frozen=True, slots=True)
class QuotaOutcome:
    """Result of one check-and-increment.

    Attributes:
        admitted:      True if the counter was incremented.
        request_count: The new count when admitted, else None.
    """

    admitted: bool
    request_count: int | None = None


DENIED = QuotaOutcome(admitted=False)


def quota_day(moment: datetime.datetime, tz: datetime.tzinfo) -> datetime.date:
    """Calendar day of `moment` in `tz`. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=datetime.timezone.utc)
    return moment.astimezone(tz).date()


def _upsert_for(session: AsyncSession):  # type: ignore[no-untyped-def]
    dialect = session.get_bind().dialect.name
    try:
        return _UPSERT_BY_DIALECT[dialect]
    except KeyError:
        raise StoreUnavailableError(
            f"No atomic conditional upsert available for dialect {dialect!r}"
        ) from None


async def check_and_increment(
    session: AsyncSession,
    api_key_id: uuid.UUID,
    day: datetime.date,
    limit: int,
) -> QuotaOutcome:
    """
    Atomically admit one request against (api_key_id, day) if under `limit`.

    Commits immediately — the increment is durable when this returns.
    Raises StoreUnavailableError on any storage failure.
    """
    if limit < 1:
        return DENIED

    insert = _upsert_for(session)
    stmt = (
        insert(QuotaCounter)
        .values(api_key_id=api_key_id, day=day, request_count=1)
        .on_conflict_do_update(
            index_elements=[QuotaCounter.api_key_id, QuotaCounter.day],
            set_={
                "request_count": QuotaCounter.request_count + 1,
                "updated_at": func.now(),
            },
            where=QuotaCounter.request_count < limit,
        )
        .returning(QuotaCounter.request_count)
    )

    try:
        result = await session.execute(stmt)
        new_count = result.scalar_one_or_none()
        await session.commit()
    except STORE_ERRORS as exc:
        await session.rollback()
        raise StoreUnavailableError("Quota counter update failed") from exc

    if new_count is None:
        logger.debug("Key %s at limit %d for %s", api_key_id, limit, day)
        return DENIED
    return QuotaOutcome(admitted=True, request_count=new_count)


async def get_request_count(
    session: AsyncSession,
    api_key_id: uuid.UUID,
    day: datetime.date,
) -> int:
    """Read the admitted count for a key/day. Returns 0 if no row."""
    stmt = select(QuotaCounter.request_count).where(
        QuotaCounter.api_key_id == api_key_id,
        QuotaCounter.day == day,
    )
    try:
        result = await session.execute(stmt)
    except STORE_ERRORS as exc:
        raise StoreUnavailableError("Quota counter read failed") from exc
    row = result.scalar_one_or_none()
    return row if row is not None else 0
