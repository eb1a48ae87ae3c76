import asyncio
import datetime
import uuid
from zoneinfo import ZoneInfo

import pytest

from keygate.core.errors import StoreUnavailableError
from keygate.services import quota_ledger
from keygate.services.quota_ledger import check_and_increment, get_request_count, quota_day
from factories import make_key

DAY = datetime.date(2026, 3, 1)


async def _admit(session_factory, api_key_id, day, limit):
    async with session_factory() as session:
        return await check_and_increment(session, api_key_id, day, limit)


async def _count(session_factory, api_key_id, day):
    async with session_factory() as session:
        return await get_request_count(session, api_key_id, day)


def test_sequential_admissions_stop_at_limit(session_factory):
    async def scenario():
        _, identity, _ = await make_key(session_factory, daily_limit=2)
        outcomes = [
            await _admit(session_factory, identity.api_key_id, DAY, 2)
            for _ in range(3)
        ]
        return outcomes, await _count(session_factory, identity.api_key_id, DAY)

    outcomes, count = asyncio.run(scenario())

    assert [o.admitted for o in outcomes] == [True, True, False]
    assert [o.request_count for o in outcomes] == [1, 2, None]
    assert count == 2


def test_concurrent_requests_never_overshoot_limit(session_factory):
    """N + 5 racing callers → exactly N admitted, count == N."""
    limit = 10

    async def scenario():
        _, identity, _ = await make_key(session_factory, daily_limit=limit)
        outcomes = await asyncio.gather(*[
            _admit(session_factory, identity.api_key_id, DAY, limit)
            for _ in range(limit + 5)
        ])
        return outcomes, await _count(session_factory, identity.api_key_id, DAY)

    outcomes, count = asyncio.run(scenario())

    admitted = [o for o in outcomes if o.admitted]
    assert len(admitted) == limit
    assert len(outcomes) - len(admitted) == 5
    assert count == limit
    assert sorted(o.request_count for o in admitted) == list(range(1, limit + 1))


def test_concurrent_first_requests_of_the_day_create_one_counter(session_factory):
    async def scenario():
        _, identity, _ = await make_key(session_factory, daily_limit=100)
        outcomes = await asyncio.gather(*[
            _admit(session_factory, identity.api_key_id, DAY, 100)
            for _ in range(8)
        ])
        return outcomes, await _count(session_factory, identity.api_key_id, DAY)

    outcomes, count = asyncio.run(scenario())
    assert all(o.admitted for o in outcomes)
    assert count == 8


def test_new_day_gets_a_fresh_counter(session_factory):
    next_day = DAY + datetime.timedelta(days=1)

    async def scenario():
        _, identity, _ = await make_key(session_factory, daily_limit=1)
        key_id = identity.api_key_id
        first = await _admit(session_factory, key_id, DAY, 1)
        blocked = await _admit(session_factory, key_id, DAY, 1)
        tomorrow = await _admit(session_factory, key_id, next_day, 1)
        return (
            first, blocked, tomorrow,
            await _count(session_factory, key_id, DAY),
            await _count(session_factory, key_id, next_day),
        )

    first, blocked, tomorrow, day_count, next_count = asyncio.run(scenario())
    assert first.admitted and not blocked.admitted and tomorrow.admitted
    assert day_count == 1
    assert next_count == 1


def test_counters_are_per_key(session_factory):
    async def scenario():
        _, key_a, _ = await make_key(session_factory, daily_limit=1, name="A")
        _, key_b, _ = await make_key(session_factory, daily_limit=1, name="B")
        return (
            await _admit(session_factory, key_a.api_key_id, DAY, 1),
            await _admit(session_factory, key_b.api_key_id, DAY, 1),
        )

    a, b = asyncio.run(scenario())
    assert a.admitted and b.admitted


def test_non_positive_limit_is_denied_without_a_counter(session_factory):
    async def scenario():
        _, identity, _ = await make_key(session_factory, daily_limit=1)
        outcome = await _admit(session_factory, identity.api_key_id, DAY, 0)
        return outcome, await _count(session_factory, identity.api_key_id, DAY)

    outcome, count = asyncio.run(scenario())
    assert outcome == quota_ledger.DENIED
    assert count == 0


def test_missing_counter_reads_as_zero(session_factory):
    async def scenario():
        _, identity, _ = await make_key(session_factory)
        return await _count(session_factory, identity.api_key_id, DAY)

    assert asyncio.run(scenario()) == 0


def test_quota_day_uses_reference_timezone():
    moment = datetime.datetime(2026, 3, 2, 3, 0, tzinfo=datetime.timezone.utc)
    assert quota_day(moment, datetime.timezone.utc) == datetime.date(2026, 3, 2)
    assert quota_day(moment, ZoneInfo("America/Chicago")) == datetime.date(2026, 3, 1)


def test_quota_day_treats_naive_as_utc():
    naive = datetime.datetime(2026, 3, 1, 23, 59, 59)
    assert quota_day(naive, datetime.timezone.utc) == datetime.date(2026, 3, 1)
    assert quota_day(naive, ZoneInfo("Asia/Tokyo")) == datetime.date(2026, 3, 2)


def test_unreachable_store_raises_store_unavailable(unreachable_session_factory):
    with pytest.raises(StoreUnavailableError):
        asyncio.run(_admit(unreachable_session_factory, uuid.uuid4(), DAY, 5))
