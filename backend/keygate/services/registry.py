"""
Key registry — the authoritative record of clients and their API keys.

Every write commits before returning, so a provisioned or disabled key
survives a process restart. Lookups are plain point reads by fingerprint
(unique index), no locking needed.

Provisioning is NOT idempotent: calling provision_key twice for the same
client mints two independent keys, each with its own daily quota.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.auth.hashing import generate_api_key, key_prefix
from keygate.core.errors import (
    STORE_ERRORS,
    ClientNotFoundError,
    InvalidConfigError,
    StoreUnavailableError,
)
from keygate.models.api_key import APIKey
from keygate.models.client import Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class KeyIdentity:
    """What the registry knows about a key, detached from the session."""

    api_key_id: uuid.UUID
    client_id: uuid.UUID
    daily_limit: int
    is_active: bool
    prefix: str

    @classmethod
    def from_model(cls, api_key: APIKey) -> KeyIdentity:
        return cls(
            api_key_id=api_key.id,
            client_id=api_key.client_id,
            daily_limit=api_key.daily_limit,
            is_active=api_key.is_active,
            prefix=api_key.prefix,
        )


def _validate_daily_limit(daily_limit: object) -> int:
    # bool is an int subclass; True must not become a limit of 1
    if isinstance(daily_limit, bool) or not isinstance(daily_limit, int):
        raise InvalidConfigError("daily_limit must be a positive integer")
    if daily_limit < 1:
        raise InvalidConfigError("daily_limit must be a positive integer")
    return daily_limit


async def resolve_key(session: AsyncSession, key_hash: str) -> KeyIdentity | None:
    """Look up a key by fingerprint. None means no such key."""
    stmt = select(APIKey).where(APIKey.key_hash == key_hash)
    try:
        result = await session.execute(stmt)
    except STORE_ERRORS as exc:
        raise StoreUnavailableError("API key lookup failed") from exc

    api_key = result.scalar_one_or_none()
    if api_key is None:
        return None
    return KeyIdentity.from_model(api_key)


async def get_key(session: AsyncSession, api_key_id: uuid.UUID) -> KeyIdentity | None:
    api_key = await session.get(APIKey, api_key_id)
    return KeyIdentity.from_model(api_key) if api_key is not None else None


async def get_client(session: AsyncSession, client_id: uuid.UUID) -> Client | None:
    return await session.get(Client, client_id)


async def create_client(session: AsyncSession, name: str, email: str) -> Client:
    """Register a new client. Name and email must be non-blank."""
    if not name or not name.strip():
        raise InvalidConfigError("name is required")
    if not email or not email.strip():
        raise InvalidConfigError("email is required")

    client = Client(name=name.strip(), email=email.strip())
    try:
        session.add(client)
        await session.commit()
        await session.refresh(client)
    except STORE_ERRORS as exc:
        await session.rollback()
        raise StoreUnavailableError("Failed to create client") from exc

    logger.info("Created client %s", client.id)
    return client


async def provision_key(
    session: AsyncSession,
    client_id: uuid.UUID,
    daily_limit: int,
) -> tuple[KeyIdentity, str]:
    """
    Mint a new key for `client_id`.

    Returns (identity, raw_key). The raw key is never stored — only its
    fingerprint — so this is the one and only time it is visible.
    """
    daily_limit = _validate_daily_limit(daily_limit)

    if await get_client(session, client_id) is None:
        raise ClientNotFoundError(f"Client {client_id} not found")

    raw_key, key_hash = generate_api_key()
    api_key = APIKey(
        client_id=client_id,
        key_hash=key_hash,
        prefix=key_prefix(raw_key),
        daily_limit=daily_limit,
        is_active=True,
    )
    try:
        session.add(api_key)
        await session.commit()
        await session.refresh(api_key)
    except STORE_ERRORS as exc:
        await session.rollback()
        raise StoreUnavailableError("Failed to store API key") from exc

    logger.info(
        "Provisioned key %s (prefix %s) for client %s, daily_limit=%d",
        api_key.id, api_key.prefix, client_id, daily_limit,
    )
    return KeyIdentity.from_model(api_key), raw_key


async def disable_key(session: AsyncSession, key_hash: str) -> KeyIdentity | None:
    """
    Deactivate a key by fingerprint. Irreversible.

    Quota counters are left untouched. Returns None if no key matches.
    """
    stmt = select(APIKey).where(APIKey.key_hash == key_hash)
    try:
        result = await session.execute(stmt)
        api_key = result.scalar_one_or_none()
        if api_key is None:
            return None
        api_key.is_active = False
        await session.commit()
    except STORE_ERRORS as exc:
        await session.rollback()
        raise StoreUnavailableError("Failed to disable API key") from exc

    logger.info("Disabled key %s (prefix %s)", api_key.id, api_key.prefix)
    return KeyIdentity.from_model(api_key)
