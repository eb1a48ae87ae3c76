"""
Admin router — client and key provisioning plus usage reporting.

POST /admin/clients                      create a client
POST /admin/api-keys                     mint a key (raw key returned once)
PUT  /admin/disable                      disable a key by its raw value
GET  /admin/usage/{client_id}            per-endpoint request counts
GET  /admin/api-keys/{api_key_id}/quota  today's quota position

All routes require X-Admin-Token when ADMIN_TOKEN is configured.
"""

import datetime
import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from keygate.auth.dependencies import require_admin
from keygate.auth.hashing import fingerprint
from keygate.core.config import settings
from keygate.core.database import get_db_session
from keygate.core.errors import ClientNotFoundError, InvalidConfigError
from keygate.models.client import Client
from keygate.schemas.admin import (
    APIKeyCreate,
    APIKeyCreatedOut,
    ClientCreate,
    ClientOut,
    DisableKeyOut,
    DisableKeyRequest,
    EndpointUsageOut,
    KeyStateOut,
    QuotaStatusOut,
)
from keygate.services import quota_ledger, registry, usage_recorder

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"], dependencies=[Depends(require_admin)])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


def _not_found(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "NotFound", "message": message},
    )


# ── 1. Clients ──────────────────────────────────────────────
@router.post(
    "/clients",
    response_model=ClientOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client",
)
async def create_client(payload: ClientCreate, session: DbSession) -> Client:
    try:
        return await registry.create_client(session, payload.name, payload.email)
    except InvalidConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "InvalidConfig", "message": str(exc)},
        ) from exc


# ── 2. Keys ─────────────────────────────────────────────────
@router.post(
    "/api-keys",
    response_model=APIKeyCreatedOut,
    status_code=status.HTTP_201_CREATED,
    summary="Mint an API key for a client",
    description=(
        "Generates a random key, stores only its fingerprint, and returns "
        "the raw key exactly once. Not idempotent: each call mints a new, "
        "independently metered key."
    ),
)
async def create_api_key(payload: APIKeyCreate, session: DbSession) -> APIKeyCreatedOut:
    try:
        identity, raw_key = await registry.provision_key(
            session, payload.client_id, payload.daily_limit,
        )
    except ClientNotFoundError as exc:
        raise _not_found("Client not found. Cannot create API key.") from exc
    except InvalidConfigError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"code": "InvalidConfig", "message": str(exc)},
        ) from exc

    return APIKeyCreatedOut(
        id=identity.api_key_id,
        client_id=identity.client_id,
        prefix=identity.prefix,
        daily_limit=identity.daily_limit,
        is_active=identity.is_active,
        api_key=raw_key,
    )


@router.put(
    "/disable",
    response_model=DisableKeyOut,
    summary="Disable an API key",
    description="Irreversible. Takes effect on the key's next request.",
)
async def disable_api_key(payload: DisableKeyRequest, session: DbSession) -> DisableKeyOut:
    identity = await registry.disable_key(session, fingerprint(payload.api_key))
    if identity is None:
        raise _not_found("API key not found")

    return DisableKeyOut(
        message="API key disabled successfully",
        data=KeyStateOut(id=identity.api_key_id, is_active=identity.is_active),
    )


# ── 3. Reporting ────────────────────────────────────────────
@router.get(
    "/usage/{client_id}",
    response_model=list[EndpointUsageOut],
    summary="Request counts per endpoint for a client",
)
async def get_client_usage(
    client_id: uuid.UUID,
    session: DbSession,
) -> list[EndpointUsageOut]:
    try:
        rows = await usage_recorder.query_usage(session, client_id)
    except ClientNotFoundError as exc:
        raise _not_found("Client not found") from exc
    return [EndpointUsageOut.model_validate(row, from_attributes=True) for row in rows]


@router.get(
    "/api-keys/{api_key_id}/quota",
    response_model=QuotaStatusOut,
    summary="Today's quota position for a key",
)
async def get_key_quota(api_key_id: uuid.UUID, session: DbSession) -> QuotaStatusOut:
    identity = await registry.get_key(session, api_key_id)
    if identity is None:
        raise _not_found("API key not found")

    today = quota_ledger.quota_day(
        datetime.datetime.now(datetime.timezone.utc), settings.quota_tz,
    )
    count = await quota_ledger.get_request_count(session, api_key_id, today)
    return QuotaStatusOut(
        api_key_id=api_key_id,
        day=today,
        request_count=count,
        daily_limit=identity.daily_limit,
        remaining=max(identity.daily_limit - count, 0),
        is_active=identity.is_active,
    )
