"""
Pydantic v2 schemas for the provisioning (admin) endpoints.

Separation:
  • *Create / *Request — what the caller sends.
  • *Out              — what the server returns.

The raw API key appears in exactly one schema (APIKeyCreatedOut) and only
in the response to the request that minted it.
"""

from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, ConfigDict, Field


# ── Clients ─────────────────────────────────────────────────
class ClientCreate(BaseModel):
    """Payload accepted by POST /admin/clients."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=255, examples=["Acme Corp"])
    email: str = Field(..., min_length=3, max_length=255, examples=["ops@acme.test"])


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    created_at: datetime.datetime


# ── API keys ────────────────────────────────────────────────
class APIKeyCreate(BaseModel):
    """
    Payload accepted by POST /admin/api-keys.

    daily_limit is validated by the registry (positive integer) so the
    same rule applies to every caller, not just HTTP.
    """

    model_config = ConfigDict(extra="forbid")

    client_id: uuid.UUID
    daily_limit: int = Field(..., examples=[1000])


class APIKeyCreatedOut(BaseModel):
    """Returned once — `api_key` is never retrievable again."""

    id: uuid.UUID
    client_id: uuid.UUID
    prefix: str
    daily_limit: int
    is_active: bool
    api_key: str


class DisableKeyRequest(BaseModel):
    """Payload accepted by PUT /admin/disable (the raw key)."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    api_key: str = Field(..., min_length=1)


class KeyStateOut(BaseModel):
    id: uuid.UUID
    is_active: bool


class DisableKeyOut(BaseModel):
    message: str
    data: KeyStateOut


# ── Reporting ───────────────────────────────────────────────
class EndpointUsageOut(BaseModel):
    """One row of the per-client usage report."""

    model_config = ConfigDict(from_attributes=True)

    endpoint: str
    request_count: int
    client_name: str


class QuotaStatusOut(BaseModel):
    """Today's quota position for one key."""

    api_key_id: uuid.UUID
    day: datetime.date
    request_count: int
    daily_limit: int
    remaining: int
    is_active: bool
