"""
FastAPI dependencies for admission and admin access.

Order in request pipeline: ADMISSION (auth + quota) → ROUTER LOGIC.

  • require_admission — runs the AdmissionGate and turns a denial into an
    HTTPException carrying {"code": <DenialReason>, "message": ...}.
  • require_admin     — guards /admin when ADMIN_TOKEN is configured.

Usage in routers:
    Admitted = Annotated[AdmissionDecision, Depends(require_admission)]
"""

from __future__ import annotations

import secrets

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keygate.auth.admission import AdmissionDecision, AdmissionGate, authenticate_and_admit
from keygate.core.config import settings
from keygate.core.database import get_session_factory


def get_admission_gate(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AdmissionGate:
    """Build the gate from settings around the injected store handle."""
    return AdmissionGate(
        session_factory,
        header_name=settings.API_KEY_HEADER,
        timezone=settings.quota_tz,
        store_timeout=settings.QUOTA_STORE_TIMEOUT_SECONDS,
    )


async def require_admission(
    request: Request,
    gate: AdmissionGate = Depends(get_admission_gate),
) -> AdmissionDecision:
    """
    FastAPI dependency — admits the request or raises 401 / 403 / 429.

    On success request.state.api_key_id is set by the gate.
    """
    decision = await authenticate_and_admit(request, gate)
    if decision.admitted:
        return decision

    headers = None
    if decision.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": settings.API_KEY_HEADER}

    raise HTTPException(
        status_code=decision.status_code,
        detail=decision.error_body(),
        headers=headers,
    )


async def require_admin(
    x_admin_token: str | None = Header(default=None, alias="X-Admin-Token"),
) -> None:
    """Reject admin calls without the configured token (if one is set)."""
    if not settings.ADMIN_TOKEN:
        return
    if x_admin_token is None or not secrets.compare_digest(
        x_admin_token.encode("utf-8"), settings.ADMIN_TOKEN.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AdminTokenInvalid", "message": "Admin token missing or invalid"},
        )
