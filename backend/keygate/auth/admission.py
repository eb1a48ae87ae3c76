"""
Admission gate — one pass/deny decision per inbound request.

Flow:
  START
    → CREDENTIAL_EXTRACTED   raw key read from the configured header
    → IDENTITY_RESOLVED      fingerprint looked up in the key registry
    → QUOTA_CHECKED          atomic check-and-increment in the ledger
    → ADMITTED | DENIED

  missing credential          → DENIED 401 CredentialMissing
  unknown / disabled key      → DENIED 403 CredentialInvalid
  registry store failure      → DENIED 403 CredentialInvalid
  daily limit reached         → DENIED 429 QuotaExceeded
  ledger failure / timeout    → DENIED 429 QuotaExceeded

Security:
  • Fail-closed: every store error or timeout ends in DENIED. The quota
    check is never retried — a retry after an ambiguous failure could
    admit a request the ledger already counted, or vice versa.
  • Raw keys are NEVER logged; only the stored 12-char prefix.

Cancellation:
  The ledger call is shielded. If the client disconnects mid-check, the
  increment still runs to completion and is committed. The store timeout
  lives *inside* the shield, so a timeout cancels the transaction (rolled
  back, not counted) and the request is denied.

The gate is a plain object composed by the routing layer — see
auth/dependencies.py for the FastAPI wiring.
"""

from __future__ import annotations

import asyncio
import datetime
import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keygate.auth.hashing import fingerprint
from keygate.core.errors import DenialReason, InvalidInputError, StoreUnavailableError
from keygate.services import quota_ledger, registry
from keygate.services.quota_ledger import QuotaOutcome
from keygate.services.registry import KeyIdentity

logger = logging.getLogger(__name__)


class AdmissionState(str, enum.Enum):
    START = "start"
    CREDENTIAL_EXTRACTED = "credential_extracted"
    IDENTITY_RESOLVED = "identity_resolved"
    QUOTA_CHECKED = "quota_checked"
    ADMITTED = "admitted"
    DENIED = "denied"


@dataclass(frozen=True, slots=True)
class AdmissionDecision:
    """Terminal outcome of the gate for one request.

    Attributes:
        admitted:      Whether the protected handler may run.
        status_code:   200 when admitted, else 401 / 403 / 429.
        reason:        DenialReason when denied, None when admitted.
        message:       Human-readable explanation for the caller.
        identity:      Resolved key identity (admitted requests only).
        request_count: Counter value after this admission.
    """

    admitted: bool
    status_code: int
    reason: DenialReason | None = None
    message: str = ""
    identity: KeyIdentity | None = None
    request_count: int | None = None

    def error_body(self) -> dict[str, str]:
        """Body sent to a denied caller: {"code": <DenialReason>, "message": ...}."""
        if self.reason is None:
            raise ValueError("admitted decisions carry no error body")
        return {"code": self.reason.value, "message": self.message}


def _deny(status_code: int, reason: DenialReason, message: str) -> AdmissionDecision:
    return AdmissionDecision(
        admitted=False,
        status_code=status_code,
        reason=reason,
        message=message,
    )


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class AdmissionGate:
    """Hasher → registry → ledger, composed into a single decision."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        header_name: str = "X-API-Key",
        timezone: datetime.tzinfo = datetime.timezone.utc,
        store_timeout: float | None = 2.0,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._header_name = header_name
        self._timezone = timezone
        self._store_timeout = store_timeout
        self._clock = clock

    async def admit(self, request: Any) -> AdmissionDecision:
        """
        Decide once for `request`.

        `request` needs a `headers` mapping and a mutable `state` bag
        (Starlette's Request has both). On admission, `state.api_key_id`
        and `state.identity` are set for downstream handlers.
        """
        received_at = self._clock()
        state = AdmissionState.START

        # ── 1. Extract credential ───────────────────────────
        raw_key = (request.headers.get(self._header_name) or "").strip()
        try:
            key_hash = fingerprint(raw_key)
        except InvalidInputError:
            logger.info("Denied: no credential in %s header", self._header_name)
            return _deny(401, DenialReason.CREDENTIAL_MISSING, "API key missing")
        state = self._advance(state, AdmissionState.CREDENTIAL_EXTRACTED)

        # ── 2. Resolve identity ─────────────────────────────
        try:
            identity = await self._bounded(self._resolve(key_hash))
        except (StoreUnavailableError, asyncio.TimeoutError):
            logger.warning("Denied: key registry unavailable", exc_info=True)
            return _deny(403, DenialReason.CREDENTIAL_INVALID, "API key could not be verified")

        if identity is None:
            logger.info("Denied: unknown API key")
            return _deny(403, DenialReason.CREDENTIAL_INVALID, "Invalid API key")
        if not identity.is_active:
            logger.info("Denied: disabled key %s", identity.prefix)
            return _deny(403, DenialReason.CREDENTIAL_INVALID, "Invalid API key")
        state = self._advance(state, AdmissionState.IDENTITY_RESOLVED)

        # ── 3. Quota ────────────────────────────────────────
        day = quota_ledger.quota_day(received_at, self._timezone)
        try:
            outcome = await asyncio.shield(self._bounded(self._check_quota(identity, day)))
        except (StoreUnavailableError, asyncio.TimeoutError):
            logger.warning(
                "Denied: quota store unavailable for key %s", identity.prefix,
                exc_info=True,
            )
            return _deny(429, DenialReason.QUOTA_EXCEEDED, "Daily quota could not be verified")
        state = self._advance(state, AdmissionState.QUOTA_CHECKED)

        if not outcome.admitted:
            logger.info(
                "Denied: key %s reached daily limit %d for %s",
                identity.prefix, identity.daily_limit, day,
            )
            return _deny(429, DenialReason.QUOTA_EXCEEDED, "Daily quota exceeded")

        # ── 4. Tag request context ──────────────────────────
        request.state.api_key_id = identity.api_key_id
        request.state.identity = identity
        self._advance(state, AdmissionState.ADMITTED)

        return AdmissionDecision(
            admitted=True,
            status_code=200,
            identity=identity,
            request_count=outcome.request_count,
        )

    async def _resolve(self, key_hash: str) -> KeyIdentity | None:
        async with self._session_factory() as session:
            return await registry.resolve_key(session, key_hash)

    async def _check_quota(self, identity: KeyIdentity, day: datetime.date) -> QuotaOutcome:
        async with self._session_factory() as session:
            return await quota_ledger.check_and_increment(
                session, identity.api_key_id, day, identity.daily_limit,
            )

    async def _bounded(self, awaitable):  # type: ignore[no-untyped-def]
        if self._store_timeout is None:
            return await awaitable
        return await asyncio.wait_for(awaitable, timeout=self._store_timeout)

    @staticmethod
    def _advance(current: AdmissionState, nxt: AdmissionState) -> AdmissionState:
        logger.debug("admission %s → %s", current.value, nxt.value)
        return nxt


async def authenticate_and_admit(request: Any, gate: AdmissionGate) -> AdmissionDecision:
    """Single entry point the routing layer calls before a protected handler."""
    return await gate.admit(request)
