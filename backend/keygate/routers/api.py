"""
Protected API router.

Every route here depends on require_admission (credential + daily quota).
Usage is recorded after the response is sent, via BackgroundTasks, so a
recorder failure can never fail or delay an admitted call.
"""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keygate.auth.admission import AdmissionDecision
from keygate.auth.dependencies import require_admission
from keygate.core.database import get_session_factory
from keygate.services.usage_recorder import record_usage

router = APIRouter(tags=["Protected"])

Admitted = Annotated[AdmissionDecision, Depends(require_admission)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


@router.get(
    "/data",
    summary="Sample protected resource",
    description="Requires a valid X-API-Key with remaining daily quota.",
)
async def get_data(
    decision: Admitted,
    session_factory: SessionFactory,
    background_tasks: BackgroundTasks,
) -> dict[str, str]:
    background_tasks.add_task(
        record_usage,
        session_factory,
        decision.identity.api_key_id,
        "/api/data",
        200,
    )
    return {"message": "Protected data accessed"}
