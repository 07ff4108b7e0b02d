"""Liveness of the gate's two backing stores."""

import logging

from fastapi import APIRouter, Request, Response, status
from pydantic import BaseModel

from accounts_gate.core import check_db_connection, settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    revocations: str


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "A backing store is unreachable"}},
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Report whether the account database and the revocation store answer.

    Every authenticated request needs both, so either one failing yields 503.
    """
    database_ok = await check_db_connection()

    try:
        await request.app.state.revocation_store.count()
        revocations_ok = True
    except Exception as e:
        logger.warning(f"Revocation store health check failed: {e}")
        revocations_ok = False

    healthy = database_ok and revocations_ok
    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status="healthy" if healthy else "unhealthy",
        version=settings.app_version,
        database="connected" if database_ok else "disconnected",
        revocations="available" if revocations_ok else "unavailable",
    )
