"""Operator endpoints for the revocation registry and admission counters."""

import logging

from fastapi import APIRouter, Depends, Request

from accounts_gate.api.guards import (
    GuardPipeline,
    authenticate,
    require_ip_allowlist,
    require_roles,
)
from accounts_gate.core.config import settings
from accounts_gate.models.account import Role
from accounts_gate.schemas.auth import SecurityStatsResponse, SweepResponse

logger = logging.getLogger(__name__)

admin_guard = GuardPipeline(
    require_ip_allowlist(settings.admin_ip_allowlist_list),
    authenticate(),
    require_roles({Role.ADMIN}),
)

router = APIRouter(
    prefix="/admin/security",
    tags=["admin"],
    dependencies=[Depends(admin_guard)],
)


@router.get("/stats", response_model=SecurityStatsResponse)
async def get_security_stats(request: Request) -> SecurityStatsResponse:
    """Get revocation registry size and current admission counters."""
    revocations = request.app.state.revocation_store
    controller = request.app.state.admission_controller
    return SecurityStatsResponse(
        revocation_backend=type(revocations).__name__,
        revoked_tokens=await revocations.count(),
        admission=await controller.get_stats(),
    )


@router.post("/revocations/sweep", response_model=SweepResponse)
async def sweep_revocations(request: Request) -> SweepResponse:
    """Run one revocation sweep now instead of waiting for the background loop."""
    removed = await request.app.state.revocation_store.sweep()
    logger.info(f"Manual revocation sweep removed {removed} entries")
    return SweepResponse(removed=removed)
