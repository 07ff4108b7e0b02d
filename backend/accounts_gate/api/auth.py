"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, Request

from accounts_gate.api.guards import authenticated, get_session_resolver, optional_session
from accounts_gate.core.logging import log_security_event
from accounts_gate.schemas.auth import AccountResponse, MessageResponse, SessionStatusResponse
from accounts_gate.services.session import Session

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    session: Session = Depends(authenticated),
) -> MessageResponse:
    """Log out the current account.

    The presented token is revoked and rejected on every later request,
    for the remainder of its lifetime.
    """
    await get_session_resolver(request).revoke(session)
    log_security_event("logout", request, account_id=session.account.id)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=AccountResponse)
async def get_me(session: Session = Depends(authenticated)) -> AccountResponse:
    """Get the authenticated account."""
    return AccountResponse.model_validate(session.account, from_attributes=True)


@router.get("/session", response_model=SessionStatusResponse)
async def get_session_status(
    session: Session | None = Depends(optional_session),
) -> SessionStatusResponse:
    """Report whether the caller presented a valid token.

    Never fails on a bad token: the caller is simply treated as anonymous.
    """
    if session is None:
        return SessionStatusResponse(authenticated=False)
    return SessionStatusResponse(
        authenticated=True,
        account=AccountResponse.model_validate(session.account, from_attributes=True),
    )
