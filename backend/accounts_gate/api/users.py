"""Account profile endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, status

from accounts_gate.api.guards import self_or_admin
from accounts_gate.schemas.auth import AccountResponse
from accounts_gate.services.accounts import AccountStore

router = APIRouter(prefix="/users", tags=["users"])


def get_account_store(request: Request) -> AccountStore:
    return request.app.state.account_store


@router.get("/{user_id}", response_model=AccountResponse, dependencies=[Depends(self_or_admin)])
async def get_user(
    user_id: str,
    accounts: AccountStore = Depends(get_account_store),
) -> AccountResponse:
    """Get an account profile. Accounts may read their own; admins may read any."""
    account = await accounts.get_by_id(user_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return AccountResponse.model_validate(account, from_attributes=True)
