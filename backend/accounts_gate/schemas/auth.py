"""Pydantic schemas for the authentication API."""

from pydantic import BaseModel, ConfigDict, Field

from accounts_gate.models.account import Role


class AccountResponse(BaseModel):
    """Public view of an account. Never carries credential material."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str
    role: Role
    is_active: bool


class SessionStatusResponse(BaseModel):
    """Response for the optional-auth session check."""

    authenticated: bool
    account: AccountResponse | None = None


class MessageResponse(BaseModel):
    """Simple success message response."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Body of every failed request."""

    success: bool = False
    message: str
    code: str


class SecurityStatsResponse(BaseModel):
    """Revocation and admission counters for operators."""

    revocation_backend: str
    revoked_tokens: int
    admission: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description='Hit counts keyed by "<limiter>:<client>"',
    )


class SweepResponse(BaseModel):
    """Result of a manual revocation sweep."""

    success: bool = True
    removed: int
