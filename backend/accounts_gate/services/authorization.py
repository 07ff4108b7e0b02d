"""Role and ownership checks, evaluated after authentication."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from accounts_gate.models.account import Role
from accounts_gate.services.accounts import AccountRecord
from accounts_gate.services.errors import (
    AccessDeniedError,
    AuthError,
    ForbiddenError,
    UnauthenticatedError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of an authorization check.

    reason is a machine-readable code: "OK", "AUTH_REQUIRED",
    "INSUFFICIENT_PERMISSIONS" or "ACCESS_DENIED".
    """

    allowed: bool
    reason: str
    required_roles: frozenset[Role] = field(default_factory=frozenset)
    actual_role: Role | None = None

    def to_error(self) -> AuthError:
        """The error a denied decision is reported as."""
        if self.allowed:
            raise ValueError("Allowed decisions have no error")
        if self.reason == UnauthenticatedError.code:
            return UnauthenticatedError()
        if self.reason == AccessDeniedError.code:
            return AccessDeniedError(
                required=[Role.ADMIN.value],
                current=self.actual_role.value if self.actual_role else None,
            )
        return ForbiddenError(
            required=sorted(role.value for role in self.required_roles),
            current=self.actual_role.value if self.actual_role else None,
        )


def evaluate_roles(account: AccountRecord | None, allowed: Iterable[Role]) -> AuthorizationDecision:
    """Decide whether ``account`` holds one of the ``allowed`` roles."""
    allowed_set = frozenset(allowed)
    if account is None:
        return AuthorizationDecision(False, UnauthenticatedError.code, allowed_set)
    if account.role not in allowed_set:
        logger.warning(
            f"Access denied for user {account.id} with role {account.role}. "
            f"Required: {', '.join(sorted(allowed_set))}"
        )
        return AuthorizationDecision(False, ForbiddenError.code, allowed_set, account.role)
    return AuthorizationDecision(True, "OK", allowed_set, account.role)


def evaluate_self_or_admin(account: AccountRecord | None, owner_id: str | None) -> AuthorizationDecision:
    """Decide whether ``account`` owns the resource or is an admin."""
    if account is None:
        return AuthorizationDecision(False, UnauthenticatedError.code)
    if account.role == Role.ADMIN or (owner_id is not None and account.id == str(owner_id)):
        return AuthorizationDecision(True, "OK", actual_role=account.role)
    logger.warning(f"Access denied for user {account.id} to resource owned by {owner_id}")
    return AuthorizationDecision(False, AccessDeniedError.code, actual_role=account.role)


def require_roles(account: AccountRecord | None, allowed: Iterable[Role]) -> AuthorizationDecision:
    """Like evaluate_roles(), but raise when access is denied."""
    decision = evaluate_roles(account, allowed)
    if not decision.allowed:
        raise decision.to_error()
    return decision


def require_self_or_admin(account: AccountRecord | None, owner_id: str | None) -> AuthorizationDecision:
    """Like evaluate_self_or_admin(), but raise when access is denied."""
    decision = evaluate_self_or_admin(account, owner_id)
    if not decision.allowed:
        raise decision.to_error()
    return decision
