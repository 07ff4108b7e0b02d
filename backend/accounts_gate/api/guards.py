"""Route guards: authentication and authorization as an ordered pipeline of named stages.

A GuardPipeline is a FastAPI dependency. Its stages run in declaration
order; the first stage that denies stops the pipeline and its error is
raised. On success the resolved Session (or None for anonymous callers) is
returned to the route and stored on ``request.state.session``.

    @router.get("/reports", dependencies=[Depends(admin_or_accountant)])
    async def reports(): ...

    @router.get("/users/{user_id}")
    async def profile(session: Session = Depends(self_or_admin)): ...
"""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass

from fastapi import Request

from accounts_gate.core.logging import log_security_event
from accounts_gate.core.request_utils import get_client_ip
from accounts_gate.models.account import Role
from accounts_gate.services.authorization import (
    AuthorizationDecision,
    evaluate_roles,
    evaluate_self_or_admin,
)
from accounts_gate.services.errors import (
    AuthError,
    AuthenticationError,
    InternalAuthError,
    IPBlockedError,
)
from accounts_gate.services.session import Session, SessionResolver, extract_bearer_token

logger = logging.getLogger(__name__)


@dataclass
class GuardContext:
    """State shared by the stages of one pipeline run."""

    request: Request
    session: Session | None = None


@dataclass(frozen=True)
class Decision:
    """Pass/fail outcome of a single stage."""

    allowed: bool
    code: str = "OK"
    error: AuthError | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, error: AuthError) -> "Decision":
        return cls(False, error.code, error)


@dataclass(frozen=True)
class GuardStage:
    """A named check. ``check`` may read and update the context."""

    name: str
    check: Callable[[GuardContext], Awaitable[Decision]]


class GuardPipeline:
    """Runs guard stages in order and acts as a FastAPI dependency."""

    def __init__(self, *stages: GuardStage) -> None:
        self.stages = stages

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self.stages]

    async def run(self, context: GuardContext) -> Decision:
        for stage in self.stages:
            decision = await stage.check(context)
            if not decision.allowed:
                logger.debug(f"Guard stage '{stage.name}' denied request: {decision.code}")
                return decision
        return Decision.allow()

    async def __call__(self, request: Request) -> Session | None:
        context = GuardContext(request=request)
        decision = await self.run(context)
        if not decision.allowed:
            if decision.error is None:
                logger.error(f"Guard denied without an error: {decision.code}")
                raise InternalAuthError()
            raise decision.error
        request.state.session = context.session
        return context.session


# --- Stage factories ---


def get_session_resolver(request: Request) -> SessionResolver:
    return request.app.state.session_resolver


def authenticate() -> GuardStage:
    """Mandatory authentication: any failure denies the request."""

    async def check(context: GuardContext) -> Decision:
        resolver = get_session_resolver(context.request)
        token = extract_bearer_token(context.request.headers.get("Authorization"))
        try:
            context.session = await resolver.resolve(token)
        except AuthenticationError as e:
            return Decision.deny(e)
        return Decision.allow()

    return GuardStage("authenticate", check)


def authenticate_optional() -> GuardStage:
    """Optional authentication: failures leave the request anonymous."""

    async def check(context: GuardContext) -> Decision:
        resolver = get_session_resolver(context.request)
        token = extract_bearer_token(context.request.headers.get("Authorization"))
        context.session = await resolver.resolve_optional(token)
        return Decision.allow()

    return GuardStage("authenticate_optional", check)


def _authorization_decision(context: GuardContext, decision: AuthorizationDecision) -> Decision:
    if decision.allowed:
        return Decision.allow()
    error = decision.to_error()
    if context.session is not None:
        log_security_event(
            "access_denied",
            context.request,
            account_id=context.session.account.id,
            code=error.code,
        )
    return Decision.deny(error)


def require_roles(allowed: Iterable[Role]) -> GuardStage:
    """Allow only accounts whose role is in ``allowed``."""
    allowed_set = frozenset(allowed)

    async def check(context: GuardContext) -> Decision:
        account = context.session.account if context.session else None
        return _authorization_decision(context, evaluate_roles(account, allowed_set))

    return GuardStage(f"require_roles[{','.join(sorted(allowed_set))}]", check)


def require_self_or_admin(owner_param: str = "id") -> GuardStage:
    """Allow the owner named by path parameter ``owner_param``, or any admin."""

    async def check(context: GuardContext) -> Decision:
        account = context.session.account if context.session else None
        owner_id = context.request.path_params.get(owner_param)
        return _authorization_decision(context, evaluate_self_or_admin(account, owner_id))

    return GuardStage("require_self_or_admin", check)


def require_ip_allowlist(allowed_ips: Iterable[str]) -> GuardStage:
    """Allow only listed client addresses. An empty list allows everyone."""
    allowed = frozenset(allowed_ips)

    async def check(context: GuardContext) -> Decision:
        if not allowed:
            return Decision.allow()
        client_ip = get_client_ip(context.request)
        if client_ip in allowed:
            return Decision.allow()
        logger.warning(f"Access denied for IP: {client_ip}")
        log_security_event("ip_blocked", context.request)
        return Decision.deny(IPBlockedError())

    return GuardStage("require_ip_allowlist", check)


# --- Common pipelines ---

authenticated = GuardPipeline(authenticate())
optional_session = GuardPipeline(authenticate_optional())
admin_only = GuardPipeline(authenticate(), require_roles({Role.ADMIN}))
admin_or_accountant = GuardPipeline(authenticate(), require_roles({Role.ADMIN, Role.ACCOUNTANT}))
self_or_admin = GuardPipeline(authenticate(), require_self_or_admin("user_id"))
