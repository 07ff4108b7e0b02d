"""Resolve bearer tokens to live account sessions."""

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from accounts_gate.services.accounts import AccountRecord, AccountStore
from accounts_gate.services.errors import (
    AccountDeactivatedError,
    AccountNotFoundError,
    AuthError,
    CredentialStaleError,
    InternalAuthError,
    TokenMissingError,
    TokenRevokedError,
)
from accounts_gate.services.revocation import RevocationStore
from accounts_gate.services.tokens import TokenClaims, verify_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """An authenticated request: the account plus the token that proved it."""

    account: AccountRecord
    claims: TokenClaims
    token: str = field(repr=False)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


def _epoch_seconds(moment: datetime) -> int:
    # Naive timestamps from the store are UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return math.floor(moment.timestamp())


def is_credential_stale(claims: TokenClaims, account: AccountRecord) -> bool:
    """True if the token was issued before the account's last password change.

    Compared at one-second granularity, matching the precision of ``iat``.
    """
    if account.password_changed_at is None:
        return False
    return claims.issued_at < _epoch_seconds(account.password_changed_at)


class SessionResolver:
    """Authenticate tokens against the revocation store and the account store.

    resolve() is the mandatory variant and raises on any failure.
    resolve_optional() runs the same checks but turns every failure into
    None, for endpoints that also serve anonymous callers.
    """

    def __init__(
        self,
        accounts: AccountStore,
        revocations: RevocationStore,
        secret: str,
        clock: Callable[[], float] = time.time,
    ):
        self.accounts = accounts
        self.revocations = revocations
        self._secret = secret
        self._clock = clock

    async def resolve(self, token: str | None) -> Session:
        if not token:
            raise TokenMissingError()

        try:
            revoked = await self.revocations.is_revoked(token)
        except Exception as e:
            logger.exception("Auth middleware error: revocation lookup failed")
            raise InternalAuthError() from e
        if revoked:
            raise TokenRevokedError()

        claims = verify_token(token, self._secret, now=self._clock())

        try:
            account = await self.accounts.get_by_id(claims.subject)
        except Exception as e:
            logger.exception("Auth middleware error: account lookup failed")
            raise InternalAuthError() from e

        if account is None:
            raise AccountNotFoundError()
        if not account.is_active:
            raise AccountDeactivatedError()
        if is_credential_stale(claims, account):
            raise CredentialStaleError()

        return Session(account=account, claims=claims, token=token)

    async def resolve_optional(self, token: str | None) -> Session | None:
        if not token:
            return None
        try:
            return await self.resolve(token)
        except InternalAuthError:
            logger.warning("Optional auth failed internally, continuing unauthenticated", exc_info=True)
            return None
        except AuthError as e:
            logger.debug(f"Optional auth failed: {e.code}")
            return None

    async def revoke(self, session: Session) -> None:
        """Revoke the session's token (logout)."""
        await self.revocations.add(session.token, expires_at=session.claims.expires_at)
        logger.info(f"Token revoked for account {session.account.id}")
