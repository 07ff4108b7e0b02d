"""Bearer token issuance and verification (PyJWT, HS256).

verify_token() is a pure function of (token, secret, now): the signature is
checked by PyJWT while expiry and activation are checked against the supplied
clock, so callers and tests control time explicitly.
"""

import logging
import time
from dataclasses import dataclass
from numbers import Real
from typing import Any

import jwt
from jwt.exceptions import InvalidSignatureError, PyJWTError

from accounts_gate.core.config import settings
from accounts_gate.services.errors import (
    TokenExpiredError,
    TokenMalformedError,
    TokenNotYetActiveError,
    TokenSignatureError,
)

logger = logging.getLogger(__name__)

# Time claims are checked below against the caller's clock
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
}


@dataclass(frozen=True)
class TokenClaims:
    """Decoded claims of a verified token."""

    subject: str
    issued_at: int
    expires_at: int
    not_before: int | None = None


def _numeric_claim(payload: dict[str, Any], name: str) -> int | None:
    value = payload.get(name)
    if value is None:
        return None
    # bool is a Real subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TokenMalformedError("Invalid token structure")
    return int(value)


def create_access_token(
    account_id: str,
    *,
    issued_at: int | None = None,
    expires_in: int | None = None,
    not_before: int | None = None,
    secret: str | None = None,
) -> str:
    """Issue a signed token for an account.

    Args:
        account_id: Stored as the ``sub`` claim.
        issued_at: Epoch seconds for ``iat``; defaults to now.
        expires_in: Lifetime in seconds; defaults to JWT_EXPIRE_MINUTES.
        not_before: Optional epoch seconds for ``nbf``.
        secret: Signing secret; defaults to JWT_SECRET.
    """
    iat = int(time.time()) if issued_at is None else issued_at
    lifetime = settings.jwt_expire_minutes * 60 if expires_in is None else expires_in
    payload: dict[str, Any] = {"sub": str(account_id), "iat": iat, "exp": iat + lifetime}
    if not_before is not None:
        payload["nbf"] = not_before
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(
    token: str,
    secret: str,
    *,
    now: float | None = None,
    algorithms: list[str] | None = None,
) -> TokenClaims:
    """Verify a token's signature and validity window and return its claims.

    Raises:
        TokenSignatureError: The signature does not match ``secret``.
        TokenMalformedError: Undecodable token, or missing/invalid ``sub``, ``iat`` or ``exp``.
        TokenExpiredError: ``now`` is at or past ``exp``.
        TokenNotYetActiveError: ``now`` is before ``nbf``.
    """
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=algorithms or [settings.jwt_algorithm],
            options=_DECODE_OPTIONS,
        )
    except InvalidSignatureError as e:
        raise TokenSignatureError() from e
    except PyJWTError as e:
        logger.debug(f"Token decode failed: {type(e).__name__}")
        raise TokenMalformedError() from e

    subject = payload.get("sub")
    issued_at = _numeric_claim(payload, "iat")
    expires_at = _numeric_claim(payload, "exp")
    # Revocation entries expire with the token, so exp is required
    if not isinstance(subject, str) or not subject or issued_at is None or expires_at is None:
        raise TokenMalformedError("Invalid token structure")

    not_before = _numeric_claim(payload, "nbf")

    current = time.time() if now is None else now
    if current >= expires_at:
        raise TokenExpiredError()
    if not_before is not None and current < not_before:
        raise TokenNotYetActiveError()

    return TokenClaims(
        subject=subject,
        issued_at=issued_at,
        expires_at=expires_at,
        not_before=not_before,
    )
