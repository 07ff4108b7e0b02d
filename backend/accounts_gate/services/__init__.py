# Accounts Gate Services
from accounts_gate.services.accounts import AccountRecord, AccountStore, SqlAccountStore
from accounts_gate.services.revocation import (
    DatabaseRevocationStore,
    InMemoryRevocationRegistry,
    RevocationStore,
    revocation_sweep_loop,
)
from accounts_gate.services.sanitizer import sanitize
from accounts_gate.services.session import Session, SessionResolver, extract_bearer_token
from accounts_gate.services.tokens import TokenClaims, create_access_token, verify_token

__all__ = [
    "AccountRecord",
    "AccountStore",
    "DatabaseRevocationStore",
    "InMemoryRevocationRegistry",
    "RevocationStore",
    "Session",
    "SessionResolver",
    "SqlAccountStore",
    "TokenClaims",
    "create_access_token",
    "extract_bearer_token",
    "revocation_sweep_loop",
    "sanitize",
    "verify_token",
]
