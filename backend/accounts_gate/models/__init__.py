# Accounts Gate Models
from accounts_gate.models.account import Account, Role
from accounts_gate.models.base import Base
from accounts_gate.models.revoked_token import RevokedToken

__all__ = [
    "Account",
    "Base",
    "RevokedToken",
    "Role",
]
