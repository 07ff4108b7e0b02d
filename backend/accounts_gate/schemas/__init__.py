# Accounts Gate Schemas
from accounts_gate.schemas.auth import (
    AccountResponse,
    ErrorResponse,
    MessageResponse,
    SecurityStatsResponse,
    SessionStatusResponse,
    SweepResponse,
)

__all__ = [
    "AccountResponse",
    "ErrorResponse",
    "MessageResponse",
    "SecurityStatsResponse",
    "SessionStatusResponse",
    "SweepResponse",
]
