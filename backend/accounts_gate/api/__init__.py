# Accounts Gate API
from accounts_gate.api.errors import register_exception_handlers
from accounts_gate.api.router import api_router

__all__ = ["api_router", "register_exception_handlers"]
