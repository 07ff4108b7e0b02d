"""Middleware module for Accounts Gate."""

from accounts_gate.middleware.admission import (
    AdmissionController,
    AdmissionMiddleware,
    LimiterConfig,
    RouteLimit,
    get_admission_controller,
)
from accounts_gate.middleware.admission_cleanup import admission_cleanup_loop
from accounts_gate.middleware.sanitize import SanitizeMiddleware
from accounts_gate.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "AdmissionController",
    "AdmissionMiddleware",
    "LimiterConfig",
    "RouteLimit",
    "SanitizeMiddleware",
    "SecurityHeadersMiddleware",
    "admission_cleanup_loop",
    "get_admission_controller",
]
