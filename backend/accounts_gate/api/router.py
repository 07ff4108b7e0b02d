"""Accounts Gate API Router - aggregates all API routes."""

from fastapi import APIRouter, status

from accounts_gate.api import admin, auth, users
from accounts_gate.schemas.auth import ErrorResponse

# Main API router - all routes will be prefixed with /api
api_router = APIRouter(
    prefix="/api",
    responses={
        status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse, "description": "Authentication failed"},
        status.HTTP_403_FORBIDDEN: {"model": ErrorResponse, "description": "Access denied"},
        status.HTTP_429_TOO_MANY_REQUESTS: {"model": ErrorResponse, "description": "Rate limited"},
    },
)

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(admin.router)
