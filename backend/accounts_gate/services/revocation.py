"""Token revocation stores and the periodic sweep task.

Two implementations share the RevocationStore interface:

- InMemoryRevocationRegistry: process-wide set for single-instance
  deployments. Entries do not expire individually; sweep() clears the whole
  set once it grows past its ceiling. A cleared token that has not yet
  expired is accepted again, so the ceiling must stay well above the number
  of logouts per token lifetime.
- DatabaseRevocationStore: shared table for multi-instance deployments,
  with per-entry expiry. sweep() only deletes expired rows.
"""

import asyncio
import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accounts_gate.core.config import settings
from accounts_gate.models.revoked_token import RevokedToken

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000


class RevocationStore(ABC):
    """Records tokens invalidated before their natural expiry."""

    @abstractmethod
    async def add(self, token: str, expires_at: int | None = None) -> None:
        """Mark a token as revoked. Adding the same token again is a no-op.

        expires_at is the token's ``exp`` claim (epoch seconds) when known.
        """

    @abstractmethod
    async def is_revoked(self, token: str) -> bool:
        """Return True if the token has been revoked."""

    @abstractmethod
    async def sweep(self) -> int:
        """Evict entries per the store's policy. Returns the number removed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of entries currently held."""


class InMemoryRevocationRegistry(RevocationStore):
    """Thread-safe in-memory revocation set with coarse size-based eviction."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.max_entries = max_entries
        self._tokens: set[str] = set()
        self._lock = threading.Lock()

    async def add(self, token: str, expires_at: int | None = None) -> None:
        with self._lock:
            self._tokens.add(token)

    async def is_revoked(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    async def sweep(self) -> int:
        with self._lock:
            size = len(self._tokens)
            if size <= self.max_entries:
                return 0
            self._tokens.clear()
        logger.warning(
            f"Token revocation registry cleared due to size limit "
            f"({size} entries > {self.max_entries})"
        )
        return size

    async def count(self) -> int:
        with self._lock:
            return len(self._tokens)


def token_digest(token: str) -> str:
    """SHA-256 hex digest used as the persisted key for a token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class DatabaseRevocationStore(RevocationStore):
    """Revocation table shared by every instance, with per-entry expiry."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker
        self._sweep_lock = asyncio.Lock()

    async def add(self, token: str, expires_at: int | None = None) -> None:
        now = datetime.now(UTC)
        if expires_at is None:
            expiry = now + timedelta(minutes=settings.jwt_expire_minutes)
        else:
            expiry = datetime.fromtimestamp(expires_at, tz=UTC)

        async with self._session_maker() as session:
            # merge() keeps add() idempotent across repeated logouts
            await session.merge(
                RevokedToken(token_digest=token_digest(token), expires_at=expiry, revoked_at=now)
            )
            await session.commit()

    async def is_revoked(self, token: str) -> bool:
        async with self._session_maker() as session:
            result = await session.execute(
                select(RevokedToken.token_digest).where(
                    RevokedToken.token_digest == token_digest(token)
                )
            )
            return result.scalar_one_or_none() is not None

    async def sweep(self) -> int:
        # The background loop and the admin endpoint both sweep
        async with self._sweep_lock:
            now = datetime.now(UTC)
            async with self._session_maker() as session:
                result: CursorResult = await session.execute(  # type: ignore[assignment]
                    delete(RevokedToken).where(RevokedToken.expires_at <= now)
                )
                await session.commit()
        removed = result.rowcount or 0
        if removed:
            logger.info(f"Removed {removed} expired revoked tokens")
        return removed

    async def count(self) -> int:
        async with self._session_maker() as session:
            result = await session.execute(select(func.count()).select_from(RevokedToken))
            return int(result.scalar_one())


async def revocation_sweep_loop(store: RevocationStore, interval_seconds: float) -> None:
    """Run store.sweep() every ``interval_seconds`` until cancelled.

    Started once from the application lifespan. The admin sweep endpoint may
    call sweep() as well; stores serialize overlapping sweeps.
    """
    while True:
        try:
            await asyncio.sleep(interval_seconds)
            removed = await store.sweep()
            if removed > 0:
                logger.debug(f"Revocation sweep removed {removed} entries")
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.warning(f"Revocation sweep error: {e}")
