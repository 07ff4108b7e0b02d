"""Read-only access to the external account store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from accounts_gate.models.account import Account, Role


@dataclass(frozen=True)
class AccountRecord:
    """An account as seen by the gate. Never carries the password hash."""

    id: str
    role: Role
    is_active: bool = True
    password_changed_at: datetime | None = None
    email: str = ""
    name: str = ""


class AccountStore(Protocol):
    """Point lookup of accounts by id."""

    async def get_by_id(self, account_id: str) -> AccountRecord | None: ...


class SqlAccountStore:
    """AccountStore backed by the application's ``accounts`` table."""

    # Everything except password_hash
    _COLUMNS = (
        Account.id,
        Account.email,
        Account.name,
        Account.role,
        Account.is_active,
        Account.password_changed_at,
    )

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def get_by_id(self, account_id: str) -> AccountRecord | None:
        async with self._session_maker() as session:
            result = await session.execute(
                select(*self._COLUMNS).where(Account.id == account_id)
            )
            row = result.one_or_none()

        if row is None:
            return None
        return AccountRecord(
            id=row.id,
            email=row.email,
            name=row.name,
            role=Role(row.role),
            is_active=bool(row.is_active),
            password_changed_at=row.password_changed_at,
        )
