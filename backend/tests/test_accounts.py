"""Tests for the SQL-backed account store."""

from datetime import UTC, datetime

import pytest

from accounts_gate.models import Account, Role
from accounts_gate.services.accounts import AccountRecord, SqlAccountStore


@pytest.mark.asyncio
async def test_get_by_id(session_maker):
    changed = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
    async with session_maker() as session:
        session.add(
            Account(
                id="acc-1",
                email="books@example.com",
                name="Bo Books",
                role=Role.ACCOUNTANT.value,
                password_hash="$argon2id$not-a-real-hash",
                password_changed_at=changed,
            )
        )
        await session.commit()

    record = await SqlAccountStore(session_maker).get_by_id("acc-1")

    assert isinstance(record, AccountRecord)
    assert record.id == "acc-1"
    assert record.role is Role.ACCOUNTANT
    assert record.is_active is True
    assert record.email == "books@example.com"
    assert record.password_changed_at.replace(tzinfo=UTC) == changed
    assert not hasattr(record, "password_hash")


@pytest.mark.asyncio
async def test_unknown_account(session_maker):
    assert await SqlAccountStore(session_maker).get_by_id("missing") is None


@pytest.mark.asyncio
async def test_inactive_account(session_maker):
    async with session_maker() as session:
        session.add(Account(id="acc-2", email="gone@example.com", role="Contact", is_active=False))
        await session.commit()

    record = await SqlAccountStore(session_maker).get_by_id("acc-2")

    assert record.is_active is False
    assert record.password_changed_at is None
