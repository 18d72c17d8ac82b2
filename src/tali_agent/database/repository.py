"""Repositories — data access layer for conversation state and bank data."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from tali_agent.models.account import Account, Bill, Transfer
from tali_agent.models.conversation import ConversationRecord


class ConversationRepository:
    """Reads and writes serialized conversation state keyed by conversation ID."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, conversation_id: str) -> dict[str, Any] | None:
        record = await self._session.get(ConversationRecord, conversation_id)
        return None if record is None else record.state

    async def upsert(self, conversation_id: str, state: dict[str, Any]) -> None:
        """Insert or replace the stored state for *conversation_id*."""
        record = await self._session.get(ConversationRecord, conversation_id)
        if record is None:
            self._session.add(ConversationRecord(conversation_id=conversation_id, state=state))
        else:
            record.state = state
        await self._session.flush()

    async def delete(self, conversation_id: str) -> bool:
        """Remove the stored state; returns ``True`` if a row was deleted."""
        stmt = delete(ConversationRecord).where(
            ConversationRecord.conversation_id == conversation_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0


class AccountRepository:
    """Encapsulates all database queries related to accounts and their bills."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_account(self, account_id: str) -> Account | None:
        return await self._session.get(Account, account_id)

    async def list_bills(self, account_id: str) -> list[Bill]:
        """Return the account's bills in the order they were created."""
        stmt = select(Bill).where(Bill.account_id == account_id).order_by(Bill.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def add_bill(
        self,
        account_id: str,
        *,
        status: str,
        payee: str,
        payment_amount: int,
        payment_date: str,
        nickname: str | None = None,
        recurring_date: int | None = None,
    ) -> Bill:
        bill = Bill(
            account_id=account_id,
            status=status,
            payee=payee,
            nickname=nickname or payee,
            payment_date=payment_date,
            recurring_date=recurring_date,
            payment_amount=payment_amount,
            upcoming_payment_date=payment_date,
        )
        self._session.add(bill)
        await self._session.flush()
        return bill

    async def add_transfer(self, account: Account, *, payee: str, amount: int) -> Transfer:
        """Record a transfer and debit the payer's balance."""
        transfer = Transfer(payer_id=account.id, payee=payee, amount=amount)
        account.balance = account.balance - Decimal(amount)
        self._session.add(transfer)
        await self._session.flush()
        return transfer
