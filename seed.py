"""Seed script — populates the mock bank with sample accounts and bills."""

import asyncio
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from tali_agent.database.engine import async_session_factory, init_db
from tali_agent.models.account import Account, Bill

SAMPLE_ACCOUNTS = [
    Account(id="ACC123", nickname="Alice's Checking", balance=Decimal("250")),
    Account(id="ACC456", nickname="Bob's Savings", balance=Decimal("1042.17")),
]

SAMPLE_BILLS = [
    Bill(
        account_id="ACC123",
        status="recurring",
        payee="Honda",
        nickname="Car Loans",
        payment_date="2019-02-20",
        recurring_date=5,
        payment_amount=400,
        creation_date="2019-01-19",
        upcoming_payment_date="2019-02-05",
    ),
    Bill(
        account_id="ACC123",
        status="pending",
        payee="City Power",
        nickname="Electricity",
        payment_date="2019-02-12",
        payment_amount=85,
        creation_date="2019-01-20",
        upcoming_payment_date="2019-02-12",
    ),
]


async def seed() -> None:
    """Insert sample accounts and bills into the database."""
    await init_db()
    async with async_session_factory() as session:
        session: AsyncSession
        session.add_all(SAMPLE_ACCOUNTS)
        await session.flush()
        session.add_all(SAMPLE_BILLS)
        await session.commit()
    print(f"✅ Seeded {len(SAMPLE_ACCOUNTS)} accounts and {len(SAMPLE_BILLS)} bills.")


if __name__ == "__main__":
    asyncio.run(seed())
