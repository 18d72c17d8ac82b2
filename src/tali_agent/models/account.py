"""SQLAlchemy models behind the mock account API."""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from tali_agent.models.base import Base


class Account(Base):
    """A customer bank account, identified by its external account ID."""

    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    nickname: Mapped[str] = mapped_column(String(256), nullable=False)
    balance: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))

    def __repr__(self) -> str:
        return f"<Account id={self.id!r} nickname={self.nickname!r}>"


class Bill(Base):
    """A bill registered against an account."""

    __tablename__ = "bills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payee: Mapped[str] = mapped_column(String(256), nullable=False)
    nickname: Mapped[str] = mapped_column(String(256), nullable=False)
    payment_date: Mapped[str] = mapped_column(
        String(10), nullable=False, doc="YYYY-MM-DD, stored as typed"
    )
    recurring_date: Mapped[int | None] = mapped_column(Integer, nullable=True)
    payment_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    creation_date: Mapped[str] = mapped_column(
        String(10), default=lambda: date.today().isoformat()
    )
    upcoming_payment_date: Mapped[str] = mapped_column(String(10), nullable=False)

    __table_args__ = (Index("ix_bills_account_id", "account_id"),)

    def __repr__(self) -> str:
        return f"<Bill id={self.id} payee={self.payee!r} account={self.account_id!r}>"


class Transfer(Base):
    """A funds transfer out of an account."""

    __tablename__ = "transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    payer_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id"), nullable=False
    )
    payee: Mapped[str] = mapped_column(String(256), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC)
    )

    __table_args__ = (Index("ix_transfers_payer_id", "payer_id"),)
