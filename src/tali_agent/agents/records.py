"""Structured records exchanged with the account service."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BillRecord:
    """A bill as returned by the account service.

    Mirrors the service's JSON, e.g.::

        {
          "_id": "5c43a83eb8e2a665da3ebacc",
          "status": "recurring",
          "payee": "Honda",
          "nickname": "Car Loans",
          "payment_date": "2019-02-20",
          "recurring_date": 5,
          "payment_amount": 400,
          "upcoming_payment_date": "2019-02-05"
        }
    """

    nickname: str
    upcoming_payment_date: str
    id: str = ""
    status: str = ""
    payee: str = ""
    payment_date: str = ""
    recurring_date: int | None = None
    payment_amount: int | None = None


@dataclass(frozen=True)
class BillInformation:
    """A finished bill dialog, ready to hand to the bill-creation service."""

    status: str
    payee: str
    amount: int
    due_date: str


@dataclass(frozen=True)
class TransferInformation:
    """A finished transfer dialog, ready to hand to the transfer service."""

    payee: str
    amount: int
