"""Mock external API router — simulates the language service and the bank's API.

Endpoints
---------
GET  /luis/predict?q=...            → top-scoring intent for an utterance
GET  /accounts/{account_id}          → account info incl. balance
GET  /accounts/{account_id}/bills    → bills for the account
POST /accounts/{account_id}/bills    → register a new bill
POST /accounts/{account_id}/transfers → start a transfer
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from tali_agent.agents.state import IntentLabel
from tali_agent.database.engine import get_session
from tali_agent.database.repository import AccountRepository
from tali_agent.models.account import Account, Bill

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/external/v1", tags=["mock-external-api"])

# First matching rule wins, so bill creation is checked before bill listing
_INTENT_RULES: list[tuple[IntentLabel, re.Pattern[str]]] = [
    (IntentLabel.END_CONVERSATION, re.compile(r"\b(bye|goodbye|that's all|thanks|thank you)\b")),
    (IntentLabel.POST_BILLS, re.compile(r"\b(new|add|create|set up|schedule)\b.*\bbills?\b")),
    (IntentLabel.GET_BILLS, re.compile(r"\bbills?\b")),
    (IntentLabel.BALANCE, re.compile(r"\b(balance|how much money)\b")),
    (IntentLabel.START_TRANSFER_FUNDS, re.compile(r"\b(transfer|send money|pay someone)\b")),
    (IntentLabel.START_CONVERSATION, re.compile(r"\b(hello|hi|hey|good (morning|afternoon|evening))\b")),
]


# ── Response / request models ────────────────────────────

class ScoredIntent(BaseModel):
    intent: str
    score: float


class PredictionResponse(BaseModel):
    query: str
    topScoringIntent: ScoredIntent


class AccountInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(serialization_alias="_id")
    nickname: str
    balance: float


class BillInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(serialization_alias="_id")
    status: str
    payee: str
    nickname: str
    payment_date: str
    recurring_date: int | None = None
    payment_amount: int
    creation_date: str
    account_id: str
    upcoming_payment_date: str


class BillCreateRequest(BaseModel):
    status: str
    payee: str
    nickname: str | None = None
    payment_date: str
    recurring_date: int | None = None
    payment_amount: int


class TransferCreateRequest(BaseModel):
    payee: str
    amount: int


class CreatedResponse(BaseModel):
    code: int = 201
    message: str
    objectCreated: dict


# ── Helpers ──────────────────────────────────────────────

def _bill_info(bill: Bill) -> BillInfo:
    return BillInfo(
        id=str(bill.id),
        status=bill.status,
        payee=bill.payee,
        nickname=bill.nickname,
        payment_date=bill.payment_date,
        recurring_date=bill.recurring_date,
        payment_amount=bill.payment_amount,
        creation_date=bill.creation_date,
        account_id=bill.account_id,
        upcoming_payment_date=bill.upcoming_payment_date,
    )


async def _require_account(repo: AccountRepository, account_id: str) -> Account:
    account = await repo.find_account(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="No account found for this ID")
    return account


# ── Endpoints ────────────────────────────────────────────

@router.get("/luis/predict", response_model=PredictionResponse)
async def predict(q: str = Query("", description="Utterance to classify")):
    """Keyword-based stand-in for the hosted intent model."""
    text = q.lower()
    for label, pattern in _INTENT_RULES:
        if pattern.search(text):
            logger.info("Mock classifier: %r → %s", q[:80], label.value)
            return PredictionResponse(
                query=q, topScoringIntent=ScoredIntent(intent=label.value, score=0.9)
            )
    logger.info("Mock classifier: %r → None", q[:80])
    return PredictionResponse(query=q, topScoringIntent=ScoredIntent(intent="None", score=0.1))


@router.get("/accounts/{account_id}", response_model=AccountInfo, response_model_by_alias=True)
async def get_account(account_id: str, session: AsyncSession = Depends(get_session)):
    """Look up an account and its balance."""
    account = await _require_account(AccountRepository(session), account_id)
    return AccountInfo(id=account.id, nickname=account.nickname, balance=float(account.balance))


@router.get(
    "/accounts/{account_id}/bills",
    response_model=list[BillInfo],
    response_model_by_alias=True,
)
async def list_bills(account_id: str, session: AsyncSession = Depends(get_session)):
    """List the account's bills, oldest first."""
    repo = AccountRepository(session)
    await _require_account(repo, account_id)
    return [_bill_info(bill) for bill in await repo.list_bills(account_id)]


@router.post("/accounts/{account_id}/bills", response_model=CreatedResponse, status_code=201)
async def create_bill(
    account_id: str,
    body: BillCreateRequest,
    session: AsyncSession = Depends(get_session),
):
    """Register a bill against the account."""
    repo = AccountRepository(session)
    await _require_account(repo, account_id)
    bill = await repo.add_bill(
        account_id,
        status=body.status,
        payee=body.payee,
        nickname=body.nickname,
        payment_amount=body.payment_amount,
        payment_date=body.payment_date,
        recurring_date=body.recurring_date,
    )
    logger.info("Mock API: created bill %s for %s", bill.id, account_id)
    return CreatedResponse(
        message="Created bill",
        objectCreated=_bill_info(bill).model_dump(by_alias=True),
    )


@router.post("/accounts/{account_id}/transfers", response_model=CreatedResponse, status_code=201)
async def create_transfer(
    account_id: str,
    body: TransferCreateRequest,
    session: AsyncSession = Depends(get_session),
):
    """Move money out of the account to a payee."""
    repo = AccountRepository(session)
    account = await _require_account(repo, account_id)
    transfer = await repo.add_transfer(account, payee=body.payee, amount=body.amount)
    logger.info("Mock API: transfer %s of %s to %s", transfer.id, body.amount, body.payee)
    return CreatedResponse(
        message="Created transfer",
        objectCreated={
            "_id": str(transfer.id),
            "payer_id": account.id,
            "payee": transfer.payee,
            "amount": transfer.amount,
        },
    )
