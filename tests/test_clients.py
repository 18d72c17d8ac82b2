"""Tests for the HTTP collaborators — IntentClassifier and AccountQueryService."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from tali_agent.agents.records import BillInformation, TransferInformation
from tali_agent.agents.state import IntentLabel
from tali_agent.errors import ServiceLookupError
from tali_agent.services.account_api import AccountQueryService
from tali_agent.services.intent_classifier import IntentClassifier

INTENT_URL = "http://language.test/luis/predict"
BANK_URL = "http://bank.test/v1"


def _classifier(handler, key: str = "") -> IntentClassifier:
    return IntentClassifier(INTENT_URL, subscription_key=key, transport=httpx.MockTransport(handler))


def _accounts(handler, key: str = "") -> AccountQueryService:
    return AccountQueryService(BANK_URL, api_key=key, transport=httpx.MockTransport(handler))


def _unreachable(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected request to {request.url}")


# ── IntentClassifier ─────────────────────────────────────

@pytest.mark.asyncio
async def test_classify_returns_top_intent():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"query": "balance?", "topScoringIntent": {"intent": "Balance", "score": 0.97}}
        )

    label = await _classifier(handler, key="secret").classify("balance?")

    assert label is IntentLabel.BALANCE
    assert seen[0].url.params["q"] == "balance?"
    assert seen[0].url.params["verbose"] == "false"
    assert seen[0].headers["Ocp-Apim-Subscription-Key"] == "secret"


@pytest.mark.asyncio
async def test_classify_maps_unknown_label():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"topScoringIntent": {"intent": "None", "score": 0.2}})

    assert await _classifier(handler).classify("blorp") is IntentLabel.UNRECOGNIZED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"unexpected": True}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_classify_failures_raise(response):
    with pytest.raises(ServiceLookupError):
        await _classifier(lambda request: response).classify("hi")


@pytest.mark.asyncio
async def test_classify_transport_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ServiceLookupError):
        await _classifier(handler).classify("hi")


# ── AccountQueryService ──────────────────────────────────

@pytest.mark.asyncio
async def test_fetch_balance():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/accounts/ACC123"
        assert request.url.params["key"] == "k1"
        return httpx.Response(200, json={"_id": "ACC123", "nickname": "Checking", "balance": 250})

    assert await _accounts(handler, key="k1").fetch_balance("ACC123") == Decimal("250")


@pytest.mark.asyncio
async def test_empty_account_id_is_a_lookup_error():
    service = _accounts(_unreachable)

    with pytest.raises(ServiceLookupError):
        await service.fetch_balance("")
    with pytest.raises(ServiceLookupError):
        await service.fetch_bills("")


@pytest.mark.asyncio
async def test_unknown_account_is_a_lookup_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "No account found for this ID"})

    with pytest.raises(ServiceLookupError):
        await _accounts(handler).fetch_balance("NOPE")


@pytest.mark.asyncio
async def test_fetch_bills_keeps_service_order():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/accounts/ACC123/bills"
        return httpx.Response(
            200,
            json=[
                {
                    "_id": "2",
                    "nickname": "Electricity",
                    "payee": "City Power",
                    "upcoming_payment_date": "2019-02-12",
                },
                {
                    "_id": "1",
                    "nickname": "Car Loans",
                    "payee": "Honda",
                    "upcoming_payment_date": "2019-02-05",
                    "payment_amount": 400,
                },
            ],
        )

    bills = await _accounts(handler).fetch_bills("ACC123")

    assert [bill.nickname for bill in bills] == ["Electricity", "Car Loans"]
    assert bills[1].payment_amount == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [{"bills": []}, ["oops"], [None], [{"nickname": "Car Loans"}]],
)
async def test_fetch_bills_malformed_payload(payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(ServiceLookupError):
        await _accounts(handler).fetch_bills("ACC123")


@pytest.mark.asyncio
async def test_create_bill_posts_payload():
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/v1/accounts/ACC123/bills"
        seen.append(json.loads(request.content))
        return httpx.Response(201, json={"message": "Created bill", "objectCreated": {"_id": "9"}})

    bill = BillInformation(status="Recurring", payee="Honda", amount=400, due_date="2019-02-20")
    bill_id = await _accounts(handler).create_bill("ACC123", bill)

    assert bill_id == "9"
    assert seen[0] == {
        "status": "Recurring",
        "payee": "Honda",
        "nickname": "Honda",
        "payment_date": "2019-02-20",
        "payment_amount": 400,
    }


@pytest.mark.asyncio
async def test_create_transfer_posts_payload():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/accounts/ACC123/transfers"
        assert json.loads(request.content) == {"payee": "Bob", "amount": 75}
        return httpx.Response(201, json={"objectCreated": {"_id": "3"}})

    transfer_id = await _accounts(handler).create_transfer(
        "ACC123", TransferInformation(payee="Bob", amount=75)
    )

    assert transfer_id == "3"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{"objectCreated": None}, {"message": "Created"}, ["created"]])
async def test_created_object_without_id(body):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, json=body)

    accounts = _accounts(handler)
    bill_id = await accounts.create_bill(
        "ACC123",
        BillInformation(status="recurring", payee="Honda", amount=400, due_date="2019-02-20"),
    )
    transfer_id = await accounts.create_transfer(
        "ACC123", TransferInformation(payee="Bob", amount=75)
    )

    assert bill_id == ""
    assert transfer_id == ""
