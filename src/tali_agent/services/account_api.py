"""Account API — async HTTP client for the bank's account/bill API.

The API follows the shape of Capital One's Nessie sandbox: accounts at
``/accounts/{id}``, bills at ``/accounts/{id}/bills`` and transfers at
``/accounts/{id}/transfers``.  For local runs the base URL points to the
co-located mock API at ``/external/v1``.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from tali_agent.agents.records import BillInformation, BillRecord, TransferInformation
from tali_agent.config import settings
from tali_agent.errors import ServiceLookupError

logger = logging.getLogger(__name__)


class AccountQueryService:
    """Async HTTP wrapper around the account, bill and transfer endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.account_api_base_url).rstrip("/")
        self._api_key = settings.account_api_key if api_key is None else api_key
        self._transport = transport

    # ── Lookups ──────────────────────────────────────────

    async def fetch_balance(self, account_id: str) -> Decimal:
        """Return the current balance of *account_id*."""
        data = await self._request("GET", account_id, "")
        try:
            return Decimal(str(data["balance"]))
        except (KeyError, TypeError, InvalidOperation) as exc:
            raise ServiceLookupError(f"Malformed account payload for {account_id}") from exc

    async def fetch_bills(self, account_id: str) -> list[BillRecord]:
        """Return the bills of *account_id* in the order the service lists them."""
        data = await self._request("GET", account_id, "/bills")
        if not isinstance(data, list):
            raise ServiceLookupError(f"Malformed bills payload for {account_id}")
        try:
            return [self._to_bill_record(item) for item in data]
        except (KeyError, TypeError, AttributeError) as exc:
            raise ServiceLookupError(f"Malformed bill in payload for {account_id}") from exc

    # ── Writes ───────────────────────────────────────────

    async def create_bill(self, account_id: str, bill: BillInformation) -> str:
        """Register *bill* against *account_id*; returns the new bill's ID."""
        payload = {
            "status": bill.status,
            "payee": bill.payee,
            "nickname": bill.payee,
            "payment_date": bill.due_date,
            "payment_amount": bill.amount,
        }
        data = await self._request("POST", account_id, "/bills", payload)
        bill_id = self._created_id(data)
        logger.info("Created bill %s for account %s", bill_id, account_id)
        return bill_id

    async def create_transfer(self, account_id: str, transfer: TransferInformation) -> str:
        """Start a transfer out of *account_id*; returns the new transfer's ID."""
        payload = {"payee": transfer.payee, "amount": transfer.amount}
        data = await self._request("POST", account_id, "/transfers", payload)
        transfer_id = self._created_id(data)
        logger.info("Created transfer %s for account %s", transfer_id, account_id)
        return transfer_id

    # ── Private helpers ──────────────────────────────────

    async def _request(
        self,
        method: str,
        account_id: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        if not account_id:
            raise ServiceLookupError("Invalid (empty) account ID")

        url = f"{self._base_url}/accounts/{account_id}{path}"
        params = {"key": self._api_key} if self._api_key else None
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=settings.http_timeout_seconds
            ) as client:
                resp = await client.request(method, url, params=params, json=payload)
        except httpx.HTTPError as exc:
            logger.exception("%s %s request error: %s", method, path or "/account", exc)
            raise ServiceLookupError(f"Account service unreachable for {account_id}") from exc

        if not resp.is_success:
            logger.error("%s %s failed: %s %s", method, url, resp.status_code, resp.text)
            raise ServiceLookupError(
                f"Account service returned {resp.status_code} for {account_id}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            logger.error("Non-JSON response from %s: %s", url, resp.text)
            raise ServiceLookupError(f"Malformed response for {account_id}") from exc

    @staticmethod
    def _created_id(data: Any) -> str:
        # Created upstream even when the response omits the ID
        created = data.get("objectCreated") if isinstance(data, dict) else None
        if not isinstance(created, dict):
            return ""
        return str(created.get("_id", ""))

    @staticmethod
    def _to_bill_record(item: dict[str, Any]) -> BillRecord:
        return BillRecord(
            id=str(item.get("_id", "")),
            nickname=item["nickname"],
            upcoming_payment_date=item["upcoming_payment_date"],
            status=item.get("status", ""),
            payee=item.get("payee", ""),
            payment_date=item.get("payment_date", ""),
            recurring_date=item.get("recurring_date"),
            payment_amount=item.get("payment_amount"),
        )
